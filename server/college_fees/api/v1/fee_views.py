"""
college_fees/api/v1/fee_views.py
Query parsing and response shaping shared by the role-scoped fee routers
"""
from datetime import date
from typing import List, Optional
from fastapi import Depends, Query
from college_fees.core.config import settings
from college_fees.models.domain import ActorContext, FeeStatus, FeeType, Pagination
from college_fees.models.schemas import (
    BulkCreateResponse, FeeListResponse, FeePaymentUpdate, FeeResponse, FeeStats,
    FeeStatsResponse, FeeTypeBreakdown, PaginationInfo
)
from college_fees.services.bulk import BulkResult
from college_fees.services.fee_service import FeeListFilters, FeePage
from college_fees.services.fee_state import PaymentCommand
from college_fees.services.stats import FeeTypeTotals, Stats


# ============================================
# QUERY PARAMETERS
# ============================================

def pagination_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
) -> Pagination:
    return Pagination(page=page, limit=limit)


def list_filters(
    search: Optional[str] = Query(None, description="Student name or roll number substring"),
    status: Optional[FeeStatus] = None,
    fee_type: Optional[FeeType] = Query(None, alias="feeType"),
    batch_id: Optional[str] = Query(None, alias="batchId"),
    student_id: Optional[str] = Query(None, alias="studentId"),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate")
) -> FeeListFilters:
    return FeeListFilters(
        search=search,
        status=status,
        fee_type=fee_type,
        batch_id=batch_id,
        student_id=student_id,
        academic_year=academic_year,
        start_date=start_date,
        end_date=end_date,
    )


def admin_list_filters(
    filters: FeeListFilters = Depends(list_filters),
    department_id: Optional[str] = Query(None, alias="departmentId")
) -> FeeListFilters:
    filters.department_id = department_id
    return filters


# ============================================
# RESPONSES
# ============================================

def fee_list_response(page: FeePage, today: date) -> FeeListResponse:
    return FeeListResponse(
        fees=[
            FeeResponse.from_record(fee, today, page.students.get(fee.student_id))
            for fee in page.fees
        ],
        pagination=PaginationInfo(
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
            total_count=page.total_count,
        ),
    )


def to_fee_stats(stats: Stats) -> FeeStats:
    return FeeStats(
        total_fees=stats.total_fees,
        pending_fees=stats.pending_fees,
        partially_paid_fees=stats.partially_paid_fees,
        paid_fees=stats.paid_fees,
        overdue_fees=stats.overdue_fees,
        waived_fees=stats.waived_fees,
        total_amount=float(stats.total_amount),
        collected_amount=float(stats.collected_amount),
        pending_amount=float(stats.pending_amount),
        collection_rate=stats.collection_rate,
    )


def fee_stats_response(
    stats: Stats,
    breakdown: List[FeeTypeTotals],
    academic_year: Optional[str]
) -> FeeStatsResponse:
    return FeeStatsResponse(
        overview=to_fee_stats(stats),
        fee_type_breakdown=[
            FeeTypeBreakdown(
                fee_type=entry.fee_type,
                count=entry.count,
                total_amount=float(entry.total_amount),
                collected_amount=float(entry.collected_amount),
            )
            for entry in breakdown
        ],
        academic_year=academic_year,
    )


def bulk_create_response(result: BulkResult, today: date) -> BulkCreateResponse:
    return BulkCreateResponse(
        message=f"Successfully created {result.created_count} fees",
        success=result.created_count,
        failed=result.failed_count,
        errors=[failure.describe() for failure in result.failures],
        fees=[FeeResponse.from_record(fee, today) for fee in result.fees],
    )


def payment_command(body: FeePaymentUpdate, actor: ActorContext) -> PaymentCommand:
    return PaymentCommand(
        status=body.status,
        amount_paid=body.amount_paid,
        payment_mode=body.payment_mode,
        remarks=body.remarks,
        actor_id=actor.user_id,
    )
