"""
college_fees/api/v1/endpoints/admin_fees.py
Fee management endpoints for the institution administrator
"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from college_fees.api.v1.fee_views import (
    admin_list_filters, bulk_create_response, fee_list_response, fee_stats_response,
    pagination_params, payment_command, to_fee_stats
)
from college_fees.core.dependencies import get_fee_service
from college_fees.core.security import require_admin
from college_fees.models.domain import ActorContext, Pagination
from college_fees.models.schemas import (
    BulkCreateResponse, DeleteResponse, DepartmentReportResponse, DepartmentReportRow,
    DepartmentReportSummary, FeeBulkCreate, FeeCreate, FeeListResponse, FeePaymentUpdate,
    FeeResponse, FeeStatsResponse
)
from college_fees.services.bulk import BulkFeeRequest
from college_fees.services.fee_service import FeeListFilters, FeeService
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=FeeListResponse)
async def list_fees(
    filters: FeeListFilters = Depends(admin_list_filters),
    pagination: Pagination = Depends(pagination_params),
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """
    List all fees with filters.
    - search matches student name or roll number
    - status=OVERDUE selects pending fees past their due date
    """
    page = await service.list_fees(actor, filters, pagination)
    return fee_list_response(page, service.today())


@router.post("", response_model=FeeResponse, status_code=status.HTTP_201_CREATED)
async def create_fee(
    fee_data: FeeCreate,
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """Create a fee for one student"""
    fee = await service.create_fee(
        actor,
        student_id=fee_data.student_id,
        amount=fee_data.amount,
        due_date=fee_data.due_date,
        fee_type=fee_data.fee_type,
        academic_year=fee_data.academic_year,
        description=fee_data.description,
    )
    student = await service.directory.get_student(fee.student_id)
    return FeeResponse.from_record(fee, service.today(), student)


@router.post("/bulk", response_model=BulkCreateResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_fees(
    bulk_data: FeeBulkCreate,
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """
    Create the same fee for every active student of a batch or department.
    Best-effort: per-student failures are reported, not raised.
    """
    result = await service.bulk_create(actor, BulkFeeRequest(**bulk_data.model_dump()))
    return bulk_create_response(result, service.today())


@router.get("/stats", response_model=FeeStatsResponse)
async def get_fee_stats(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """Institution-wide collection statistics"""
    stats, breakdown = await service.fee_stats(actor, academic_year)
    return fee_stats_response(stats, breakdown, academic_year)


@router.get("/reports/department", response_model=DepartmentReportResponse)
async def get_department_report(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """Department-wise collection report, best collection rate first"""
    reports = await service.department_report(actor, academic_year, start_date, end_date)

    rows = [
        DepartmentReportRow(
            department_id=r.department_id,
            department_name=r.department_name,
            department_code=r.department_code,
            total_students=r.total_students,
            stats=to_fee_stats(r.stats),
        )
        for r in reports
    ]
    summary = DepartmentReportSummary(
        total_departments=len(reports),
        total_students=sum(r.total_students for r in reports),
        total_amount=float(sum(r.stats.total_amount for r in reports)),
        total_collected=float(sum(r.stats.collected_amount for r in reports)),
        total_pending=float(sum(r.stats.pending_amount for r in reports)),
    )
    return DepartmentReportResponse(
        academic_year=academic_year,
        start_date=start_date,
        end_date=end_date,
        departments=rows,
        summary=summary,
    )


@router.get("/{fee_id}", response_model=FeeResponse)
async def get_fee(
    fee_id: str,
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    fee, student = await service.get_fee(actor, fee_id)
    return FeeResponse.from_record(fee, service.today(), student)


@router.post("/{fee_id}/mark-paid", response_model=FeeResponse)
async def mark_fee_paid(
    fee_id: str,
    payment: FeePaymentUpdate,
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """Record a payment, partial payment or waiver against a fee"""
    fee = await service.mark_paid(actor, fee_id, payment_command(payment, actor))
    student = await service.directory.get_student(fee.student_id)
    return FeeResponse.from_record(fee, service.today(), student)


@router.delete("/{fee_id}", response_model=DeleteResponse)
async def delete_fee(
    fee_id: str,
    actor: ActorContext = Depends(require_admin),
    service: FeeService = Depends(get_fee_service)
):
    """Hard-delete a fee regardless of its payment status"""
    await service.delete_fee(actor, fee_id)
    return DeleteResponse(message="Fee deleted successfully", id=fee_id)
