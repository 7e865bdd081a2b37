"""
college_fees/api/v1/endpoints/hod_fees.py
Fee endpoints for department heads, scoped to their own department
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from college_fees.api.v1.fee_views import (
    bulk_create_response, fee_list_response, fee_stats_response,
    list_filters, pagination_params, payment_command
)
from college_fees.core.dependencies import get_fee_service
from college_fees.core.security import require_hod
from college_fees.models.domain import ActorContext, Pagination
from college_fees.models.schemas import (
    BulkCreateResponse, DeleteResponse, FeeBulkCreate, FeeCreate, FeeListResponse,
    FeePaymentUpdate, FeeResponse, FeeStatsResponse
)
from college_fees.services.bulk import BulkFeeRequest
from college_fees.services.fee_service import FeeListFilters, FeeService
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=FeeListResponse)
async def list_department_fees(
    filters: FeeListFilters = Depends(list_filters),
    pagination: Pagination = Depends(pagination_params),
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    """List fees of students in the HOD's department"""
    page = await service.list_fees(actor, filters, pagination)
    return fee_list_response(page, service.today())


@router.post("", response_model=FeeResponse, status_code=status.HTTP_201_CREATED)
async def create_department_fee(
    fee_data: FeeCreate,
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    """Create a fee for a student of the HOD's department"""
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
async def bulk_create_department_fees(
    bulk_data: FeeBulkCreate,
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    """
    Bulk-create fees for a batch of the department, or the whole department.
    Targets outside the HOD's department are rejected with 403.
    """
    result = await service.bulk_create(actor, BulkFeeRequest(**bulk_data.model_dump()))
    return bulk_create_response(result, service.today())


@router.get("/stats", response_model=FeeStatsResponse)
async def get_department_fee_stats(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    stats, breakdown = await service.fee_stats(actor, academic_year)
    return fee_stats_response(stats, breakdown, academic_year)


@router.get("/{fee_id}", response_model=FeeResponse)
async def get_department_fee(
    fee_id: str,
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    fee, student = await service.get_fee(actor, fee_id)
    return FeeResponse.from_record(fee, service.today(), student)


@router.post("/{fee_id}/mark-paid", response_model=FeeResponse)
async def mark_department_fee_paid(
    fee_id: str,
    payment: FeePaymentUpdate,
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    fee = await service.mark_paid(actor, fee_id, payment_command(payment, actor))
    student = await service.directory.get_student(fee.student_id)
    return FeeResponse.from_record(fee, service.today(), student)


@router.delete("/{fee_id}", response_model=DeleteResponse)
async def delete_department_fee(
    fee_id: str,
    actor: ActorContext = Depends(require_hod),
    service: FeeService = Depends(get_fee_service)
):
    await service.delete_fee(actor, fee_id)
    return DeleteResponse(message="Fee deleted successfully", id=fee_id)
