"""
college_fees/api/v1/endpoints/faculty_fees.py
Read-only fee views for faculty: students of the batches they teach
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from college_fees.api.v1.fee_views import fee_list_response, fee_stats_response, list_filters, pagination_params
from college_fees.core.dependencies import get_fee_service
from college_fees.core.security import require_faculty
from college_fees.models.domain import ActorContext, Pagination
from college_fees.models.schemas import FeeListResponse, FeeResponse, FeeStatsResponse
from college_fees.services.fee_service import FeeListFilters, FeeService

router = APIRouter()


@router.get("", response_model=FeeListResponse)
async def list_student_fees(
    filters: FeeListFilters = Depends(list_filters),
    pagination: Pagination = Depends(pagination_params),
    actor: ActorContext = Depends(require_faculty),
    service: FeeService = Depends(get_fee_service)
):
    page = await service.list_fees(actor, filters, pagination)
    return fee_list_response(page, service.today())


@router.get("/stats", response_model=FeeStatsResponse)
async def get_student_fee_stats(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    actor: ActorContext = Depends(require_faculty),
    service: FeeService = Depends(get_fee_service)
):
    stats, breakdown = await service.fee_stats(actor, academic_year)
    return fee_stats_response(stats, breakdown, academic_year)


@router.get("/{fee_id}", response_model=FeeResponse)
async def get_student_fee(
    fee_id: str,
    actor: ActorContext = Depends(require_faculty),
    service: FeeService = Depends(get_fee_service)
):
    fee, student = await service.get_fee(actor, fee_id)
    return FeeResponse.from_record(fee, service.today(), student)
