"""
college_fees/api/v1/endpoints/student_fees.py
A student's own fee records
"""
from typing import List
from fastapi import APIRouter, Depends
from college_fees.core.dependencies import get_fee_service
from college_fees.core.security import require_student
from college_fees.models.domain import ActorContext
from college_fees.models.schemas import FeeResponse
from college_fees.services.fee_service import FeeService

router = APIRouter()


@router.get("", response_model=List[FeeResponse])
async def get_my_fees(
    actor: ActorContext = Depends(require_student),
    service: FeeService = Depends(get_fee_service)
):
    """Own fees, latest due date first"""
    today = service.today()
    return [FeeResponse.from_record(fee, today) for fee in await service.student_fees(actor)]
