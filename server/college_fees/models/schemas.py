"""
college_fees/models/schemas.py
Request / response schemas for the fee endpoints
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from college_fees.models.domain import FeeRecord, FeeStatus, FeeType, PaymentMode, StudentRef


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; inputs accept both."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# FEE REQUESTS
# ============================================

class FeeCreate(CamelModel):
    student_id: str
    amount: Decimal
    due_date: date
    fee_type: FeeType
    academic_year: str
    description: Optional[str] = Field(None, max_length=500)


class FeeBulkCreate(CamelModel):
    department_id: Optional[str] = None
    batch_id: Optional[str] = None
    amount: Decimal
    due_date: date
    fee_type: FeeType
    academic_year: str
    description: Optional[str] = Field(None, max_length=500)


class FeePaymentUpdate(CamelModel):
    # Kept as a plain string so unknown targets surface as InvalidTransition
    status: str
    amount_paid: Optional[Decimal] = None
    payment_mode: Optional[PaymentMode] = None
    remarks: Optional[str] = Field(None, max_length=1000)


# ============================================
# FEE RESPONSES
# ============================================

class FeeResponse(CamelModel):
    id: str
    student_id: str
    student_name: Optional[str] = None
    roll_number: Optional[str] = None
    amount: float
    amount_paid: float = 0
    balance: float = 0
    due_date: date
    status: FeeStatus
    effective_status: FeeStatus
    is_overdue: bool = False
    fee_type: FeeType
    academic_year: str
    description: Optional[str] = None
    payment_mode: Optional[PaymentMode] = None
    paid_at: Optional[datetime] = None
    remarks: Optional[str] = None
    marked_by_user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(
        cls,
        record: FeeRecord,
        today: date,
        student: Optional[StudentRef] = None,
    ) -> "FeeResponse":
        return cls(
            id=record.id,
            student_id=record.student_id,
            student_name=student.name if student else None,
            roll_number=student.roll_number if student else None,
            amount=float(record.amount),
            amount_paid=float(record.amount_paid),
            balance=float(record.balance),
            due_date=record.due_date,
            status=record.status,
            effective_status=record.effective_status(today),
            is_overdue=record.is_overdue(today),
            fee_type=record.fee_type,
            academic_year=record.academic_year,
            description=record.description,
            payment_mode=record.payment_mode,
            paid_at=record.paid_at,
            remarks=record.remarks,
            marked_by_user_id=record.marked_by_user_id,
            created_at=record.created_at,
        )


class PaginationInfo(CamelModel):
    page: int
    limit: int
    total_pages: int
    total_count: int


class FeeListResponse(CamelModel):
    fees: List[FeeResponse]
    pagination: PaginationInfo


class BulkCreateResponse(CamelModel):
    message: str
    success: int
    failed: int
    errors: List[str] = []
    fees: List[FeeResponse] = []


class DeleteResponse(CamelModel):
    message: str
    id: str


# ============================================
# STATISTICS
# ============================================

class FeeStats(CamelModel):
    total_fees: int = 0
    pending_fees: int = 0
    partially_paid_fees: int = 0
    paid_fees: int = 0
    overdue_fees: int = 0
    waived_fees: int = 0
    total_amount: float = 0
    collected_amount: float = 0
    pending_amount: float = 0
    collection_rate: str = "0.0"


class FeeTypeBreakdown(CamelModel):
    fee_type: FeeType
    count: int
    total_amount: float
    collected_amount: float


class FeeStatsResponse(CamelModel):
    overview: FeeStats
    fee_type_breakdown: List[FeeTypeBreakdown] = []
    academic_year: Optional[str] = None


class DepartmentReportRow(CamelModel):
    department_id: str
    department_name: Optional[str] = None
    department_code: Optional[str] = None
    total_students: int = 0
    stats: FeeStats


class DepartmentReportSummary(CamelModel):
    total_departments: int = 0
    total_students: int = 0
    total_amount: float = 0
    total_collected: float = 0
    total_pending: float = 0


class DepartmentReportResponse(CamelModel):
    academic_year: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    departments: List[DepartmentReportRow]
    summary: DepartmentReportSummary


__all__ = [
    "CamelModel",
    "FeeCreate",
    "FeeBulkCreate",
    "FeePaymentUpdate",
    "FeeResponse",
    "PaginationInfo",
    "FeeListResponse",
    "BulkCreateResponse",
    "DeleteResponse",
    "FeeStats",
    "FeeTypeBreakdown",
    "FeeStatsResponse",
    "DepartmentReportRow",
    "DepartmentReportSummary",
    "DepartmentReportResponse",
]
