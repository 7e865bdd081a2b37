"""
college_fees/models/domain.py
Ledger records and the actor context the fee core works with
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ============================================
# ENUMS
# ============================================

class UserRole(str, Enum):
    ADMINISTRATOR = "ADMINISTRATOR"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    FACULTY = "FACULTY"
    STUDENT = "STUDENT"


class FeeStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    WAIVED = "WAIVED"


class FeeType(str, Enum):
    TUITION = "TUITION"
    EXAM = "EXAM"
    LIBRARY = "LIBRARY"
    HOSTEL = "HOSTEL"
    TRANSPORT = "TRANSPORT"
    LAB = "LAB"
    MISCELLANEOUS = "MISCELLANEOUS"


class PaymentMode(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"
    CHEQUE = "CHEQUE"
    UPI = "UPI"


# Statuses a caller may request through the payment action
PAYMENT_STATUSES = (FeeStatus.PAID, FeeStatus.PARTIALLY_PAID, FeeStatus.WAIVED)

# Statuses after which no further payment action is accepted
SETTLED_STATUSES = (FeeStatus.PAID, FeeStatus.WAIVED)

# Unpaid obligations; legacy rows may still store OVERDUE
UNPAID_STATUSES = (FeeStatus.PENDING, FeeStatus.OVERDUE)


# ============================================
# IDENTITY
# ============================================

class ActorContext(BaseModel):
    """Resolved (user, role, department) triple for one request."""
    user_id: str
    role: UserRole
    department_id: Optional[str] = None


# ============================================
# STUDENTS
# ============================================

class StudentRef(BaseModel):
    student_id: str
    name: Optional[str] = None
    roll_number: Optional[str] = None
    department_id: Optional[str] = None
    is_active: bool = True


# ============================================
# FEE RECORD
# ============================================

class FeeRecord(BaseModel):
    """
    One monetary obligation owed by one student.

    `amount`, `student_id` and `due_date` never change after creation;
    only the payment fields move, and only through the state machine.
    """
    id: str
    student_id: str
    amount: Decimal
    amount_paid: Decimal = Decimal("0")
    due_date: date
    status: FeeStatus = FeeStatus.PENDING
    fee_type: FeeType
    academic_year: str
    description: Optional[str] = None
    payment_mode: Optional[PaymentMode] = None
    paid_at: Optional[datetime] = None
    remarks: Optional[str] = None
    marked_by_user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def balance(self) -> Decimal:
        return self.amount - self.amount_paid

    def is_overdue(self, today: date) -> bool:
        """OVERDUE is derived at read time, never entered by a transition."""
        if self.status == FeeStatus.OVERDUE:
            return True
        return self.status == FeeStatus.PENDING and self.due_date < today

    def effective_status(self, today: date) -> FeeStatus:
        if self.is_overdue(today):
            return FeeStatus.OVERDUE
        return self.status


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


__all__ = [
    "UserRole",
    "FeeStatus",
    "FeeType",
    "PaymentMode",
    "PAYMENT_STATUSES",
    "SETTLED_STATUSES",
    "UNPAID_STATUSES",
    "ActorContext",
    "StudentRef",
    "FeeRecord",
    "Pagination",
]
