"""
college_fees/services/fee_state.py
Fee state machine: creation rule and payment transitions.

Pure functions. Nothing here touches storage; callers persist the record
or patch that comes back.

    PENDING -> PARTIALLY_PAID -> PAID
    PENDING -> PAID | WAIVED
    PARTIALLY_PAID -> PARTIALLY_PAID | WAIVED

OVERDUE is never entered here; it is derived at read time.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from college_fees.core.errors import AlreadySettled, InvalidAmount, InvalidTransition, UnknownStudent
from college_fees.models.domain import (
    PAYMENT_STATUSES,
    SETTLED_STATUSES,
    FeeRecord,
    FeeStatus,
    FeeType,
    PaymentMode,
)

Money = Union[Decimal, int, float, str]


class PaymentCommand(BaseModel):
    status: Union[FeeStatus, str]
    amount_paid: Optional[Decimal] = None
    payment_mode: Optional[PaymentMode] = None
    remarks: Optional[str] = None
    actor_id: str


def to_money(value: Optional[Money]) -> Optional[Decimal]:
    """Decimal from user input; floats go through str() to keep 0.1 as 0.1"""
    if value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmount(f"'{value}' is not a valid amount")
    if not amount.is_finite():
        raise InvalidAmount(f"'{value}' is not a valid amount")
    return amount


def new_fee(
    *,
    student_id: str,
    amount: Money,
    due_date: date,
    fee_type: FeeType,
    academic_year: str,
    description: Optional[str] = None,
    now: datetime,
) -> FeeRecord:
    """Build a fresh PENDING record with nothing paid"""
    value = to_money(amount)
    if value is None or value <= 0:
        raise InvalidAmount("Fee amount must be greater than 0")
    if not student_id:
        raise UnknownStudent("A fee must reference a student")

    return FeeRecord(
        id=str(uuid4()),
        student_id=student_id,
        amount=value,
        amount_paid=Decimal("0"),
        due_date=due_date,
        status=FeeStatus.PENDING,
        fee_type=fee_type,
        academic_year=academic_year,
        description=description,
        created_at=now,
    )


def parse_target_status(status: Union[FeeStatus, str]) -> FeeStatus:
    try:
        target = FeeStatus(status.upper() if isinstance(status, str) else status)
    except ValueError:
        raise InvalidTransition(f"Unknown fee status '{status}'")
    if target not in PAYMENT_STATUSES:
        allowed = ", ".join(s.value for s in PAYMENT_STATUSES)
        raise InvalidTransition(f"Cannot mark a fee as {target.value}; expected one of {allowed}")
    return target


def apply_payment(record: FeeRecord, command: PaymentCommand, now: datetime) -> Dict[str, Any]:
    """
    Validate a payment action against `record` and return the field patch.

    Raises:
        InvalidTransition: target is not PAID / PARTIALLY_PAID / WAIVED,
            or PAID without a payment mode
        AlreadySettled: the record is already PAID or WAIVED
        InvalidAmount: partial amount missing, <= 0 or >= the fee amount
    """
    target = parse_target_status(command.status)

    if record.status in SETTLED_STATUSES:
        raise AlreadySettled(f"Fee {record.id} is already {record.status.value}")

    patch: Dict[str, Any] = {"status": target}

    if target == FeeStatus.PAID:
        if command.payment_mode is None:
            raise InvalidTransition("A payment mode is required to mark a fee as PAID")
        # Full settlement is definitional; any supplied amount is ignored
        patch["amount_paid"] = record.amount
        patch["payment_mode"] = command.payment_mode

    elif target == FeeStatus.PARTIALLY_PAID:
        amount_paid = to_money(command.amount_paid)
        if amount_paid is None:
            raise InvalidAmount("amountPaid is required for a partial payment")
        if amount_paid <= 0 or amount_paid >= record.amount:
            raise InvalidAmount(
                f"Partial payment must be greater than 0 and less than {record.amount}"
            )
        patch["amount_paid"] = amount_paid
        if command.payment_mode is not None:
            patch["payment_mode"] = command.payment_mode

    # WAIVED forgives the remainder: amount_paid and payment_mode stay as they are

    if target in (FeeStatus.PAID, FeeStatus.PARTIALLY_PAID) and record.paid_at is None:
        patch["paid_at"] = now

    if command.remarks is not None:
        patch["remarks"] = command.remarks

    patch["marked_by_user_id"] = command.actor_id
    return patch


def transition(record: FeeRecord, command: PaymentCommand, now: datetime) -> FeeRecord:
    """apply_payment, returning the record as it will look once persisted"""
    return record.model_copy(update=apply_payment(record, command, now))


__all__ = [
    "PaymentCommand",
    "to_money",
    "new_fee",
    "parse_target_status",
    "apply_payment",
    "transition",
]
