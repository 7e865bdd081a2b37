"""
college_fees/services/stats.py
Collection statistics over an already scope-filtered set of fee records
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List

from pydantic import BaseModel

from college_fees.models.domain import UNPAID_STATUSES, FeeRecord, FeeStatus, FeeType

ZERO = Decimal("0")
ONE_DECIMAL = Decimal("0.1")


class Stats(BaseModel):
    total_fees: int = 0
    # A pending fee past its due date counts here and in overdue_fees
    pending_fees: int = 0
    partially_paid_fees: int = 0
    paid_fees: int = 0
    overdue_fees: int = 0
    waived_fees: int = 0
    total_amount: Decimal = ZERO
    collected_amount: Decimal = ZERO
    pending_amount: Decimal = ZERO
    collection_rate: str = "0.0"


class FeeTypeTotals(BaseModel):
    fee_type: FeeType
    count: int = 0
    total_amount: Decimal = ZERO
    collected_amount: Decimal = ZERO


def collection_rate(collected: Decimal, total: Decimal) -> str:
    """Percentage collected, one decimal place; "0.0" when nothing is owed"""
    if total == 0:
        return "0.0"
    rate = (collected / total * 100).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return f"{rate:.1f}"


def summarize(records: Iterable[FeeRecord], today: date) -> Stats:
    stats = Stats()
    total_amount = ZERO
    collected_amount = ZERO

    for record in records:
        stats.total_fees += 1
        total_amount += record.amount
        collected_amount += record.amount_paid

        if record.status in UNPAID_STATUSES:
            stats.pending_fees += 1
        elif record.status == FeeStatus.PARTIALLY_PAID:
            stats.partially_paid_fees += 1
        elif record.status == FeeStatus.PAID:
            stats.paid_fees += 1
        elif record.status == FeeStatus.WAIVED:
            stats.waived_fees += 1

        if record.is_overdue(today):
            stats.overdue_fees += 1

    stats.total_amount = total_amount
    stats.collected_amount = collected_amount
    stats.pending_amount = total_amount - collected_amount
    stats.collection_rate = collection_rate(collected_amount, total_amount)
    return stats


def fee_type_breakdown(records: Iterable[FeeRecord]) -> List[FeeTypeTotals]:
    totals = OrderedDict((fee_type, FeeTypeTotals(fee_type=fee_type)) for fee_type in FeeType)
    for record in records:
        entry = totals[record.fee_type]
        entry.count += 1
        entry.total_amount += record.amount
        entry.collected_amount += record.amount_paid
    return [entry for entry in totals.values() if entry.count]


__all__ = [
    "Stats",
    "FeeTypeTotals",
    "collection_rate",
    "summarize",
    "fee_type_breakdown",
]
