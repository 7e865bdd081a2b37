"""
college_fees/db/fee_store.py
Fee Record Store: the persistence boundary for fee records.

No business rule lives here. Services hand in fully-formed records or
patches and read records back; rows that cannot be parsed are skipped
with a warning so one bad row never fails a listing or a summary.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import logging

from pydantic import BaseModel, ValidationError

from college_fees.core.config import settings
from college_fees.core.errors import NotFound, StorageFailure
from college_fees.db.supabase import SupabaseQueries, ilike_pattern
from college_fees.models.domain import UNPAID_STATUSES, FeeRecord, FeeStatus, FeeType, Pagination, StudentRef

logger = logging.getLogger(__name__)

FEES_TABLE = "fees"

# domain attribute -> column name, where they differ
_COLUMN_NAMES = {
    "id": "fee_id",
    "marked_by_user_id": "marked_by",
}
_ATTRIBUTE_NAMES = {column: attr for attr, column in _COLUMN_NAMES.items()}
_MONEY_FIELDS = ("amount", "amount_paid")


class FeeQuery(BaseModel):
    """
    Filters a fee listing. Each cohort restriction left at None is
    unrestricted; an empty id set matches nothing.
    """
    student_ids: Optional[FrozenSet[str]] = None
    # Resolved through the fee's student, joined server-side
    department_id: Optional[str] = None
    batch_ids: Optional[FrozenSet[str]] = None
    # Case-insensitive substring of the student's name or roll number
    search: Optional[str] = None
    status: Optional[FeeStatus] = None
    fee_type: Optional[FeeType] = None
    academic_year: Optional[str] = None
    due_from: Optional[date] = None
    due_to: Optional[date] = None
    # Derived OVERDUE: pending (or legacy overdue) records due before this day
    overdue_on: Optional[date] = None

    @property
    def matches_nothing(self) -> bool:
        return (self.student_ids is not None and len(self.student_ids) == 0) or \
            (self.batch_ids is not None and len(self.batch_ids) == 0)

    @property
    def joins_student(self) -> bool:
        return self.department_id is not None or self.batch_ids is not None or bool(self.search)

    def matches(
        self,
        record: FeeRecord,
        student: Optional[StudentRef] = None,
        student_batches: FrozenSet[str] = frozenset(),
    ) -> bool:
        """
        In-process evaluation, mirrors the SQL filters below. `student` and
        `student_batches` stand in for the joined student row.
        """
        if self.student_ids is not None and record.student_id not in self.student_ids:
            return False
        if self.joins_student and student is None:
            return False
        if self.department_id is not None and student.department_id != self.department_id:
            return False
        if self.batch_ids is not None and not (self.batch_ids & student_batches):
            return False
        if self.search:
            needle = self.search.strip().lower()
            if needle not in (student.name or "").lower() and needle not in (student.roll_number or "").lower():
                return False
        if self.status == FeeStatus.PENDING:
            if record.status not in UNPAID_STATUSES:
                return False
        elif self.status is not None and record.status != self.status:
            return False
        if self.fee_type is not None and record.fee_type != self.fee_type:
            return False
        if self.academic_year is not None and record.academic_year != self.academic_year:
            return False
        if self.due_from is not None and record.due_date < self.due_from:
            return False
        if self.due_to is not None and record.due_date > self.due_to:
            return False
        if self.overdue_on is not None and not record.is_overdue(self.overdue_on):
            return False
        return True


# ============================================
# ROW CONVERSION
# ============================================

def record_to_row(values: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize domain values (full record or patch) into column values"""
    row = {}
    for attr, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        row[_COLUMN_NAMES.get(attr, attr)] = value
    return row


def row_to_record(row: Dict[str, Any]) -> Optional[FeeRecord]:
    """Parse a stored row, or return None (and warn) if it is malformed"""
    try:
        values = {_ATTRIBUTE_NAMES.get(column, column): value for column, value in row.items()}
        for field in _MONEY_FIELDS:
            if values.get(field) is not None:
                values[field] = Decimal(str(values[field]))
        if values.get("amount_paid") is None:
            values["amount_paid"] = Decimal("0")
        known = {k: v for k, v in values.items() if k in FeeRecord.model_fields}
        return FeeRecord(**known)
    except (ValidationError, InvalidOperation, TypeError, AttributeError) as e:
        logger.warning(f"Skipping malformed fee row {row.get('fee_id') if isinstance(row, dict) else row!r}: {e}")
        return None


def rows_to_records(rows: List[Dict[str, Any]]) -> List[FeeRecord]:
    records = []
    for row in rows:
        record = row_to_record(row)
        if record is not None:
            records.append(record)
    return records


# ============================================
# STORE CONTRACT
# ============================================

class FeeRecordStore(ABC):
    """create / get / list / update / delete over fee records"""

    @abstractmethod
    async def create(self, record: FeeRecord) -> FeeRecord:
        ...

    @abstractmethod
    async def get(self, fee_id: str) -> FeeRecord:
        """Raises NotFound when no record has this id"""

    @abstractmethod
    async def list(self, query: FeeQuery, pagination: Pagination) -> Tuple[List[FeeRecord], int]:
        """One page of matches, newest first, plus the total match count"""

    @abstractmethod
    async def list_all(self, query: FeeQuery) -> List[FeeRecord]:
        ...

    @abstractmethod
    async def update(
        self,
        fee_id: str,
        patch: Dict[str, Any],
        expected_status: Optional[FeeStatus] = None,
    ) -> Optional[FeeRecord]:
        """
        Apply `patch` in one conditional write. With `expected_status` the
        row is only touched while it still holds that status. Returns None
        when no row matched.
        """

    @abstractmethod
    async def delete(self, fee_id: str) -> None:
        ...


class SupabaseFeeStore(FeeRecordStore):
    """Fee records in the Supabase `fees` table"""

    def __init__(self, db: Optional[SupabaseQueries] = None, fetch_chunk: Optional[int] = None):
        self.db = db or SupabaseQueries()
        self.fetch_chunk = fetch_chunk or settings.STORE_FETCH_CHUNK

    def _columns(self, query: FeeQuery) -> str:
        """Select list, with the student row inner-joined when a cohort filter needs it"""
        if not query.joins_student:
            return "*"
        embedded = []
        if query.department_id is not None:
            embedded.append("department_id")
        if query.search:
            embedded.extend(["name", "roll_number"])
        if query.batch_ids is not None:
            embedded.append("enrollments!inner(batch_id)")
        return f"*, students!inner({', '.join(embedded)})"

    def _filtered(self, query: FeeQuery, count: bool = False):
        columns = self._columns(query)
        builder = self.db.table(FEES_TABLE).select(columns, count="exact") if count \
            else self.db.table(FEES_TABLE).select(columns)

        if query.student_ids is not None:
            builder = builder.in_("student_id", sorted(query.student_ids))
        if query.department_id is not None:
            builder = builder.eq("students.department_id", query.department_id)
        if query.batch_ids is not None:
            builder = builder.in_("students.enrollments.batch_id", sorted(query.batch_ids))
        pattern = ilike_pattern(query.search) if query.search else None
        if pattern:
            builder = builder.or_(
                f"name.ilike.{pattern},roll_number.ilike.{pattern}",
                reference_table="students"
            )
        if query.status == FeeStatus.PENDING:
            builder = builder.in_("status", [s.value for s in UNPAID_STATUSES])
        elif query.status is not None:
            builder = builder.eq("status", query.status.value)
        if query.fee_type is not None:
            builder = builder.eq("fee_type", query.fee_type.value)
        if query.academic_year:
            builder = builder.eq("academic_year", query.academic_year)
        if query.due_from is not None:
            builder = builder.gte("due_date", query.due_from.isoformat())
        if query.due_to is not None:
            builder = builder.lte("due_date", query.due_to.isoformat())
        if query.overdue_on is not None:
            builder = builder.in_(
                "status", [s.value for s in UNPAID_STATUSES]
            ).lt("due_date", query.overdue_on.isoformat())
        return builder

    async def create(self, record: FeeRecord) -> FeeRecord:
        row = await self.db.insert_one(FEES_TABLE, record_to_row(record.model_dump(exclude_none=True)))
        created = row_to_record(row) if row else None
        # Some deployments return no representation on insert
        return created or record

    async def get(self, fee_id: str) -> FeeRecord:
        row = await self.db.select_by_id(FEES_TABLE, "fee_id", fee_id)
        record = row_to_record(row) if row else None
        if record is None:
            raise NotFound(f"Fee {fee_id} not found")
        return record

    async def list(self, query: FeeQuery, pagination: Pagination) -> Tuple[List[FeeRecord], int]:
        if query.matches_nothing:
            return [], 0

        start = pagination.offset
        end = start + pagination.limit - 1
        response = self.db.run(
            self._filtered(query, count=True).order("created_at", desc=True).order("fee_id").range(start, end),
            f"list {FEES_TABLE}"
        )
        total_count = response.count if response.count else 0
        return rows_to_records(response.data or []), total_count

    async def list_all(self, query: FeeQuery) -> List[FeeRecord]:
        if query.matches_nothing:
            return []

        rows = self.db.fetch_all(
            lambda: self._filtered(query).order("fee_id"),
            f"read {FEES_TABLE}",
            self.fetch_chunk
        )
        records = rows_to_records(rows)
        logger.debug(f"Read {len(records)} fee records for summary")
        return records

    async def update(
        self,
        fee_id: str,
        patch: Dict[str, Any],
        expected_status: Optional[FeeStatus] = None,
    ) -> Optional[FeeRecord]:
        filters = {"status": expected_status.value} if expected_status is not None else None
        row = await self.db.update_by_id(FEES_TABLE, "fee_id", fee_id, record_to_row(patch), filters)
        if not row:
            return None
        record = row_to_record(row)
        if record is None:
            raise StorageFailure(f"Fee {fee_id} could not be read back after update")
        return record

    async def delete(self, fee_id: str) -> None:
        deleted = await self.db.delete_by_id(FEES_TABLE, "fee_id", fee_id)
        if not deleted:
            raise NotFound(f"Fee {fee_id} not found")


__all__ = [
    "FeeQuery",
    "FeeRecordStore",
    "SupabaseFeeStore",
    "record_to_row",
    "row_to_record",
    "rows_to_records",
]
