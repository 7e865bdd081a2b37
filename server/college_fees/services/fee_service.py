"""
college_fees/services/fee_service.py
Fee ledger operations behind the role-scoped endpoints.

Reads:  actor -> scope predicate -> store (cohort joined server-side) -> (summary)
Writes: actor -> scope check -> state machine -> store
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple
import logging

from pydantic import BaseModel

from college_fees.core.errors import AlreadySettled, Forbidden, InvalidTransition, NotFound, UnknownStudent
from college_fees.db.directory import StudentDirectory
from college_fees.db.fee_store import FeeQuery, FeeRecordStore
from college_fees.models.domain import (
    SETTLED_STATUSES,
    ActorContext,
    FeeRecord,
    FeeStatus,
    FeeType,
    Pagination,
    StudentRef,
    UserRole,
)
from college_fees.services.bulk import BulkFeeGenerator, BulkFeeRequest, BulkResult
from college_fees.services.fee_state import PaymentCommand, apply_payment, new_fee
from college_fees.services.scope import (
    FeeScope,
    authorize_student_write,
    ensure_can_write,
    scope_for,
)
from college_fees.services.stats import FeeTypeTotals, Stats, fee_type_breakdown, summarize

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeeListFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[FeeStatus] = None
    fee_type: Optional[FeeType] = None
    department_id: Optional[str] = None
    batch_id: Optional[str] = None
    student_id: Optional[str] = None
    academic_year: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class FeePage(BaseModel):
    fees: List[FeeRecord]
    students: Dict[str, StudentRef] = {}
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.limit - 1) // self.limit


class DepartmentSummary(BaseModel):
    department_id: str
    department_name: Optional[str] = None
    department_code: Optional[str] = None
    total_students: int = 0
    stats: Stats


class FeeService:
    """One instance per request; holds no state between requests."""

    def __init__(
        self,
        store: FeeRecordStore,
        directory: StudentDirectory,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.directory = directory
        self.clock = clock
        self.bulk = BulkFeeGenerator(store, directory, clock)

    def today(self) -> date:
        return self.clock().date()

    # ============================================
    # READS
    # ============================================

    def _query(self, scope: FeeScope, filters: FeeListFilters) -> FeeQuery:
        """Scope restrictions narrowed by the caller's list filters"""
        query = scope.fee_query(
            search=filters.search.strip() if filters.search and filters.search.strip() else None,
            fee_type=filters.fee_type,
            academic_year=filters.academic_year,
            due_from=filters.start_date,
            due_to=filters.end_date,
        )
        if filters.department_id:
            if query.department_id not in (None, filters.department_id):
                return FeeQuery(student_ids=frozenset())
            query.department_id = filters.department_id
        if filters.batch_id:
            query.batch_ids = _intersect(query.batch_ids, {filters.batch_id})
        if filters.student_id:
            query.student_ids = _intersect(query.student_ids, {filters.student_id})

        if filters.status == FeeStatus.OVERDUE:
            query.overdue_on = self.today()
        elif filters.status is not None:
            query.status = filters.status
        return query

    async def list_fees(
        self,
        actor: ActorContext,
        filters: FeeListFilters,
        pagination: Pagination,
    ) -> FeePage:
        scope = await scope_for(actor, self.directory)
        fees, total_count = await self.store.list(self._query(scope, filters), pagination)
        students = await self.directory.get_students(f.student_id for f in fees)
        return FeePage(
            fees=fees,
            students=students,
            total_count=total_count,
            page=pagination.page,
            limit=pagination.limit,
        )

    async def get_fee(self, actor: ActorContext, fee_id: str) -> Tuple[FeeRecord, Optional[StudentRef]]:
        scope = await scope_for(actor, self.directory)
        record = await self.store.get(fee_id)
        if not await scope.can_see(record.student_id, self.directory):
            # Out-of-scope records read exactly like missing ones
            raise NotFound(f"Fee {fee_id} not found")
        return record, await self.directory.get_student(record.student_id)

    async def student_fees(self, actor: ActorContext) -> List[FeeRecord]:
        scope = await scope_for(actor, self.directory)
        records = await self.store.list_all(scope.fee_query())
        return sorted(records, key=lambda r: r.due_date, reverse=True)

    async def fee_stats(
        self,
        actor: ActorContext,
        academic_year: Optional[str] = None,
    ) -> Tuple[Stats, List[FeeTypeTotals]]:
        scope = await scope_for(actor, self.directory)
        records = await self.store.list_all(scope.fee_query(academic_year=academic_year))
        return summarize(records, self.today()), fee_type_breakdown(records)

    async def department_report(
        self,
        actor: ActorContext,
        academic_year: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[DepartmentSummary]:
        if actor.role != UserRole.ADMINISTRATOR:
            raise Forbidden("Department reports are available to administrators only")

        today = self.today()
        reports = []
        for department in await self.directory.list_departments():
            department_id = department.get("department_id")
            if not department_id:
                logger.warning(f"Skipping department row without id: {department}")
                continue
            student_ids = await self.directory.student_ids_in_department(department_id)
            records = await self.store.list_all(FeeQuery(
                department_id=department_id,
                academic_year=academic_year,
                due_from=start_date,
                due_to=end_date,
            ))
            reports.append(DepartmentSummary(
                department_id=department_id,
                department_name=department.get("name"),
                department_code=department.get("code"),
                total_students=len(student_ids),
                stats=summarize(records, today),
            ))

        reports.sort(key=lambda r: Decimal(r.stats.collection_rate), reverse=True)
        return reports

    # ============================================
    # WRITES
    # ============================================

    async def create_fee(
        self,
        actor: ActorContext,
        *,
        student_id: str,
        amount: Decimal,
        due_date: date,
        fee_type: FeeType,
        academic_year: str,
        description: Optional[str] = None,
    ) -> FeeRecord:
        ensure_can_write(actor)
        record = new_fee(
            student_id=student_id,
            amount=amount,
            due_date=due_date,
            fee_type=fee_type,
            academic_year=academic_year,
            description=description,
            now=self.clock(),
        )

        student = await self.directory.get_student(student_id)
        if student is None:
            raise UnknownStudent(f"Student {student_id} not found")
        authorize_student_write(actor, student)

        created = await self.store.create(record)
        logger.info(f"Fee {created.id} created for student {student_id} by {actor.user_id}")
        return created

    async def bulk_create(self, actor: ActorContext, request: BulkFeeRequest) -> BulkResult:
        return await self.bulk.bulk_create(actor, request)

    async def _writable_record(self, actor: ActorContext, fee_id: str) -> FeeRecord:
        ensure_can_write(actor)
        record = await self.store.get(fee_id)
        if actor.role == UserRole.DEPARTMENT_HEAD:
            student = await self.directory.get_student(record.student_id)
            authorize_student_write(actor, student)
        return record

    async def mark_paid(self, actor: ActorContext, fee_id: str, command: PaymentCommand) -> FeeRecord:
        record = await self._writable_record(actor, fee_id)
        patch = apply_payment(record, command, self.clock())
        updated = await self.store.update(fee_id, patch, expected_status=record.status)
        if updated is None:
            # Another write moved the fee after it was read; NotFound if it was deleted
            current = await self.store.get(fee_id)
            logger.warning(
                f"Fee {fee_id} moved from {record.status.value} to {current.status.value} "
                f"before {actor.user_id} could mark it"
            )
            if current.status in SETTLED_STATUSES:
                raise AlreadySettled(f"Fee {fee_id} is already {current.status.value}")
            raise InvalidTransition(f"Fee {fee_id} was updated concurrently; reload and retry")
        logger.info(
            f"Fee {fee_id} marked {updated.status.value} by {actor.user_id} "
            f"(paid {updated.amount_paid} of {updated.amount})"
        )
        return updated

    async def delete_fee(self, actor: ActorContext, fee_id: str) -> None:
        """Unconditional hard delete; the only removal path for a fee"""
        record = await self._writable_record(actor, fee_id)
        await self.store.delete(fee_id)
        logger.info(f"Fee {fee_id} ({record.status.value}) deleted by {actor.user_id}")


def _intersect(current: Optional[FrozenSet[str]], extra) -> FrozenSet[str]:
    extra = frozenset(extra)
    return extra if current is None else current & extra


__all__ = [
    "utc_now",
    "FeeListFilters",
    "FeePage",
    "DepartmentSummary",
    "FeeService",
]
