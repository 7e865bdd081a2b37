"""
college_fees/services/bulk.py
Bulk fee generation across a batch or a department.

Best-effort: each student gets an independent create and a
failure is recorded against that student without stopping the run.
There is no idempotency key, so repeating a request duplicates fees.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from pydantic import BaseModel, ValidationError

from college_fees.core.errors import FeeError, InvalidAmount, MissingScope, UnknownStudent
from college_fees.db.directory import StudentDirectory
from college_fees.db.fee_store import FeeRecordStore
from college_fees.models.domain import ActorContext, FeeRecord, FeeType
from college_fees.services.fee_state import new_fee, to_money
from college_fees.services.scope import authorize_cohort_write, ensure_can_write

logger = logging.getLogger(__name__)


class BulkFeeRequest(BaseModel):
    department_id: Optional[str] = None
    batch_id: Optional[str] = None
    amount: Decimal
    due_date: date
    fee_type: FeeType
    academic_year: str
    description: Optional[str] = None


class BulkFailure(BaseModel):
    student_id: Optional[str] = None
    position: int
    reason: str

    def describe(self) -> str:
        who = self.student_id or f"student #{self.position}"
        return f"{who}: {self.reason}"


class BulkResult(BaseModel):
    population: int = 0
    fees: List[FeeRecord] = []
    failures: List[BulkFailure] = []

    @property
    def created_count(self) -> int:
        return len(self.fees)

    @property
    def failed_count(self) -> int:
        return self.population - self.created_count


class BulkFeeGenerator:

    def __init__(
        self,
        store: FeeRecordStore,
        directory: StudentDirectory,
        clock: Callable[[], datetime],
    ):
        self.store = store
        self.directory = directory
        self.clock = clock

    async def bulk_create(self, actor: ActorContext, request: BulkFeeRequest) -> BulkResult:
        ensure_can_write(actor)
        if not request.department_id and not request.batch_id:
            raise MissingScope("Either batchId or departmentId is required")

        await authorize_cohort_write(actor, self.directory, request.department_id, request.batch_id)

        amount = to_money(request.amount)
        if amount is None or amount <= 0:
            raise InvalidAmount("Fee amount must be greater than 0")

        # A batch narrows further than its department, so it wins
        if request.batch_id:
            population = await self.directory.students_in_batch(request.batch_id)
        else:
            population = await self.directory.students_in_department(request.department_id)

        result = BulkResult(population=len(population))
        now = self.clock()

        for position, student in enumerate(population, start=1):
            student_id = student.get("student_id") if isinstance(student, dict) else None
            try:
                if not student_id:
                    raise UnknownStudent("Student record has no id")
                record = new_fee(
                    student_id=student_id,
                    amount=amount,
                    due_date=request.due_date,
                    fee_type=request.fee_type,
                    academic_year=request.academic_year,
                    description=request.description,
                    now=now,
                )
                result.fees.append(await self.store.create(record))
            except (FeeError, ValidationError) as e:
                reason = e.message if isinstance(e, FeeError) else str(e)
                logger.warning(f"Bulk fee skipped {student_id or f'student #{position}'}: {reason}")
                result.failures.append(
                    BulkFailure(student_id=student_id if isinstance(student_id, str) else None,
                                position=position, reason=reason)
                )

        logger.info(
            f"Bulk {request.fee_type.value} fees by {actor.user_id}: "
            f"{result.created_count} created, {result.failed_count} failed"
        )
        return result


__all__ = [
    "BulkFeeRequest",
    "BulkFailure",
    "BulkResult",
    "BulkFeeGenerator",
]
