"""
college_fees/services/scope.py
Role-based visibility and write capability for the fee ledger.

Every read and write goes through here before the store is touched:
reads get a cohort predicate (out-of-scope records are silently
excluded), writes are checked record by record and raise.
"""
from __future__ import annotations

from typing import FrozenSet, Optional
import logging

from pydantic import BaseModel

from college_fees.core.errors import Forbidden, MissingScope, OutOfScope
from college_fees.db.directory import StudentDirectory
from college_fees.db.fee_store import FeeQuery
from college_fees.models.domain import ActorContext, StudentRef, UserRole

logger = logging.getLogger(__name__)

# Roles allowed to create, mark and delete fees
WRITE_ROLES = frozenset({UserRole.ADMINISTRATOR, UserRole.DEPARTMENT_HEAD})


class FeeScope(BaseModel):
    """
    What an actor may read. Each restriction left at None is unrestricted;
    cohorts stay predicates so the store can join them server-side.
    """
    actor: ActorContext
    student_ids: Optional[FrozenSet[str]] = None
    department_id: Optional[str] = None
    batch_ids: Optional[FrozenSet[str]] = None

    async def can_see(self, student_id: str, directory: StudentDirectory) -> bool:
        if self.student_ids is not None and student_id not in self.student_ids:
            return False
        if self.department_id is not None:
            student = await directory.get_student(student_id)
            if student is None or student.department_id != self.department_id:
                return False
        if self.batch_ids is not None:
            if not self.batch_ids & await directory.student_batches(student_id):
                return False
        return True

    def fee_query(self, **filters) -> FeeQuery:
        return FeeQuery(
            student_ids=self.student_ids,
            department_id=self.department_id,
            batch_ids=self.batch_ids,
            **filters
        )


def can_write(role: UserRole) -> bool:
    return role in WRITE_ROLES


def ensure_can_write(actor: ActorContext) -> None:
    if not can_write(actor.role):
        raise Forbidden(f"Role {actor.role.value} has read-only access to fees")


def require_department(actor: ActorContext) -> str:
    if not actor.department_id:
        raise MissingScope("Department head is not assigned to any department")
    return actor.department_id


async def scope_for(actor: ActorContext, directory: StudentDirectory) -> FeeScope:
    """Visible cohort for `actor`"""
    if actor.role == UserRole.ADMINISTRATOR:
        return FeeScope(actor=actor)

    if actor.role == UserRole.DEPARTMENT_HEAD:
        return FeeScope(actor=actor, department_id=require_department(actor))

    if actor.role == UserRole.FACULTY:
        batch_ids = await directory.batches_taught_by(actor.user_id)
        logger.debug(f"Faculty {actor.user_id} sees students across {len(batch_ids)} batches")
        return FeeScope(actor=actor, batch_ids=frozenset(batch_ids))

    if actor.role == UserRole.STUDENT:
        return FeeScope(actor=actor, student_ids=frozenset({actor.user_id}))

    raise Forbidden(f"Role {actor.role} has no access to fees")


def authorize_student_write(actor: ActorContext, student: Optional[StudentRef]) -> None:
    """
    Raises Forbidden for read-only roles and OutOfScope when a department
    head targets a student outside their department.
    """
    ensure_can_write(actor)
    if actor.role == UserRole.DEPARTMENT_HEAD:
        department_id = require_department(actor)
        if student is None or student.department_id != department_id:
            raise OutOfScope("Student is outside your department")


async def authorize_cohort_write(
    actor: ActorContext,
    directory: StudentDirectory,
    department_id: Optional[str],
    batch_id: Optional[str],
) -> None:
    """Bulk targets for a department head must sit inside their department"""
    ensure_can_write(actor)
    if actor.role != UserRole.DEPARTMENT_HEAD:
        return
    own_department = require_department(actor)
    if department_id and department_id != own_department:
        raise OutOfScope("Cannot create fees for another department")
    if batch_id:
        batch_department = await directory.batch_department(batch_id)
        if batch_department != own_department:
            raise OutOfScope("Batch is outside your department")


__all__ = [
    "WRITE_ROLES",
    "FeeScope",
    "can_write",
    "ensure_can_write",
    "require_department",
    "scope_for",
    "authorize_student_write",
    "authorize_cohort_write",
]
