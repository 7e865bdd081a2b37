"""
college_fees/db/directory.py
Read-only lookups over students, enrollments, batches and subjects.

The fee core never writes these tables; it only needs them to resolve a
cohort for bulk creation and to check one student against a role's cohort.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set
import logging

from pydantic import ValidationError

from college_fees.db.supabase import SupabaseQueries
from college_fees.models.domain import StudentRef

logger = logging.getLogger(__name__)


class StudentDirectory(ABC):

    @abstractmethod
    async def get_student(self, student_id: str) -> Optional[StudentRef]:
        ...

    @abstractmethod
    async def get_students(self, student_ids: Iterable[str]) -> Dict[str, StudentRef]:
        ...

    @abstractmethod
    async def students_in_batch(self, batch_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        """Raw student rows; bulk creation reports malformed ones per item"""

    @abstractmethod
    async def students_in_department(self, department_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def batch_department(self, batch_id: str) -> Optional[str]:
        """Department owning the batch, None for an unknown batch"""

    @abstractmethod
    async def batches_taught_by(self, faculty_id: str) -> Set[str]:
        ...

    @abstractmethod
    async def student_batches(self, student_id: str) -> Set[str]:
        """Batches the student is enrolled in"""

    @abstractmethod
    async def list_departments(self) -> List[Dict[str, Any]]:
        ...

    async def student_ids_in_department(self, department_id: str) -> Set[str]:
        rows = await self.students_in_department(department_id, active_only=False)
        return {row["student_id"] for row in rows if row.get("student_id")}


def to_student_ref(row: Dict[str, Any]) -> Optional[StudentRef]:
    try:
        return StudentRef(**{k: v for k, v in row.items() if k in StudentRef.model_fields})
    except ValidationError as e:
        logger.warning(f"Skipping malformed student row {row.get('student_id')}: {e}")
        return None


class SupabaseStudentDirectory(StudentDirectory):
    """Tables: students, enrollments(student_id, batch_id), batches, subjects, departments"""

    def __init__(self, db: Optional[SupabaseQueries] = None):
        self.db = db or SupabaseQueries()

    async def get_student(self, student_id: str) -> Optional[StudentRef]:
        row = await self.db.select_by_id("students", "student_id", student_id)
        return to_student_ref(row) if row else None

    async def get_students(self, student_ids: Iterable[str]) -> Dict[str, StudentRef]:
        ids = sorted(set(student_ids))
        if not ids:
            return {}
        rows = await self.db.select_all("students", in_filters={"student_id": ids}, order_by="student_id")
        refs = (to_student_ref(row) for row in rows)
        return {ref.student_id: ref for ref in refs if ref is not None}

    async def students_in_batch(self, batch_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {"enrollments.batch_id": batch_id}
        if active_only:
            filters["is_active"] = True
        rows = await self.db.select_all(
            "students", filters, order_by=("name", "student_id"),
            columns="*, enrollments!inner(batch_id)"
        )
        return [{k: v for k, v in row.items() if k != "enrollments"} for row in rows]

    async def students_in_department(self, department_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        filters = {"department_id": department_id}
        if active_only:
            filters["is_active"] = True
        return await self.db.select_all("students", filters, order_by=("name", "student_id"))

    async def batch_department(self, batch_id: str) -> Optional[str]:
        batch = await self.db.select_by_id("batches", "batch_id", batch_id)
        return batch.get("department_id") if batch else None

    async def batches_taught_by(self, faculty_id: str) -> Set[str]:
        subjects = await self.db.select_all(
            "subjects", {"faculty_id": faculty_id}, order_by="subject_id", columns="subject_id, batch_id"
        )
        return {s["batch_id"] for s in subjects if s.get("batch_id")}

    async def student_batches(self, student_id: str) -> Set[str]:
        enrollments = await self.db.select_all(
            "enrollments", {"student_id": student_id}, order_by="batch_id", columns="batch_id"
        )
        return {e["batch_id"] for e in enrollments if e.get("batch_id")}

    async def list_departments(self) -> List[Dict[str, Any]]:
        return await self.db.select_all("departments", order_by=("name", "department_id"))


__all__ = [
    "StudentDirectory",
    "SupabaseStudentDirectory",
    "to_student_ref",
]
