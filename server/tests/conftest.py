"""
In-memory store and directory for the fee ledger tests, plus a seeded
college: two departments, three batches, two faculty members.
"""
import os

# Required settings, before anything imports college_fees.core.config
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import pytest
from fastapi.testclient import TestClient

from college_fees.core.dependencies import get_fee_service
from college_fees.core.errors import NotFound, StorageFailure
from college_fees.core.security import create_access_token
from college_fees.db.directory import StudentDirectory, to_student_ref
from college_fees.db.fee_store import FeeQuery, FeeRecordStore
from college_fees.main import app
from college_fees.models.domain import ActorContext, FeeRecord, FeeStatus, FeeType, Pagination, StudentRef, UserRole
from college_fees.services.fee_service import FeeService

NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


class InMemoryFeeStore(FeeRecordStore):
    """Evaluates FeeQuery in process, joining students through `directory`"""

    def __init__(self, directory: StudentDirectory):
        self.directory = directory
        self.records: Dict[str, FeeRecord] = {}
        self.fail_for: Set[str] = set()

    async def create(self, record: FeeRecord) -> FeeRecord:
        if record.student_id in self.fail_for:
            raise StorageFailure(f"insert rejected for {record.student_id}")
        self.records[record.id] = record
        return record

    async def get(self, fee_id: str) -> FeeRecord:
        if fee_id not in self.records:
            raise NotFound(f"Fee {fee_id} not found")
        return self.records[fee_id]

    async def list(self, query: FeeQuery, pagination: Pagination) -> Tuple[List[FeeRecord], int]:
        matches = await self.list_all(query)
        matches.sort(key=lambda r: r.created_at or NOW, reverse=True)
        return matches[pagination.offset:pagination.offset + pagination.limit], len(matches)

    async def list_all(self, query: FeeQuery) -> List[FeeRecord]:
        if query.matches_nothing:
            return []
        matches = []
        for record in list(self.records.values()):
            student = await self.directory.get_student(record.student_id)
            batches = frozenset(await self.directory.student_batches(record.student_id))
            if query.matches(record, student, batches):
                matches.append(record)
        return matches

    async def update(
        self,
        fee_id: str,
        patch: Dict[str, Any],
        expected_status: Optional[FeeStatus] = None,
    ) -> Optional[FeeRecord]:
        # check and write with no await in between, like a conditional UPDATE
        record = self.records.get(fee_id)
        if record is None or (expected_status is not None and record.status != expected_status):
            return None
        self.records[fee_id] = record.model_copy(update=patch)
        return self.records[fee_id]

    async def delete(self, fee_id: str) -> None:
        await self.get(fee_id)
        del self.records[fee_id]


class InMemoryDirectory(StudentDirectory):

    def __init__(self):
        self.students: Dict[str, Dict[str, Any]] = {}
        self.enrollments: List[Tuple[str, str]] = []
        self.batches: Dict[str, str] = {}
        self.subjects: List[Tuple[str, str]] = []
        self.departments: List[Dict[str, Any]] = []
        # rows handed back verbatim as part of a batch population
        self.raw_batch_rows: Dict[str, List[Dict[str, Any]]] = {}

    def add_student(self, student_id, name, roll_number, department_id, batch_id=None, is_active=True):
        self.students[student_id] = {
            "student_id": student_id,
            "name": name,
            "roll_number": roll_number,
            "department_id": department_id,
            "is_active": is_active,
        }
        if batch_id:
            self.enrollments.append((student_id, batch_id))

    async def get_student(self, student_id: str) -> Optional[StudentRef]:
        row = self.students.get(student_id)
        return to_student_ref(row) if row else None

    async def get_students(self, student_ids: Iterable[str]) -> Dict[str, StudentRef]:
        return {sid: to_student_ref(self.students[sid]) for sid in set(student_ids) if sid in self.students}

    async def students_in_batch(self, batch_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        rows = [
            self.students[sid] for sid, bid in self.enrollments
            if bid == batch_id and (self.students[sid]["is_active"] or not active_only)
        ]
        return rows + self.raw_batch_rows.get(batch_id, [])

    async def students_in_department(self, department_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        return [
            row for row in self.students.values()
            if row["department_id"] == department_id and (row["is_active"] or not active_only)
        ]

    async def batch_department(self, batch_id: str) -> Optional[str]:
        return self.batches.get(batch_id)

    async def batches_taught_by(self, faculty_id: str) -> Set[str]:
        return {bid for fid, bid in self.subjects if fid == faculty_id}

    async def student_batches(self, student_id: str) -> Set[str]:
        return {bid for sid, bid in self.enrollments if sid == student_id}

    async def list_departments(self) -> List[Dict[str, Any]]:
        return list(self.departments)


@pytest.fixture
def directory() -> InMemoryDirectory:
    d = InMemoryDirectory()
    d.departments = [
        {"department_id": "dept-cse", "name": "Computer Science", "code": "CSE"},
        {"department_id": "dept-ece", "name": "Electronics", "code": "ECE"},
    ]
    d.batches = {
        "batch-cse-2024": "dept-cse",
        "batch-cse-2023": "dept-cse",
        "batch-ece-2024": "dept-ece",
    }
    d.add_student("s1", "Asha Rao", "CSE001", "dept-cse", "batch-cse-2024")
    d.add_student("s2", "Bilal Khan", "CSE002", "dept-cse", "batch-cse-2024")
    d.add_student("s3", "Chen Li", "CSE003", "dept-cse", "batch-cse-2024")
    d.add_student("s4", "Divya Nair", "CSE101", "dept-cse", "batch-cse-2023")
    d.add_student("s5", "Esha Patel", "CSE004", "dept-cse", "batch-cse-2024", is_active=False)
    d.add_student("s6", "Farid Ali", "ECE001", "dept-ece", "batch-ece-2024")
    d.add_student("s7", "Gita Sen", "ECE002", "dept-ece", "batch-ece-2024")
    d.subjects = [("fac-1", "batch-cse-2024"), ("fac-2", "batch-ece-2024")]
    return d


@pytest.fixture
def store(directory) -> InMemoryFeeStore:
    return InMemoryFeeStore(directory)


@pytest.fixture
def service(store, directory) -> FeeService:
    return FeeService(store, directory, clock=lambda: NOW)


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(user_id="admin-1", role=UserRole.ADMINISTRATOR)


@pytest.fixture
def hod_cse() -> ActorContext:
    return ActorContext(user_id="hod-cse", role=UserRole.DEPARTMENT_HEAD, department_id="dept-cse")


@pytest.fixture
def faculty() -> ActorContext:
    return ActorContext(user_id="fac-1", role=UserRole.FACULTY)


@pytest.fixture
def make_fee(service, admin):
    """Create a fee through the service as the administrator"""
    async def _make(student_id="s1", amount="1000", due_date=date(2024, 9, 1),
                    fee_type=FeeType.TUITION, academic_year="2024-2025"):
        return await service.create_fee(
            admin,
            student_id=student_id,
            amount=amount,
            due_date=due_date,
            fee_type=fee_type,
            academic_year=academic_year,
        )
    return _make


def auth_header(user_id: str, role: UserRole, department_id: Optional[str] = None) -> Dict[str, str]:
    token = create_access_token(user_id, role, department_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(service):
    app.dependency_overrides[get_fee_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
