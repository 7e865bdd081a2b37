from datetime import date
from decimal import Decimal

import pytest

from college_fees.core.errors import Forbidden, InvalidAmount, MissingScope, OutOfScope
from college_fees.models.domain import FeeStatus, FeeType
from college_fees.services.bulk import BulkFeeRequest


def bulk_request(**kwargs):
    values = {
        "amount": Decimal("2500"),
        "due_date": date(2024, 8, 15),
        "fee_type": FeeType.EXAM,
        "academic_year": "2024-2025",
        "description": "Semester exam fee",
    }
    values.update(kwargs)
    return BulkFeeRequest(**values)


async def test_batch_creates_one_fee_per_active_student(service, admin, store):
    result = await service.bulk_create(admin, bulk_request(batch_id="batch-cse-2024"))

    assert result.created_count == 3
    assert result.failed_count == 0
    assert {f.student_id for f in result.fees} == {"s1", "s2", "s3"}
    for fee in store.records.values():
        assert fee.status == FeeStatus.PENDING
        assert fee.amount == Decimal("2500")
        assert fee.amount_paid == Decimal("0")
        assert fee.description == "Semester exam fee"


async def test_department_population_skips_inactive_students(service, admin):
    result = await service.bulk_create(admin, bulk_request(department_id="dept-cse"))
    assert {f.student_id for f in result.fees} == {"s1", "s2", "s3", "s4"}


async def test_batch_wins_over_department(service, admin):
    result = await service.bulk_create(
        admin, bulk_request(department_id="dept-cse", batch_id="batch-cse-2023")
    )
    assert [f.student_id for f in result.fees] == ["s4"]


async def test_malformed_student_is_reported_and_the_rest_created(service, admin, directory, store):
    directory.add_student("s8", "Hari Iyer", "CSE005", "dept-cse")
    directory.add_student("s9", "Ira Das", "CSE006", "dept-cse")
    directory.enrollments = [
        ("s1", "batch-x"),
        ("s2", "batch-x"),
    ]
    directory.raw_batch_rows["batch-x"] = [
        {"name": "Row without id", "roll_number": "CSE999"},
        directory.students["s8"],
        directory.students["s9"],
    ]
    directory.batches["batch-x"] = "dept-cse"

    result = await service.bulk_create(admin, bulk_request(batch_id="batch-x"))

    assert result.population == 5
    assert result.created_count == 4
    assert result.failed_count == 1
    assert len(store.records) == 4
    failure = result.failures[0]
    assert failure.position == 3
    assert failure.student_id is None
    assert "student #3" in failure.describe()


async def test_storage_failure_for_one_student_does_not_stop_the_run(service, admin, store):
    store.fail_for = {"s2"}
    result = await service.bulk_create(admin, bulk_request(batch_id="batch-cse-2024"))

    assert result.created_count == 2
    assert result.failed_count == 1
    assert result.failures[0].student_id == "s2"
    assert "s2" in result.failures[0].describe()


async def test_empty_population_creates_nothing(service, admin, directory):
    directory.batches["batch-empty"] = "dept-cse"
    result = await service.bulk_create(admin, bulk_request(batch_id="batch-empty"))
    assert result.population == 0
    assert result.created_count == 0
    assert result.failed_count == 0


async def test_requires_batch_or_department(service, admin):
    with pytest.raises(MissingScope):
        await service.bulk_create(admin, bulk_request())


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
async def test_invalid_amount_fails_before_any_create(service, admin, store, amount):
    with pytest.raises(InvalidAmount):
        await service.bulk_create(admin, bulk_request(batch_id="batch-cse-2024", amount=amount))
    assert store.records == {}


async def test_hod_cannot_target_another_department(service, hod_cse, store):
    with pytest.raises(OutOfScope):
        await service.bulk_create(hod_cse, bulk_request(department_id="dept-ece"))
    with pytest.raises(OutOfScope):
        await service.bulk_create(hod_cse, bulk_request(batch_id="batch-ece-2024"))
    assert store.records == {}


async def test_hod_creates_for_own_batch(service, hod_cse):
    result = await service.bulk_create(hod_cse, bulk_request(batch_id="batch-cse-2023"))
    assert result.created_count == 1


async def test_faculty_is_forbidden(service, faculty):
    with pytest.raises(Forbidden):
        await service.bulk_create(faculty, bulk_request(batch_id="batch-cse-2024"))
