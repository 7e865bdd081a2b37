import random
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from college_fees.core.errors import Forbidden
from college_fees.models.domain import ActorContext, FeeRecord, FeeStatus, FeeType, Pagination, PaymentMode, UserRole
from college_fees.services.fee_service import FeeListFilters
from college_fees.services.fee_state import PaymentCommand
from college_fees.services.stats import collection_rate, fee_type_breakdown, summarize

TODAY = date(2024, 6, 1)


def record(fee_id, amount, status=FeeStatus.PENDING, amount_paid="0", due_date=date(2024, 9, 1),
           fee_type=FeeType.TUITION, student_id="s1"):
    return FeeRecord(
        id=fee_id,
        student_id=student_id,
        amount=Decimal(amount),
        amount_paid=Decimal(amount_paid),
        due_date=due_date,
        status=status,
        fee_type=fee_type,
        academic_year="2024-2025",
        created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


def test_empty_set():
    stats = summarize([], TODAY)
    assert stats.total_fees == 0
    assert stats.total_amount == 0
    assert stats.collection_rate == "0.0"


def test_mixed_ledger():
    records = [
        record("f1", "1000", due_date=date(2024, 5, 1)),
        record("f2", "500", FeeStatus.PARTIALLY_PAID, "200", fee_type=FeeType.EXAM),
        record("f3", "800", FeeStatus.PAID, "800", fee_type=FeeType.EXAM),
        record("f4", "300", FeeStatus.WAIVED, fee_type=FeeType.LIBRARY),
        record("f5", "400"),
    ]
    stats = summarize(records, TODAY)

    assert stats.total_fees == 5
    assert stats.pending_fees == 2
    assert stats.overdue_fees == 1
    assert stats.partially_paid_fees == 1
    assert stats.paid_fees == 1
    assert stats.waived_fees == 1
    assert stats.total_amount == Decimal("3000")
    assert stats.collected_amount == Decimal("1000")
    assert stats.pending_amount == Decimal("2000")
    assert stats.collection_rate == "33.3"


def test_overdue_pending_fee_counts_in_both_buckets():
    stats = summarize([record("f1", "100", due_date=date(2024, 5, 31))], TODAY)
    assert stats.pending_fees == 1
    assert stats.overdue_fees == 1


def test_due_today_is_not_overdue():
    stats = summarize([record("f1", "100", due_date=TODAY)], TODAY)
    assert stats.overdue_fees == 0


def test_partially_paid_past_due_is_not_overdue():
    stats = summarize([record("f1", "100", FeeStatus.PARTIALLY_PAID, "10", due_date=date(2024, 1, 1))], TODAY)
    assert stats.overdue_fees == 0
    assert stats.partially_paid_fees == 1


def test_legacy_stored_overdue_counts_as_pending_and_overdue():
    stats = summarize([record("f1", "100", FeeStatus.OVERDUE, due_date=date(2024, 9, 1))], TODAY)
    assert stats.pending_fees == 1
    assert stats.overdue_fees == 1


@pytest.mark.parametrize("collected,total,expected", [
    ("0", "0", "0.0"),
    ("0", "100", "0.0"),
    ("100", "100", "100.0"),
    ("1", "3", "33.3"),
    ("2", "3", "66.7"),
    ("1", "8", "12.5"),
    ("1", "16", "6.3"),
])
def test_collection_rate(collected, total, expected):
    assert collection_rate(Decimal(collected), Decimal(total)) == expected


def test_fee_type_breakdown_skips_unused_types():
    breakdown = fee_type_breakdown([
        record("f1", "100", fee_type=FeeType.HOSTEL),
        record("f2", "50", FeeStatus.PAID, "50", fee_type=FeeType.TUITION),
        record("f3", "25", fee_type=FeeType.HOSTEL),
    ])
    assert [(b.fee_type, b.count) for b in breakdown] == [(FeeType.TUITION, 1), (FeeType.HOSTEL, 2)]
    hostel = breakdown[1]
    assert hostel.total_amount == Decimal("125")
    assert hostel.collected_amount == Decimal("0")


def test_random_ledgers_reconcile():
    rng = random.Random(7)
    statuses = [FeeStatus.PENDING, FeeStatus.PARTIALLY_PAID, FeeStatus.PAID, FeeStatus.WAIVED]

    for _ in range(100):
        records = []
        for i in range(rng.randint(0, 30)):
            amount = Decimal(rng.randint(1, 100000)) / 100
            status = rng.choice(statuses)
            if status == FeeStatus.PAID:
                paid = amount
            elif status == FeeStatus.PARTIALLY_PAID and amount > Decimal("0.01"):
                paid = Decimal(rng.randint(1, int(amount * 100) - 1)) / 100
            else:
                status = FeeStatus.PENDING if status == FeeStatus.PARTIALLY_PAID else status
                paid = Decimal("0")
            due = date(2024, rng.randint(1, 12), rng.randint(1, 28))
            records.append(record(f"f{i}", str(amount), status, str(paid), due_date=due))

        stats = summarize(records, TODAY)
        assert stats.total_amount == stats.collected_amount + stats.pending_amount
        assert stats.total_fees == len(records)
        assert (stats.pending_fees + stats.partially_paid_fees
                + stats.paid_fees + stats.waived_fees) == stats.total_fees
        assert stats.overdue_fees <= stats.pending_fees
        assert Decimal("0") <= Decimal(stats.collection_rate) <= Decimal("100")


class TestScopedStatistics:

    async def test_hod_stats_cover_only_own_department(self, service, make_fee, hod_cse):
        await make_fee("s1", amount="1000")
        await make_fee("s4", amount="500", due_date=date(2024, 5, 1))
        await make_fee("s6", amount="9000")

        stats, breakdown = await service.fee_stats(hod_cse)
        assert stats.total_fees == 2
        assert stats.total_amount == Decimal("1500")
        assert stats.overdue_fees == 1
        assert [b.count for b in breakdown] == [2]

    async def test_stats_filter_by_academic_year(self, service, make_fee, admin):
        await make_fee("s1", academic_year="2023-2024")
        await make_fee("s2", academic_year="2024-2025")

        stats, _ = await service.fee_stats(admin, "2023-2024")
        assert stats.total_fees == 1

    async def test_overdue_listing_uses_derived_status(self, service, make_fee, admin):
        late = await make_fee("s1", due_date=date(2024, 5, 1))
        await make_fee("s2", due_date=date(2024, 9, 1))

        page = await service.list_fees(admin, FeeListFilters(status=FeeStatus.OVERDUE), Pagination())
        assert [f.id for f in page.fees] == [late.id]

        pending = await service.list_fees(admin, FeeListFilters(status=FeeStatus.PENDING), Pagination())
        assert pending.total_count == 2

    async def test_pending_listing_agrees_with_pending_count(self, service, make_fee, admin, store):
        legacy = await make_fee("s1", due_date=date(2024, 5, 1))
        store.records[legacy.id] = legacy.model_copy(update={"status": FeeStatus.OVERDUE})
        await make_fee("s2")
        paid = await make_fee("s3")
        await service.mark_paid(admin, paid.id, PaymentCommand(
            status="PAID", payment_mode=PaymentMode.CASH, actor_id=admin.user_id))

        stats, _ = await service.fee_stats(admin)
        page = await service.list_fees(admin, FeeListFilters(status=FeeStatus.PENDING), Pagination())
        assert stats.pending_fees == 2
        assert page.total_count == stats.pending_fees
        assert legacy.id in {f.id for f in page.fees}

    async def test_department_report_ranks_by_collection_rate(self, service, make_fee, admin, store):
        cse = await make_fee("s1", amount="1000")
        await make_fee("s6", amount="400")
        ece = await make_fee("s7", amount="600")
        await service.mark_paid(admin, ece.id, PaymentCommand(
            status="PAID", payment_mode=PaymentMode.UPI, actor_id=admin.user_id))
        await service.mark_paid(admin, cse.id, PaymentCommand(
            status="PARTIALLY_PAID", amount_paid=Decimal("100"), actor_id=admin.user_id))

        reports = await service.department_report(admin)
        assert [r.department_id for r in reports] == ["dept-ece", "dept-cse"]
        assert reports[0].stats.collection_rate == "60.0"
        assert reports[1].stats.collection_rate == "10.0"
        assert reports[1].total_students == 5

    async def test_department_report_is_admin_only(self, service, hod_cse):
        with pytest.raises(Forbidden):
            await service.department_report(hod_cse)

    async def test_student_sees_own_fees_latest_due_first(self, service, make_fee):
        early = await make_fee("s6", due_date=date(2024, 7, 1))
        late = await make_fee("s6", due_date=date(2024, 12, 1))
        await make_fee("s7")

        fees = await service.student_fees(ActorContext(user_id="s6", role=UserRole.STUDENT))
        assert [f.id for f in fees] == [late.id, early.id]
