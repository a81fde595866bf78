"""RecordSelector tests: status listings, approval queue, corrections view."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.selectors.record_selector import CorrectionFilter, RecordSelector


@pytest.fixture
def selector(session) -> RecordSelector:
    return RecordSelector(session)


@pytest.fixture
def correction_records(seed_record, accountant):
    """One record at each point of the correction cycle, plus bystanders."""
    earlier = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
    later = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)
    return {
        "pending": seed_record(
            RecordKind.EXPENSE, RecordStatus.CORRECTION_PENDING, accountant,
            correction_reason="Wrong vendor", correction_requested_at=earlier,
        ),
        "approved": seed_record(
            RecordKind.EXPENSE, RecordStatus.CORRECTION_APPROVED, accountant,
            correction_reason="Wrong amount", correction_requested_at=later,
        ),
        "completed": seed_record(
            RecordKind.EXPENSE, RecordStatus.APPROVED, accountant, is_correction=True,
        ),
        "plain": seed_record(RecordKind.EXPENSE, RecordStatus.APPROVED, accountant),
        "income": seed_record(
            RecordKind.INCOME, RecordStatus.CORRECTION_PENDING, accountant,
            correction_reason="Duplicate receipt", correction_requested_at=later,
        ),
    }


class TestLookups:

    def test_get(self, selector, seed_record, accountant):
        record = seed_record(RecordKind.EXPENSE, RecordStatus.PENDING, accountant)
        dto = selector.get(record.id)
        assert dto.id == record.id
        assert dto.status == RecordStatus.PENDING

    def test_get_missing_returns_none(self, selector):
        assert selector.get(uuid4()) is None

    def test_list_by_status(self, selector, seed_record, accountant):
        seed_record(RecordKind.EXPENSE, RecordStatus.PENDING, accountant)
        seed_record(RecordKind.EXPENSE, RecordStatus.APPROVED, accountant)
        seed_record(RecordKind.INCOME, RecordStatus.PENDING, accountant)

        assert len(selector.list_by_status(RecordKind.EXPENSE)) == 2
        pending = selector.list_by_status(RecordKind.EXPENSE, RecordStatus.PENDING)
        assert [r.kind for r in pending] == [RecordKind.EXPENSE]

    def test_count_by_status(self, selector, seed_record, accountant):
        for _ in range(3):
            seed_record(RecordKind.PETTY_CASH, RecordStatus.PENDING, accountant)
        seed_record(RecordKind.PETTY_CASH, RecordStatus.REJECTED, accountant)

        assert selector.count_by_status(RecordKind.PETTY_CASH) == {
            RecordStatus.PENDING: 3,
            RecordStatus.REJECTED: 1,
        }


class TestApprovalQueue:

    def test_pending_approvals(self, selector, seed_record, accountant):
        waiting = {
            seed_record(RecordKind.EXPENSE, RecordStatus.PENDING, accountant).id,
            seed_record(RecordKind.CAM, RecordStatus.SUBMITTED, accountant).id,
            seed_record(RecordKind.INCOME, RecordStatus.CORRECTION_PENDING, accountant).id,
        }
        seed_record(RecordKind.EXPENSE, RecordStatus.APPROVED, accountant)
        seed_record(RecordKind.CAM, RecordStatus.DRAFT, accountant)

        assert {r.id for r in selector.pending_approvals()} == waiting
        assert len(selector.pending_approvals(RecordKind.CAM)) == 1


class TestCorrectionsView:

    def test_pending_view(self, selector, correction_records):
        [record] = selector.corrections(CorrectionFilter.PENDING)
        assert record.id == correction_records["pending"].id

    def test_approved_view(self, selector, correction_records):
        [record] = selector.corrections(CorrectionFilter.APPROVED)
        assert record.id == correction_records["approved"].id

    def test_completed_view(self, selector, correction_records):
        [record] = selector.corrections(CorrectionFilter.COMPLETED)
        assert record.id == correction_records["completed"].id

    def test_all_view_newest_request_first(self, selector, correction_records):
        ids = [r.id for r in selector.corrections()]
        assert ids == [
            correction_records["approved"].id,
            correction_records["pending"].id,
            correction_records["completed"].id,
        ]

    def test_other_kinds(self, selector, correction_records):
        [record] = selector.corrections(CorrectionFilter.ALL, kind=RecordKind.INCOME)
        assert record.id == correction_records["income"].id
