"""
WorkflowService scenario tests.

Verifies:
- Full correction cycle leaves exactly one audit entry per transition
- Rejected correction returns the record to approved with the reason cleared
- A second approver acting on an already approved record is refused
- Role, status and reason checks run before anything is written
- Privileged edits and deletes are audited
- CAM draft, submit, reject and resubmit lifecycle
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.domain.workflow import AuditAction, NotifyTarget
from society_kernel.exceptions import (
    CAMFlatCountError,
    CorrectionReasonRequiredError,
    InvalidRecordError,
    InvalidTransitionError,
    NotAuthenticatedError,
    RecordNotFoundError,
    UnauthorizedActorError,
)
from society_kernel.models.audit_log import AuditLogEntryModel
from society_kernel.models.records import FinancialRecordModel
from society_kernel.services.workflow_service import WorkflowService


def _audit_count(session) -> int:
    return session.execute(select(func.count(AuditLogEntryModel.id))).scalar_one()


@pytest.fixture
def pending_expense(seed_record, accountant, categories):
    """An expense seeded directly in pending, as after a submission."""
    return seed_record(
        RecordKind.EXPENSE,
        RecordStatus.PENDING,
        accountant,
        amount=Decimal("500.00"),
        description="Lift maintenance",
        record_date=date(2025, 5, 10),
        category_id=categories["security"].id,
    )


class TestFullCorrectionCycle:

    def test_four_transitions_four_entries(
        self, workflow, auditor, pending_expense, accountant, treasurer, deterministic_clock
    ):
        record_id = pending_expense.id

        workflow.approve(record_id, treasurer)
        deterministic_clock.tick()
        workflow.request_correction(record_id, accountant, "Invoice amount was wrong")
        deterministic_clock.tick()
        workflow.approve_correction(record_id, treasurer)
        deterministic_clock.tick()
        final = workflow.complete_correction(record_id, accountant, {"amount": "1200"})

        assert final.status == RecordStatus.APPROVED
        assert final.is_correction
        assert final.amount == Decimal("1200.00")
        assert final.correction_completed_at is not None

        trail = auditor.get_trail(record_id)
        assert trail.actions == (
            AuditAction.APPROVED,
            AuditAction.CORRECTION_REQUESTED,
            AuditAction.CORRECTION_APPROVED,
            AuditAction.CORRECTION_COMPLETED,
        )
        stamps = [entry.occurred_at for entry in trail.entries]
        assert stamps == sorted(stamps)

        completed = trail.entries[-1]
        assert completed.correction_type == "amount"
        assert completed.old_values["amount"] == "500.00"
        assert completed.new_values["amount"] == "1200.00"
        assert completed.old_values["status"] == "correction_approved"
        assert completed.new_values["status"] == "approved"

        requested = trail.entries[1]
        assert requested.details["reason"] == "Invoice amount was wrong"
        assert requested.old_values == {"status": "approved"}
        assert requested.new_values == {"status": "correction_pending"}

    def test_submit_path_adds_submitted_entry(
        self, workflow, auditor, submit_expense, treasurer
    ):
        record = submit_expense()
        workflow.approve(record.id, treasurer)

        trail = auditor.get_trail(record.id)
        assert trail.actions == (AuditAction.SUBMITTED, AuditAction.APPROVED)
        assert trail.entries[0].old_values == {"status": None}

    def test_completion_with_several_fields(
        self, workflow, auditor, pending_expense, accountant, treasurer
    ):
        record_id = pending_expense.id
        workflow.approve(record_id, treasurer)
        workflow.request_correction(record_id, accountant, "Wrong details")
        workflow.approve_correction(record_id, treasurer)
        workflow.complete_correction(
            record_id, accountant, {"amount": "600", "description": "Lift AMC"}
        )
        assert auditor.get_trail(record_id).entries[-1].correction_type == "multiple_fields"

    def test_second_request_clears_previous_cycle_stamps(
        self, workflow, pending_expense, accountant, treasurer, deterministic_clock
    ):
        record_id = pending_expense.id
        workflow.approve(record_id, treasurer)
        workflow.request_correction(record_id, accountant, "Wrong GST")
        workflow.approve_correction(record_id, treasurer)
        workflow.complete_correction(record_id, accountant, {"amount": "700"})

        deterministic_clock.tick()
        again = workflow.request_correction(record_id, accountant, "Wrong vendor")

        assert again.status == RecordStatus.CORRECTION_PENDING
        assert again.correction_reason == "Wrong vendor"
        assert again.correction_requested_at is not None
        assert again.correction_approved_at is None
        assert again.correction_completed_at is None


class TestRejectedCorrection:

    def test_reject_returns_to_approved(
        self, workflow, auditor, pending_expense, accountant, treasurer
    ):
        record_id = pending_expense.id
        workflow.approve(record_id, treasurer)
        workflow.request_correction(record_id, accountant, "Typo in description")
        record = workflow.reject_correction(record_id, treasurer, note="Not needed")

        assert record.status == RecordStatus.APPROVED
        assert record.correction_reason is None
        assert record.correction_requested_at is None
        assert not record.is_correction

        trail = auditor.get_trail(record_id)
        assert trail.last_action == AuditAction.CORRECTION_REJECTED
        assert trail.entries[-1].details["note"] == "Not needed"

    def test_cannot_complete_a_rejected_correction(
        self, workflow, pending_expense, accountant, treasurer
    ):
        record_id = pending_expense.id
        workflow.approve(record_id, treasurer)
        workflow.request_correction(record_id, accountant, "Typo")
        workflow.reject_correction(record_id, treasurer)

        with pytest.raises(InvalidTransitionError):
            workflow.complete_correction(record_id, accountant, {"amount": "1"})


class TestRefusals:

    def test_second_approver_refused(
        self, session, workflow, pending_expense, treasurer, second_treasurer
    ):
        workflow.approve(pending_expense.id, treasurer)
        before = _audit_count(session)

        with pytest.raises(InvalidTransitionError):
            workflow.approve(pending_expense.id, second_treasurer)

        assert _audit_count(session) == before
        assert session.get(FinancialRecordModel, pending_expense.id).approved_by_id == (
            treasurer.actor_id
        )

    def test_accountant_cannot_approve(self, session, workflow, pending_expense, accountant):
        with pytest.raises(UnauthorizedActorError):
            workflow.approve(pending_expense.id, accountant)
        assert _audit_count(session) == 0

    def test_missing_actor(self, workflow, pending_expense):
        with pytest.raises(NotAuthenticatedError):
            workflow.approve(pending_expense.id, None)

    def test_unknown_record(self, workflow, treasurer):
        with pytest.raises(RecordNotFoundError):
            workflow.approve(uuid4(), treasurer)

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_correction_needs_reason(
        self, session, workflow, quota_guard, pending_expense, accountant, treasurer, reason
    ):
        workflow.approve(pending_expense.id, treasurer)
        before = _audit_count(session)

        with pytest.raises(CorrectionReasonRequiredError):
            workflow.request_correction(pending_expense.id, accountant, reason)

        assert _audit_count(session) == before
        assert quota_guard.used_today(accountant) == 0

    def test_correction_only_from_approved(self, workflow, pending_expense, accountant):
        with pytest.raises(InvalidTransitionError):
            workflow.request_correction(pending_expense.id, accountant, "Too early")

    def test_bad_values_rejected_on_submit(self, session, workflow, accountant, categories):
        with pytest.raises(InvalidRecordError):
            workflow.submit(
                RecordKind.EXPENSE,
                accountant,
                {"amount": "-10", "category_id": categories["security"].id},
            )
        assert _audit_count(session) == 0


class TestSubmission:

    def test_expense_derives_gst_and_tds(self, submit_expense):
        record = submit_expense()
        assert record.status == RecordStatus.PENDING
        assert record.tax_amount == Decimal("180.00")
        assert record.withholding_amount == Decimal("20.00")
        assert record.net_payable == Decimal("1160.00")

    def test_submission_notifies_approvers(self, submit_expense, outbox, accountant):
        record = submit_expense()
        [request] = outbox.pending
        assert request.record_id == record.id
        assert request.recipients == NotifyTarget.APPROVERS
        assert request.action == AuditAction.SUBMITTED
        assert request.submitter_id == accountant.actor_id

    def test_approval_notifies_submitter(self, submit_expense, workflow, outbox, treasurer):
        record = submit_expense()
        workflow.approve(record.id, treasurer)
        assert outbox.pending[-1].recipients == NotifyTarget.SUBMITTER

    def test_income_by_office_assistant(self, workflow, office_assistant, categories):
        record = workflow.submit(
            RecordKind.INCOME,
            office_assistant,
            {
                "amount": "25000",
                "category_id": categories["maintenance"].id,
                "fiscal_year": "FY25-26",
                "month": 5,
            },
        )
        assert record.kind == RecordKind.INCOME
        assert record.status == RecordStatus.PENDING

    def test_petty_cash_by_lead(self, workflow, lead):
        record = workflow.submit(
            RecordKind.PETTY_CASH,
            lead,
            {"amount": "250", "item_name": "Light bulbs", "record_date": "2025-05-03"},
        )
        assert record.kind == RecordKind.PETTY_CASH

    def test_lead_cannot_submit_expense(self, workflow, lead, categories):
        with pytest.raises(UnauthorizedActorError):
            workflow.submit(
                RecordKind.EXPENSE,
                lead,
                {
                    "amount": "100",
                    "description": "Garden hose",
                    "record_date": "2025-05-01",
                    "category_id": categories["security"].id,
                },
            )

    def test_transition_logged(self, captured_logs, submit_expense):
        submit_expense()
        logs = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert logs[-1]["to_status"] == "pending"
        assert logs[-1]["audit_action"] == "submitted"
        assert "record_id" in logs[-1]


class TestPrivilegedPaths:

    def test_edit_approved_is_audited(self, workflow, auditor, approved_expense, treasurer):
        record = workflow.edit_approved(
            approved_expense.id, treasurer, {"description": "Security, May"}
        )
        assert record.description == "Security, May"
        assert record.status == RecordStatus.APPROVED

        entry = auditor.get_trail(record.id).entries[-1]
        assert entry.action == AuditAction.EDITED
        assert entry.old_values == {"description": "Monthly security services"}
        assert entry.new_values == {"description": "Security, May"}

    def test_edit_requires_treasurer(self, workflow, approved_expense, accountant):
        with pytest.raises(UnauthorizedActorError):
            workflow.edit_approved(approved_expense.id, accountant, {"amount": "1"})

    def test_edit_only_approved(self, workflow, submit_expense, treasurer):
        record = submit_expense()
        with pytest.raises(InvalidTransitionError):
            workflow.edit_approved(record.id, treasurer, {"amount": "1"})

    def test_unaudited_edit_when_disabled(
        self, session, auditor, quota_guard, deterministic_clock, approved_expense,
        treasurer, captured_logs,
    ):
        service = WorkflowService(
            session,
            auditor=auditor,
            quota_guard=quota_guard,
            policy=WorkflowPolicy(audit_privileged_edits=False),
            clock=deterministic_clock,
        )
        before = len(auditor.get_trail(approved_expense.id).entries)
        service.edit_approved(approved_expense.id, treasurer, {"amount": "900"})

        assert len(auditor.get_trail(approved_expense.id).entries) == before
        assert any(r["message"] == "privileged_edit_unaudited" for r in captured_logs())

    def test_delete_is_audited_with_snapshot(
        self, session, workflow, auditor, approved_expense, treasurer
    ):
        workflow.delete_record(approved_expense.id, treasurer, reason="Duplicate entry")

        assert session.get(FinancialRecordModel, approved_expense.id) is None
        trail = auditor.get_trail(approved_expense.id)
        assert trail.last_action == AuditAction.DELETED
        deleted = trail.entries[-1]
        assert deleted.old_values["amount"] == "1000.00"
        assert deleted.old_values["status"] == "approved"
        assert deleted.details["reason"] == "Duplicate entry"

    def test_delete_requires_treasurer(self, workflow, approved_expense, accountant):
        with pytest.raises(UnauthorizedActorError):
            workflow.delete_record(approved_expense.id, accountant)


class TestCAMLifecycle:

    def test_draft_submit_reject_resubmit(self, workflow, auditor, lead, treasurer):
        draft = workflow.save_draft(lead, {"tower": "11", "year": 2025})
        assert draft.status == RecordStatus.DRAFT
        assert draft.total_flats == 201

        draft = workflow.save_draft(lead, {"month": 5}, record_id=draft.id)
        submitted = workflow.submit_draft(
            draft.id, lead, {"paid_flats": 180, "pending_flats": 21}
        )
        assert submitted.status == RecordStatus.SUBMITTED

        rejected = workflow.reject(submitted.id, treasurer, note="Recount flats")
        assert rejected.status == RecordStatus.REJECTED

        resubmitted = workflow.submit_draft(rejected.id, lead, {"paid_flats": 179})
        approved = workflow.approve(resubmitted.id, treasurer)
        assert approved.status == RecordStatus.APPROVED

        assert auditor.get_trail(draft.id).actions == (
            AuditAction.DRAFT_SAVED,
            AuditAction.DRAFT_SAVED,
            AuditAction.SUBMITTED,
            AuditAction.REJECTED,
            AuditAction.SUBMITTED,
            AuditAction.APPROVED,
        )

    def test_incomplete_cam_cannot_be_submitted(self, workflow, lead):
        draft = workflow.save_draft(lead, {"tower": "5"})
        with pytest.raises(InvalidRecordError):
            workflow.submit_draft(draft.id, lead)

    def test_flat_count_over_tower_size(self, session, workflow, lead):
        with pytest.raises(CAMFlatCountError):
            workflow.submit(
                RecordKind.CAM,
                lead,
                {"tower": "1A", "year": 2025, "month": 4, "paid_flats": 60, "pending_flats": 10},
            )
        assert _audit_count(session) == 0

    def test_accountant_cannot_save_cam_draft(self, workflow, accountant):
        with pytest.raises(UnauthorizedActorError):
            workflow.save_draft(accountant, {"tower": "5"})

    def test_cam_correction_cycle(self, workflow, lead, treasurer):
        record = workflow.submit(
            RecordKind.CAM,
            lead,
            {"tower": "5", "year": 2025, "month": 6, "paid_flats": 60, "pending_flats": 7},
        )
        workflow.approve(record.id, treasurer)
        workflow.request_correction(record.id, lead, "Two flats paid late")
        workflow.approve_correction(record.id, treasurer)
        done = workflow.complete_correction(
            record.id, lead, {"paid_flats": 62, "pending_flats": 5}
        )
        assert done.is_correction
        assert done.paid_flats == 62
