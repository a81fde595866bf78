"""
WorkflowService -- role-gated status transitions with audit and quota.

Responsibility:
    Applies every status change of a financial record: creation, review,
    the correction cycle, privileged edits and deletes, and all-or-nothing
    bulk variants.  Each accepted transition writes exactly one audit entry
    and queues its notification.

Architecture position:
    Kernel > Services -- imperative shell.  Uses the pure transition table
    in ``domain.workflow`` and the field rules in ``domain.records``;
    delegates audit to AuditorService and quota to DailyQuotaGuard.

Invariants enforced:
    - Every transition re-reads the row ``FOR UPDATE`` and re-validates the
      status against the table, so a second approver acting on a record
      that was approved meanwhile is refused instead of overwriting it.
    - Role and status checks run before any write.
    - One audit entry per accepted transition, in the same transaction.
    - Privileged edits and deletes are audited (edits can be exempted only
      by ``audit_privileged_edits=False``).
    - Bulk transitions run in one SAVEPOINT: every record moves or none
      does.  The bulk correction request reserves its quota first, inside
      the same savepoint.

Failure modes:
    - NotAuthenticatedError: no actor.
    - RecordNotFoundError: unknown record id.
    - InvalidTransitionError / UnauthorizedActorError: refused by the table.
    - CorrectionReasonRequiredError: blank reason on a correction request.
    - InvalidRecordError / CAMFlatCountError: rejected field values.
    - DailyQuotaExceededError: batch larger than today's remaining quota.
    - BulkTransitionError: one record of a batch failed; batch rolled back.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from society_kernel.domain.clock import Clock, SystemClock
from society_kernel.domain.diff import correction_type, field_changes, snapshot
from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.records import (
    EDITABLE_FIELDS,
    SNAPSHOT_FIELDS,
    FinancialRecord,
    prepare_changes,
)
from society_kernel.domain.roles import PRIVILEGED_ROLES, Actor
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.domain.workflow import (
    AuditAction,
    NotifyTarget,
    Transition,
    WorkflowAction,
    resolve_transition,
)
from society_kernel.exceptions import (
    BulkTransitionError,
    CorrectionReasonRequiredError,
    InvalidRecordError,
    InvalidTransitionError,
    NotAuthenticatedError,
    RecordNotFoundError,
    SocietyKernelError,
    UnauthorizedActorError,
)
from society_kernel.logging_config import LogContext, get_logger
from society_kernel.models.records import MODEL_BY_KIND, FinancialRecordModel
from society_kernel.services.auditor_service import AuditorService
from society_kernel.services.notification_service import (
    NotificationOutbox,
    NotificationRequest,
)
from society_kernel.services.quota_service import DailyQuotaGuard

logger = get_logger("services.workflow")


class WorkflowService:
    """
    Service for moving financial records through their lifecycle.

    Contract:
        Every public method takes the acting ``Actor`` and either applies
        the transition (flushing the record and its audit entry) or raises
        a typed error having written nothing.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT deliver notifications; it queues them on the outbox.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditorService | None = None,
        quota_guard: DailyQuotaGuard | None = None,
        policy: WorkflowPolicy | None = None,
        clock: Clock | None = None,
        outbox: NotificationOutbox | None = None,
    ):
        self._session = session
        self._policy = policy or WorkflowPolicy()
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._quota = quota_guard or DailyQuotaGuard(session, self._policy, self._clock)
        self._outbox = outbox if outbox is not None else NotificationOutbox()

    @property
    def outbox(self) -> NotificationOutbox:
        return self._outbox

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def submit(
        self,
        kind: RecordKind,
        actor: Actor | None,
        values: Mapping[str, Any],
    ) -> FinancialRecord:
        """Create a record and submit it for approval."""
        return self._create(kind, WorkflowAction.SUBMIT, actor, values).to_dto()

    def save_draft(
        self,
        actor: Actor | None,
        values: Mapping[str, Any],
        record_id: UUID | None = None,
    ) -> FinancialRecord:
        """Create a CAM draft, or update an existing one."""
        if record_id is None:
            return self._create(
                RecordKind.CAM, WorkflowAction.SAVE_DRAFT, actor, values
            ).to_dto()
        return self._transition(
            record_id, WorkflowAction.SAVE_DRAFT, actor, changes=values
        ).to_dto()

    def submit_draft(
        self,
        record_id: UUID,
        actor: Actor | None,
        changes: Mapping[str, Any] | None = None,
    ) -> FinancialRecord:
        """Submit a CAM draft, or resubmit a rejected CAM entry."""
        return self._transition(
            record_id, WorkflowAction.SUBMIT, actor, changes=changes or {}
        ).to_dto()

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def approve(
        self, record_id: UUID, actor: Actor | None, note: str | None = None
    ) -> FinancialRecord:
        return self._transition(
            record_id, WorkflowAction.APPROVE, actor, note=note
        ).to_dto()

    def reject(
        self, record_id: UUID, actor: Actor | None, note: str | None = None
    ) -> FinancialRecord:
        return self._transition(
            record_id, WorkflowAction.REJECT, actor, note=note
        ).to_dto()

    # ------------------------------------------------------------------
    # Correction cycle
    # ------------------------------------------------------------------

    def request_correction(
        self, record_id: UUID, actor: Actor | None, reason: str
    ) -> FinancialRecord:
        """Ask for an approved record to be reopened.  Consumes one unit of quota."""
        return self._transition(
            record_id, WorkflowAction.REQUEST_CORRECTION, actor, reason=reason
        ).to_dto()

    def approve_correction(
        self, record_id: UUID, actor: Actor | None, note: str | None = None
    ) -> FinancialRecord:
        return self._transition(
            record_id, WorkflowAction.APPROVE_CORRECTION, actor, note=note
        ).to_dto()

    def reject_correction(
        self, record_id: UUID, actor: Actor | None, note: str | None = None
    ) -> FinancialRecord:
        """Return the record to approved and clear the correction reason."""
        return self._transition(
            record_id, WorkflowAction.REJECT_CORRECTION, actor, note=note
        ).to_dto()

    def complete_correction(
        self,
        record_id: UUID,
        actor: Actor | None,
        changes: Mapping[str, Any],
    ) -> FinancialRecord:
        """Apply the corrected values; the record returns to approved."""
        return self._transition(
            record_id, WorkflowAction.COMPLETE_CORRECTION, actor, changes=changes
        ).to_dto()

    # ------------------------------------------------------------------
    # Privileged paths
    # ------------------------------------------------------------------

    def edit_approved(
        self,
        record_id: UUID,
        actor: Actor | None,
        changes: Mapping[str, Any],
    ) -> FinancialRecord:
        """
        Directly edit an approved record without a status change.

        Treasurer only.  Audited as ``edited`` with a full field diff unless
        the policy sets ``audit_privileged_edits=False``.
        """
        actor = self._require_actor(actor, "edit")
        with LogContext.bind(record_id=str(record_id)):
            record = self._load_for_update(record_id)
            self._require_privileged(actor, "edit")
            kind = RecordKind(record.kind)
            if record.status != RecordStatus.APPROVED.value:
                raise InvalidTransitionError(kind.value, record.status, "edit")

            before = snapshot(record.field_values(), SNAPSHOT_FIELDS)
            self._apply_changes(record, kind, changes, require_complete=True)
            record.updated_by_id = actor.actor_id
            self._session.flush()
            after = snapshot(record.field_values(), SNAPSHOT_FIELDS)

            if self._policy.audit_privileged_edits:
                old_values, new_values = field_changes(before, after)
                self._auditor.record_transition(
                    record_id=record.id,
                    record_kind=kind,
                    action=AuditAction.EDITED,
                    actor=actor,
                    old_values=old_values,
                    new_values=new_values,
                )
            else:
                logger.warning(
                    "privileged_edit_unaudited",
                    extra={"record_kind": kind.value},
                )

            logger.info(
                "record_edited",
                extra={"record_kind": kind.value, "fields": sorted(changes)},
            )
            return record.to_dto()

    def delete_record(
        self,
        record_id: UUID,
        actor: Actor | None,
        reason: str | None = None,
    ) -> None:
        """
        Hard-delete a record.  Treasurer only; always audited.

        The audit entry keeps the full snapshot of the deleted row.
        """
        actor = self._require_actor(actor, "delete")
        with LogContext.bind(record_id=str(record_id)):
            record = self._load_for_update(record_id)
            self._require_privileged(actor, "delete")
            kind = RecordKind(record.kind)
            before = snapshot(record.field_values(), SNAPSHOT_FIELDS)

            self._auditor.record_transition(
                record_id=record.id,
                record_kind=kind,
                action=AuditAction.DELETED,
                actor=actor,
                old_values=before,
                details={"reason": reason} if reason else None,
            )
            self._session.delete(record)
            self._session.flush()
            logger.info(
                "record_deleted",
                extra={"record_kind": kind.value, "status": before["status"]},
            )

    # ------------------------------------------------------------------
    # Bulk transitions
    # ------------------------------------------------------------------

    def bulk_approve(
        self, record_ids: Iterable[UUID], actor: Actor | None
    ) -> list[FinancialRecord]:
        return self._bulk(WorkflowAction.APPROVE, record_ids, actor)

    def bulk_reject(
        self,
        record_ids: Iterable[UUID],
        actor: Actor | None,
        note: str | None = None,
    ) -> list[FinancialRecord]:
        return self._bulk(WorkflowAction.REJECT, record_ids, actor, note=note)

    def bulk_request_correction(
        self,
        record_ids: Iterable[UUID],
        actor: Actor | None,
        reason: str,
    ) -> list[FinancialRecord]:
        """
        Request correction of many records at once.

        The whole selection is checked against today's quota before any
        record changes; a batch that does not fit raises
        DailyQuotaExceededError and writes nothing.
        """
        return self._bulk(
            WorkflowAction.REQUEST_CORRECTION, record_ids, actor, reason=reason
        )

    def bulk_approve_corrections(
        self, record_ids: Iterable[UUID], actor: Actor | None
    ) -> list[FinancialRecord]:
        return self._bulk(WorkflowAction.APPROVE_CORRECTION, record_ids, actor)

    def bulk_reject_corrections(
        self, record_ids: Iterable[UUID], actor: Actor | None
    ) -> list[FinancialRecord]:
        return self._bulk(WorkflowAction.REJECT_CORRECTION, record_ids, actor)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_actor(self, actor: Actor | None, action: str) -> Actor:
        if actor is None:
            raise NotAuthenticatedError(action)
        return actor

    def _require_privileged(self, actor: Actor, action: str) -> None:
        if actor.role not in PRIVILEGED_ROLES:
            raise UnauthorizedActorError(
                str(actor.actor_id),
                actor.role.value,
                action,
                tuple(sorted(role.value for role in PRIVILEGED_ROLES)),
            )

    def _load_for_update(self, record_id: UUID) -> FinancialRecordModel:
        record = self._session.execute(
            select(FinancialRecordModel)
            .where(FinancialRecordModel.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise RecordNotFoundError(str(record_id))
        return record

    def _apply_changes(
        self,
        record: FinancialRecordModel,
        kind: RecordKind,
        changes: Mapping[str, Any],
        require_complete: bool,
    ) -> None:
        current = record.field_values(tuple(sorted(EDITABLE_FIELDS[kind])))
        updates = prepare_changes(
            kind,
            current,
            changes,
            self._policy.cam_tower_flats,
            require_complete=require_complete,
        )
        for name, value in updates.items():
            setattr(record, name, value)

    def _apply_flags(
        self,
        record: FinancialRecordModel,
        transition: Transition,
        actor: Actor,
        reason: str | None,
    ) -> None:
        if transition.records_decision:
            record.approved_by_id = actor.actor_id
        if transition.requires_reason:
            record.correction_reason = (reason or "").strip()
            record.correction_approved_at = None
            record.correction_completed_at = None
        if transition.clears_correction:
            record.correction_reason = None
            record.correction_requested_at = None
        if transition.marks_correction:
            record.is_correction = True
        if transition.stamps is not None:
            setattr(record, transition.stamps, self._clock.now_utc())

    def _create(
        self,
        kind: RecordKind,
        action: WorkflowAction,
        actor: Actor | None,
        values: Mapping[str, Any],
    ) -> FinancialRecordModel:
        actor = self._require_actor(actor, action.value)
        transition = resolve_transition(kind, None, action, actor)
        updates = prepare_changes(
            kind,
            {},
            values,
            self._policy.cam_tower_flats,
            require_complete=transition.to_status != RecordStatus.DRAFT,
        )
        record = MODEL_BY_KIND[kind.value](
            status=transition.to_status.value,
            created_by_id=actor.actor_id,
            **updates,
        )
        self._session.add(record)
        self._session.flush()

        with LogContext.bind(record_id=str(record.id)):
            self._finish(record, transition, actor, before={"status": None})
        return record

    def _transition(
        self,
        record_id: UUID,
        action: WorkflowAction,
        actor: Actor | None,
        changes: Mapping[str, Any] | None = None,
        reason: str | None = None,
        note: str | None = None,
        batch_id: str | None = None,
        reserve_quota: bool = True,
    ) -> FinancialRecordModel:
        actor = self._require_actor(actor, action.value)
        with LogContext.bind(record_id=str(record_id)):
            record = self._load_for_update(record_id)
            kind = RecordKind(record.kind)
            transition = resolve_transition(
                kind, RecordStatus(record.status), action, actor
            )

            if transition.requires_reason and not (reason or "").strip():
                raise CorrectionReasonRequiredError(str(record_id))
            if changes and not transition.applies_changes:
                raise InvalidRecordError(
                    "changes", f"{action.value} does not accept field values"
                )
            if transition.consumes_quota and reserve_quota:
                self._quota.reserve(actor, 1)

            before = snapshot(record.field_values(), SNAPSHOT_FIELDS)
            if transition.applies_changes:
                self._apply_changes(
                    record,
                    kind,
                    changes or {},
                    require_complete=transition.to_status != RecordStatus.DRAFT,
                )
            self._apply_flags(record, transition, actor, reason)
            record.status = transition.to_status.value
            record.updated_by_id = actor.actor_id
            self._session.flush()

            details: dict[str, Any] = {}
            if transition.requires_reason:
                details["reason"] = record.correction_reason
            if note:
                details["note"] = note
            if batch_id:
                details["batch_id"] = batch_id
            self._finish(record, transition, actor, before=before, details=details)
            return record

    def _finish(
        self,
        record: FinancialRecordModel,
        transition: Transition,
        actor: Actor,
        before: dict[str, Any],
        details: dict[str, Any] | None = None,
    ) -> None:
        """Write the audit entry, queue the notification and log."""
        kind = RecordKind(record.kind)
        if transition.full_diff:
            after = snapshot(record.field_values(), SNAPSHOT_FIELDS)
            old_values, new_values = field_changes(before, after)
            kind_of_change = correction_type(new_values)
        else:
            old_values = {"status": before["status"]}
            new_values = {"status": record.status}
            kind_of_change = None

        self._auditor.record_transition(
            record_id=record.id,
            record_kind=kind,
            action=transition.audit_action,
            actor=actor,
            old_values=old_values,
            new_values=new_values,
            correction_type=kind_of_change,
            details=details,
        )

        if transition.notify != NotifyTarget.NONE:
            self._outbox.enqueue(
                NotificationRequest(
                    record_id=record.id,
                    record_kind=kind,
                    action=transition.audit_action,
                    recipients=transition.notify,
                    actor_id=actor.actor_id,
                    actor_role=actor.role.value,
                    submitter_id=record.created_by_id,
                    details=dict(details or {}),
                )
            )

        logger.info(
            "workflow_transition",
            extra={
                "record_kind": kind.value,
                "action": transition.action.value,
                "from_status": before["status"],
                "to_status": record.status,
                "audit_action": transition.audit_action.value,
            },
        )

    def _bulk(
        self,
        action: WorkflowAction,
        record_ids: Iterable[UUID],
        actor: Actor | None,
        reason: str | None = None,
        note: str | None = None,
    ) -> list[FinancialRecord]:
        actor = self._require_actor(actor, f"bulk_{action.value}")
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return []

        batch_id = str(uuid4())
        mark = self._outbox.checkpoint()
        results: list[FinancialRecord] = []

        with LogContext.bind(batch_id=batch_id):
            try:
                with self._session.begin_nested():
                    if action == WorkflowAction.REQUEST_CORRECTION:
                        self._quota.reserve(actor, len(ids))
                    for record_id in ids:
                        try:
                            record = self._transition(
                                record_id,
                                action,
                                actor,
                                reason=reason,
                                note=note,
                                batch_id=batch_id,
                                reserve_quota=False,
                            )
                        except (SocietyKernelError, SQLAlchemyError) as exc:
                            raise BulkTransitionError(
                                action.value, str(record_id), exc, len(ids)
                            ) from exc
                        results.append(record.to_dto())
            except Exception as exc:
                self._outbox.discard_after(mark)
                logger.warning(
                    "bulk_transition_rolled_back",
                    extra={
                        "action": action.value,
                        "batch_size": len(ids),
                        "error_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                raise

        logger.info(
            "bulk_transition_completed",
            extra={"action": action.value, "batch_size": len(ids)},
        )
        return results
