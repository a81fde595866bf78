"""
Transition rules (``society_kernel.domain.workflow``).

Responsibility
--------------
The explicit map ``(kind, from_status, action) -> Transition`` that governs
every status change of a financial record, plus the audit action tags and
their human-readable labels.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Only ``approved`` may enter ``correction_pending``.
* Only ``correction_pending`` may enter ``correction_approved`` or revert
  to ``approved`` (rejection clears the reason).
* Only ``correction_approved`` may be completed; completion returns the
  record to ``approved`` with ``is_correction`` set.
* A combination absent from ``TRANSITIONS`` is refused, as is a role
  outside the transition's ``allowed_roles``.  Both checks run before any
  write.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from society_kernel.domain.roles import APPROVER_ROLES, SUBMITTER_ROLES, Actor, Role
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.exceptions import InvalidTransitionError, UnauthorizedActorError


class WorkflowAction(str, Enum):
    """What an actor asks to do to a record."""

    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CORRECTION = "request_correction"
    APPROVE_CORRECTION = "approve_correction"
    REJECT_CORRECTION = "reject_correction"
    COMPLETE_CORRECTION = "complete_correction"


class AuditAction(str, Enum):
    """Action tags written to the audit trail.

    The first seven are the workflow tags.  ``edited`` and ``deleted`` record
    the privileged paths that bypass the state machine; ``draft_saved``
    records CAM drafts.
    """

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CORRECTION_REQUESTED = "correction_requested"
    CORRECTION_APPROVED = "correction_approved"
    CORRECTION_REJECTED = "correction_rejected"
    CORRECTION_COMPLETED = "correction_completed"
    EDITED = "edited"
    DELETED = "deleted"
    DRAFT_SAVED = "draft_saved"


ACTION_LABELS: dict[AuditAction, str] = {
    AuditAction.SUBMITTED: "Submitted",
    AuditAction.APPROVED: "Approved",
    AuditAction.REJECTED: "Rejected",
    AuditAction.CORRECTION_REQUESTED: "Correction Requested",
    AuditAction.CORRECTION_APPROVED: "Correction Approved",
    AuditAction.CORRECTION_REJECTED: "Correction Rejected",
    AuditAction.CORRECTION_COMPLETED: "Correction Completed",
    AuditAction.EDITED: "Edited",
    AuditAction.DELETED: "Deleted",
    AuditAction.DRAFT_SAVED: "Draft Saved",
}

# Audit actions whose entry carries a field-level before/after diff.
FULL_DIFF_ACTIONS: frozenset[AuditAction] = frozenset({
    AuditAction.CORRECTION_COMPLETED,
    AuditAction.EDITED,
})


class NotifyTarget(str, Enum):
    """Which side of the workflow hears about a transition."""

    APPROVERS = "approvers"
    SUBMITTER = "submitter"
    NONE = "none"


@dataclass(frozen=True)
class Transition:
    """One row of the transition table.

    Contract: frozen.  ``from_status`` is None for the transition that
    creates a record.  The flags describe side effects the workflow service
    applies; the transition itself performs none.

    applies_changes:  caller-supplied field values are written.
    records_decision: ``approved_by_id`` is set to the actor.
    requires_reason:  a non-blank correction reason is mandatory.
    consumes_quota:   one unit of the daily correction quota is reserved.
    clears_correction: correction reason and request time are cleared.
    marks_correction: ``is_correction`` becomes True.
    stamps:           name of the timestamp column set to the current time.
    """

    kind: RecordKind
    from_status: RecordStatus | None
    action: WorkflowAction
    to_status: RecordStatus
    allowed_roles: frozenset[Role]
    audit_action: AuditAction
    notify: NotifyTarget = NotifyTarget.NONE
    applies_changes: bool = False
    records_decision: bool = False
    requires_reason: bool = False
    consumes_quota: bool = False
    clears_correction: bool = False
    marks_correction: bool = False
    stamps: str | None = None

    @property
    def key(self) -> tuple[RecordKind, RecordStatus | None, WorkflowAction]:
        return (self.kind, self.from_status, self.action)

    @property
    def full_diff(self) -> bool:
        return self.audit_action in FULL_DIFF_ACTIONS


def _review(kind: RecordKind, from_status: RecordStatus) -> tuple[Transition, ...]:
    return (
        Transition(
            kind, from_status, WorkflowAction.APPROVE, RecordStatus.APPROVED,
            APPROVER_ROLES, AuditAction.APPROVED,
            notify=NotifyTarget.SUBMITTER, records_decision=True,
        ),
        Transition(
            kind, from_status, WorkflowAction.REJECT, RecordStatus.REJECTED,
            APPROVER_ROLES, AuditAction.REJECTED,
            notify=NotifyTarget.SUBMITTER, records_decision=True,
        ),
    )


def _correction_cycle(kind: RecordKind) -> tuple[Transition, ...]:
    submitters = SUBMITTER_ROLES[kind]
    return (
        Transition(
            kind, RecordStatus.APPROVED, WorkflowAction.REQUEST_CORRECTION,
            RecordStatus.CORRECTION_PENDING, submitters,
            AuditAction.CORRECTION_REQUESTED,
            notify=NotifyTarget.APPROVERS, requires_reason=True,
            consumes_quota=True, stamps="correction_requested_at",
        ),
        Transition(
            kind, RecordStatus.CORRECTION_PENDING, WorkflowAction.APPROVE_CORRECTION,
            RecordStatus.CORRECTION_APPROVED, APPROVER_ROLES,
            AuditAction.CORRECTION_APPROVED,
            notify=NotifyTarget.SUBMITTER, stamps="correction_approved_at",
        ),
        Transition(
            kind, RecordStatus.CORRECTION_PENDING, WorkflowAction.REJECT_CORRECTION,
            RecordStatus.APPROVED, APPROVER_ROLES,
            AuditAction.CORRECTION_REJECTED,
            notify=NotifyTarget.SUBMITTER, clears_correction=True,
        ),
        Transition(
            kind, RecordStatus.CORRECTION_APPROVED, WorkflowAction.COMPLETE_CORRECTION,
            RecordStatus.APPROVED, submitters,
            AuditAction.CORRECTION_COMPLETED,
            notify=NotifyTarget.APPROVERS, applies_changes=True,
            marks_correction=True, stamps="correction_completed_at",
        ),
    )


def _submit_for_review(kind: RecordKind) -> tuple[Transition, ...]:
    return (
        Transition(
            kind, None, WorkflowAction.SUBMIT, RecordStatus.PENDING,
            SUBMITTER_ROLES[kind], AuditAction.SUBMITTED,
            notify=NotifyTarget.APPROVERS, applies_changes=True,
        ),
        *_review(kind, RecordStatus.PENDING),
    )


def _cam_lifecycle() -> tuple[Transition, ...]:
    kind = RecordKind.CAM
    leads = SUBMITTER_ROLES[kind]
    drafts = tuple(
        Transition(
            kind, from_status, WorkflowAction.SAVE_DRAFT, RecordStatus.DRAFT,
            leads, AuditAction.DRAFT_SAVED, applies_changes=True,
        )
        for from_status in (None, RecordStatus.DRAFT)
    )
    submits = tuple(
        Transition(
            kind, from_status, WorkflowAction.SUBMIT, RecordStatus.SUBMITTED,
            leads, AuditAction.SUBMITTED,
            notify=NotifyTarget.APPROVERS, applies_changes=True,
        )
        for from_status in (None, RecordStatus.DRAFT, RecordStatus.REJECTED)
    )
    return drafts + submits + _review(kind, RecordStatus.SUBMITTED)


def _build_table() -> dict[tuple, Transition]:
    rows = (
        *_submit_for_review(RecordKind.EXPENSE),
        *_correction_cycle(RecordKind.EXPENSE),
        *_submit_for_review(RecordKind.INCOME),
        *_submit_for_review(RecordKind.PETTY_CASH),
        *_cam_lifecycle(),
        *_correction_cycle(RecordKind.CAM),
    )
    table: dict[tuple, Transition] = {}
    for row in rows:
        assert row.key not in table, f"duplicate transition {row.key}"
        table[row.key] = row
    return table


TRANSITIONS: dict[
    tuple[RecordKind, RecordStatus | None, WorkflowAction], Transition
] = _build_table()


def find_transition(
    kind: RecordKind,
    from_status: RecordStatus | None,
    action: WorkflowAction,
) -> Transition | None:
    """Look up a transition without checking the role."""
    return TRANSITIONS.get((kind, from_status, action))


def resolve_transition(
    kind: RecordKind,
    from_status: RecordStatus | None,
    action: WorkflowAction,
    actor: Actor,
) -> Transition:
    """
    Return the transition an actor may take, or raise.

    Raises:
        InvalidTransitionError: No row for ``(kind, from_status, action)``.
        UnauthorizedActorError: The actor's role is not allowed on the row.
    """
    transition = find_transition(kind, from_status, action)
    if transition is None:
        raise InvalidTransitionError(
            kind.value,
            from_status.value if from_status is not None else None,
            action.value,
        )
    if actor.role not in transition.allowed_roles:
        raise UnauthorizedActorError(
            str(actor.actor_id),
            actor.role.value,
            action.value,
            tuple(sorted(role.value for role in transition.allowed_roles)),
        )
    return transition


def available_actions(
    kind: RecordKind,
    status: RecordStatus | None,
    role: Role,
) -> tuple[WorkflowAction, ...]:
    """Actions the role may take on a record of this kind and status."""
    return tuple(
        t.action
        for t in TRANSITIONS.values()
        if t.kind == kind and t.from_status == status and role in t.allowed_roles
    )
