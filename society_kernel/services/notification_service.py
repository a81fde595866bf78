"""
Notification outbox -- post-commit, best-effort notifications.

Responsibility:
    Collects one NotificationRequest per transition that notifies someone
    and hands them to a pluggable sink after the transaction commits.

Architecture position:
    Kernel > Services.  WorkflowService enqueues; ActionRunner (or any
    caller owning the transaction) dispatches after commit.

Invariants enforced:
    - Nothing is sent for work that was rolled back: bulk transitions
      discard what they queued when their savepoint rolls back, and the
      caller discards the whole outbox when its transaction fails.
    - A failing sink never raises into the caller; the failure is logged
      as ``notification_failed`` and the remaining requests still go out.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from society_kernel.domain.status import RecordKind
from society_kernel.domain.workflow import AuditAction, NotifyTarget
from society_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class NotificationRequest:
    """Who should hear about which transition."""

    record_id: UUID
    record_kind: RecordKind
    action: AuditAction
    recipients: NotifyTarget
    actor_id: UUID
    actor_role: str
    submitter_id: UUID | None = None
    details: dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    """Delivery channel (email, push, ...) supplied by the application."""

    def send(self, request: NotificationRequest) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: writes each request to the structured log."""

    def send(self, request: NotificationRequest) -> None:
        logger.info(
            "notification_sent",
            extra={
                "record_id": str(request.record_id),
                "record_kind": request.record_kind.value,
                "action": request.action.value,
                "recipients": request.recipients.value,
            },
        )


class NotificationOutbox:
    """In-memory queue of notifications awaiting commit."""

    def __init__(self) -> None:
        self._pending: list[NotificationRequest] = []

    @property
    def pending(self) -> tuple[NotificationRequest, ...]:
        return tuple(self._pending)

    def enqueue(self, request: NotificationRequest) -> None:
        self._pending.append(request)

    def checkpoint(self) -> int:
        """Mark the current position, for ``discard_after``."""
        return len(self._pending)

    def discard_after(self, mark: int) -> None:
        """Drop everything queued since ``checkpoint`` returned ``mark``."""
        del self._pending[mark:]

    def clear(self) -> None:
        self._pending.clear()

    def dispatch(self, sink: NotificationSink) -> int:
        """
        Send every pending request, then empty the outbox.

        Returns:
            Number of requests the sink accepted.
        """
        requests, self._pending = self._pending, []
        sent = 0
        for request in requests:
            try:
                sink.send(request)
                sent += 1
            except Exception:
                logger.warning(
                    "notification_failed",
                    extra={
                        "record_id": str(request.record_id),
                        "action": request.action.value,
                    },
                    exc_info=True,
                )
        return sent
