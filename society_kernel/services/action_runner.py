"""
ActionRunner -- the boundary between callers and the workflow.

Responsibility:
    Runs one user action in its own transaction: commit on success,
    rollback on failure, notifications dispatched only after commit.
    Every kernel error comes back as an ``ActionResult`` carrying its
    ``code`` and a user-facing message; nothing is retried.

Architecture position:
    Kernel > Services -- outermost kernel entry point.  UI or API layers
    call ``run`` and render the result.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from society_kernel.db.engine import session_scope
from society_kernel.domain.clock import Clock, SystemClock
from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.roles import Actor
from society_kernel.exceptions import NotAuthenticatedError, SocietyKernelError
from society_kernel.logging_config import LogContext, get_logger
from society_kernel.services.auditor_service import AuditorService
from society_kernel.services.notification_service import (
    LoggingNotificationSink,
    NotificationOutbox,
    NotificationSink,
)
from society_kernel.services.quota_service import DailyQuotaGuard
from society_kernel.services.workflow_service import WorkflowService

logger = get_logger("services.action_runner")

T = TypeVar("T")

BACKEND_REJECTED = "BACKEND_REJECTED"


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Outcome of one action as shown to the user."""

    success: bool
    value: T | None = None
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, value: T) -> "ActionResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error_code: str, message: str) -> "ActionResult[T]":
        return cls(success=False, error_code=error_code, message=message)


class ActionRunner:
    """
    Runs workflow actions with commit-or-rollback semantics.

    Contract:
        ``run(actor, name, fn)`` calls ``fn(workflow)`` with a
        WorkflowService bound to a fresh session.  A missing actor is
        refused before a session is opened.

    Guarantees:
        - Notifications are sent only for committed work.
        - Kernel errors become ``ActionResult.failed(code, message)``.
        - Database errors are reported verbatim as ``BACKEND_REJECTED``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        policy: WorkflowPolicy | None = None,
        clock: Clock | None = None,
        sink: NotificationSink | None = None,
    ):
        self._session_factory = session_factory
        self._policy = policy or WorkflowPolicy()
        self._clock = clock or SystemClock()
        self._sink = sink or LoggingNotificationSink()

    def _workflow(self, session: Session, outbox: NotificationOutbox) -> WorkflowService:
        auditor = AuditorService(session, self._clock)
        quota = DailyQuotaGuard(session, self._policy, self._clock)
        return WorkflowService(
            session,
            auditor=auditor,
            quota_guard=quota,
            policy=self._policy,
            clock=self._clock,
            outbox=outbox,
        )

    def run(
        self,
        actor: Actor | None,
        action_name: str,
        fn: Callable[[WorkflowService], T],
    ) -> ActionResult[T]:
        """Run one action and report its outcome."""
        if actor is None:
            error = NotAuthenticatedError(action_name)
            logger.warning(
                "action_refused",
                extra={"action": action_name, "error_code": error.code},
            )
            return ActionResult.failed(error.code, str(error))

        outbox = NotificationOutbox()
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            actor_role=actor.role.value,
        ):
            try:
                with session_scope(self._session_factory) as session:
                    value = fn(self._workflow(session, outbox))
            except SocietyKernelError as exc:
                outbox.clear()
                logger.info(
                    "action_failed",
                    extra={"action": action_name, "error_code": exc.code},
                )
                return ActionResult.failed(exc.code, str(exc))
            except SQLAlchemyError as exc:
                outbox.clear()
                logger.error(
                    "action_backend_rejected",
                    extra={"action": action_name},
                    exc_info=True,
                )
                message = str(getattr(exc, "orig", None) or exc)
                return ActionResult.failed(BACKEND_REJECTED, message)

            sent = outbox.dispatch(self._sink)
            logger.info(
                "action_completed",
                extra={"action": action_name, "notifications_sent": sent},
            )
            return ActionResult.ok(value)

