"""
DailyQuotaGuard -- caps same-day correction requests.

Responsibility:
    Counts correction requests made by the constrained role(s) on the
    current calendar day and refuses a batch that would push the count
    over the configured limit.

Architecture position:
    Kernel > Services -- imperative shell.  Called by WorkflowService
    before any correction request is written.

Invariants enforced:
    - Accept iff ``selection_size + used_today <= limit``.
    - ``reserve`` compares and increments under a row lock on the
      ``(scope_key, day)`` counter, inside the caller's transaction, so
      two concurrent batches cannot both slip under the limit.
    - A rejected batch consumes nothing.
    - ``check`` is advisory: it reads without locking, and its answer can
      be stale by the time the caller acts on it.

Failure modes:
    - DailyQuotaExceededError(requested, remaining, limit) from
      ``reserve``.
"""

from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from society_kernel.domain.clock import Clock, SystemClock
from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.quota import (
    QuotaDecision,
    QuotaScope,
    evaluate_quota,
    exempt_decision,
    quota_scope_key,
)
from society_kernel.domain.roles import Actor
from society_kernel.domain.workflow import AuditAction
from society_kernel.exceptions import DailyQuotaExceededError
from society_kernel.logging_config import get_logger
from society_kernel.models.quota import DailyQuotaCounter
from society_kernel.services.auditor_service import AuditorService

logger = get_logger("services.quota")


class DailyQuotaGuard:
    """
    Daily correction quota for the constrained role(s).

    Contract:
        ``reserve(actor, n)`` either consumes ``n`` units of today's quota
        or raises without consuming any.  Actors whose role is not
        constrained always pass and consume nothing.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        policy: WorkflowPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._policy = policy or WorkflowPolicy()
        self._clock = clock or SystemClock()

    @property
    def limit(self) -> int:
        return self._policy.daily_correction_limit

    def today(self) -> date:
        """Calendar day in the configured time zone."""
        return self._clock.today(self._policy.tzinfo)

    def _scope_key(self, actor: Actor) -> str:
        return quota_scope_key(actor, self._policy.quota_scope)

    def _counter(self, scope_key: str, day: date, lock: bool) -> DailyQuotaCounter | None:
        query = select(DailyQuotaCounter).where(
            DailyQuotaCounter.scope_key == scope_key,
            DailyQuotaCounter.day == day,
        )
        if lock:
            query = query.with_for_update()
        return self._session.execute(
            query.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _locked_counter(self, scope_key: str, day: date) -> DailyQuotaCounter:
        counter = self._counter(scope_key, day, lock=True)
        if counter is not None:
            return counter

        savepoint = self._session.begin_nested()
        try:
            counter = DailyQuotaCounter(scope_key=scope_key, day=day, used=0)
            self._session.add(counter)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            logger.debug(
                "quota_counter_race_retry",
                extra={"scope_key": scope_key, "day": day},
            )
            savepoint.rollback()
            counter = self._counter(scope_key, day, lock=True)
            if counter is None:
                raise
        return counter

    def used_today(self, actor: Actor) -> int:
        """Units consumed today by the actor's scope."""
        counter = self._counter(self._scope_key(actor), self.today(), lock=False)
        return counter.used if counter is not None else 0

    def check(self, actor: Actor, selection_size: int) -> QuotaDecision:
        """
        Advisory, read-only evaluation of a batch.

        The answer can be overtaken by a concurrent reservation; only
        ``reserve`` is authoritative.
        """
        if not self._policy.is_quota_constrained(actor.role):
            return exempt_decision(selection_size, self.limit)
        return evaluate_quota(selection_size, self.used_today(actor), self.limit)

    def reserve(self, actor: Actor, selection_size: int) -> QuotaDecision:
        """
        Atomically consume ``selection_size`` units of today's quota.

        Raises:
            DailyQuotaExceededError: The batch does not fit.  Nothing is
                consumed.
        """
        if not self._policy.is_quota_constrained(actor.role):
            return exempt_decision(selection_size, self.limit)

        scope_key = self._scope_key(actor)
        day = self.today()
        counter = self._locked_counter(scope_key, day)
        decision = evaluate_quota(selection_size, counter.used, self.limit)

        if not decision.accepted:
            logger.warning(
                "quota_rejected",
                extra={
                    "scope_key": scope_key,
                    "day": day,
                    "requested": selection_size,
                    "used": decision.used,
                    "limit": decision.limit,
                },
            )
            raise DailyQuotaExceededError(
                requested=selection_size,
                remaining=decision.remaining,
                limit=decision.limit,
            )

        counter.used += selection_size
        self._session.flush()
        logger.info(
            "quota_reserved",
            extra={
                "scope_key": scope_key,
                "day": day,
                "requested": selection_size,
                "used": counter.used,
                "limit": decision.limit,
            },
        )
        return decision

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Start and end instants of a calendar day in the configured zone."""
        start = datetime.combine(day, time.min, tzinfo=self._policy.tzinfo)
        return start, start + timedelta(days=1)

    def audited_usage(self, actor: Actor, auditor: AuditorService) -> int:
        """
        Correction requests in today's audit trail for the actor's scope.

        Matches ``used_today`` unless requests were written around the
        guard; the admin script reports both.
        """
        start, end = self.day_bounds(self.today())
        if self._policy.quota_scope == QuotaScope.ACTOR:
            return auditor.count_actions_between(
                AuditAction.CORRECTION_REQUESTED, start, end,
                actor_id=actor.actor_id,
            )
        return auditor.count_actions_between(
            AuditAction.CORRECTION_REQUESTED, start, end,
            actor_roles=(actor.role.value,),
        )
