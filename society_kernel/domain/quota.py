"""
Daily correction quota (``society_kernel.domain.quota``).

Pure decision logic.  The service layer supplies today's usage (from the
locked counter row) and acts on the decision.

Invariants enforced
-------------------
* A batch is accepted iff ``selection_size + used_today <= limit``.
* A rejected batch consumes nothing.
* Roles outside the constrained set always get an accepted, exempt
  decision whatever the batch size.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from society_kernel.domain.roles import Actor


class QuotaScope(str, Enum):
    """Whose requests share one daily budget."""

    ROLE = "role"
    ACTOR = "actor"


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of evaluating one batch against today's usage."""

    accepted: bool
    requested: int
    used: int
    limit: int
    exempt: bool = False

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    @property
    def used_after(self) -> int:
        if self.exempt or not self.accepted:
            return self.used
        return self.used + self.requested


def evaluate_quota(selection_size: int, used_today: int, limit: int) -> QuotaDecision:
    """
    Decide whether a batch fits in what is left of today's quota.

    Raises:
        ValueError: Negative size, usage or limit.
    """
    if selection_size < 0 or used_today < 0 or limit < 0:
        raise ValueError("quota inputs must be non-negative")
    return QuotaDecision(
        accepted=selection_size + used_today <= limit,
        requested=selection_size,
        used=used_today,
        limit=limit,
    )


def exempt_decision(selection_size: int, limit: int) -> QuotaDecision:
    """Accepted decision for a role the quota does not apply to; consumes nothing."""
    if selection_size < 0:
        raise ValueError("quota inputs must be non-negative")
    return QuotaDecision(
        accepted=True,
        requested=selection_size,
        used=0,
        limit=limit,
        exempt=True,
    )


def quota_scope_key(actor: Actor, scope: QuotaScope) -> str:
    """Counter key for the actor under the configured scope."""
    if scope == QuotaScope.ACTOR:
        return f"actor:{actor.actor_id}"
    return f"role:{actor.role.value}"
