"""
Roles and the authenticated actor.

The kernel does not authenticate anyone.  Callers hand it an ``Actor``
whose role was resolved elsewhere; the transition table decides what that
role may do.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from society_kernel.domain.status import RecordKind


class Role(str, Enum):
    """Roles known to the society's finance workflow."""

    TREASURER = "treasurer"
    ACCOUNTANT = "accountant"
    LEAD = "lead"
    OFFICE_ASSISTANT = "office_assistant"


# May approve, reject, edit approved records directly and delete.
PRIVILEGED_ROLES: frozenset[Role] = frozenset({Role.TREASURER})

APPROVER_ROLES: frozenset[Role] = frozenset({Role.TREASURER})

SUBMITTER_ROLES: dict[RecordKind, frozenset[Role]] = {
    RecordKind.EXPENSE: frozenset({Role.ACCOUNTANT}),
    RecordKind.INCOME: frozenset({Role.ACCOUNTANT, Role.OFFICE_ASSISTANT}),
    RecordKind.PETTY_CASH: frozenset({Role.ACCOUNTANT, Role.LEAD}),
    RecordKind.CAM: frozenset({Role.LEAD}),
}


@dataclass(frozen=True)
class Actor:
    """An authenticated user acting on records.

    Contract: frozen; ``role`` is exactly one ``Role``.
    """

    actor_id: UUID
    role: Role
    display_name: str = ""

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES
