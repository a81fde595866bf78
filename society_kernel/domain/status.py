"""
Status vocabulary (``society_kernel.domain.status``).

Responsibility
--------------
The closed set of record kinds and workflow positions.  Values are stored
verbatim in the ``status`` and ``kind`` columns and must not be renamed.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A record's status is always a member of ``RecordStatus``.
* ``draft`` and ``submitted`` belong to the CAM lifecycle only; the other
  kinds start in ``pending``.
"""

from __future__ import annotations

from enum import Enum

from society_kernel.exceptions import InvalidRecordError


class RecordKind(str, Enum):
    """The four kinds of financial record."""

    EXPENSE = "expense"
    INCOME = "income"
    PETTY_CASH = "petty_cash"
    CAM = "cam"


class RecordStatus(str, Enum):
    """Workflow positions shared by all record kinds."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CORRECTION_PENDING = "correction_pending"
    CORRECTION_APPROVED = "correction_approved"


_COMMON_STATUSES = frozenset({
    RecordStatus.PENDING,
    RecordStatus.APPROVED,
    RecordStatus.REJECTED,
    RecordStatus.CORRECTION_PENDING,
    RecordStatus.CORRECTION_APPROVED,
})

STATUSES_BY_KIND: dict[RecordKind, frozenset[RecordStatus]] = {
    RecordKind.EXPENSE: _COMMON_STATUSES,
    RecordKind.INCOME: frozenset({
        RecordStatus.PENDING,
        RecordStatus.APPROVED,
        RecordStatus.REJECTED,
    }),
    RecordKind.PETTY_CASH: frozenset({
        RecordStatus.PENDING,
        RecordStatus.APPROVED,
        RecordStatus.REJECTED,
    }),
    RecordKind.CAM: frozenset({
        RecordStatus.DRAFT,
        RecordStatus.SUBMITTED,
        RecordStatus.APPROVED,
        RecordStatus.REJECTED,
        RecordStatus.CORRECTION_PENDING,
        RecordStatus.CORRECTION_APPROVED,
    }),
}

# Expenses that count as spent against their budget line: approved once,
# including while a correction is in flight.
BUDGET_ACTUAL_STATUSES: frozenset[RecordStatus] = frozenset({
    RecordStatus.APPROVED,
    RecordStatus.CORRECTION_PENDING,
    RecordStatus.CORRECTION_APPROVED,
})

# Statuses the reconciliation report treats as "recorded" for CAM.
CAM_RECORDED_STATUSES: frozenset[RecordStatus] = frozenset({
    RecordStatus.SUBMITTED,
    RecordStatus.APPROVED,
})


def validate_status(kind: RecordKind, status: RecordStatus) -> RecordStatus:
    """Reject a status that the given kind never occupies."""
    if status not in STATUSES_BY_KIND[kind]:
        raise InvalidRecordError(
            "status", f"{status.value} is not a {kind.value} status"
        )
    return status
