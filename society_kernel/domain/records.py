"""
Financial record value objects and field rules.

Responsibility
--------------
Frozen DTOs for records and audit entries, and the per-kind rules that
decide which fields a submitter may set, which are required, and which are
derived (GST and TDS amounts, CAM tower size).

Architecture position
---------------------
**Kernel domain layer** -- pure functions and value objects.  ZERO I/O.

Invariants enforced
-------------------
* Money is Decimal, rounded with ``round_money``; floats are never stored.
* ``tax_amount = amount * tax_percentage / 100`` and likewise for the
  withholding amount, whenever a percentage is supplied.
* CAM: ``0 <= paid_flats``, ``0 <= pending_flats`` and
  ``paid_flats + pending_flats <= total_flats`` of the configured tower.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from society_kernel.db.types import money_from_value, percentage_of, round_money
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.domain.workflow import ACTION_LABELS, AuditAction
from society_kernel.exceptions import CAMFlatCountError, InvalidRecordError

_FISCAL_YEAR_RE = re.compile(r"^FY\d{2}-\d{2}$")


# =========================================================================
# DTOs
# =========================================================================


@dataclass(frozen=True)
class FinancialRecord:
    """Read-side view of a record of any kind.

    Variant fields are None on kinds that do not use them.
    """

    id: UUID
    kind: RecordKind
    status: RecordStatus
    amount: Decimal
    created_by_id: UUID
    tax_percentage: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    withholding_percentage: Decimal = Decimal("0")
    withholding_amount: Decimal = Decimal("0")
    description: str | None = None
    record_date: date | None = None
    is_correction: bool = False
    correction_reason: str | None = None
    correction_requested_at: datetime | None = None
    correction_approved_at: datetime | None = None
    correction_completed_at: datetime | None = None
    approved_by_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    category_id: UUID | None = None
    item_name: str | None = None
    budget_item_id: UUID | None = None
    attachment_url: str | None = None
    fiscal_year: str | None = None
    month: int | None = None
    year: int | None = None
    tower: str | None = None
    paid_flats: int | None = None
    pending_flats: int | None = None
    total_flats: int | None = None
    dues_cleared_from_previous: int | None = None
    advance_payments: int | None = None

    @property
    def net_payable(self) -> Decimal:
        """Base amount plus GST less TDS."""
        return round_money(self.amount + self.tax_amount - self.withholding_amount)

    @property
    def is_draft(self) -> bool:
        return self.status == RecordStatus.DRAFT


@dataclass(frozen=True)
class AuditLogEntry:
    """One immutable line of a record's audit trail."""

    id: UUID
    seq: int
    record_id: UUID
    record_kind: RecordKind
    action: AuditAction
    actor_id: UUID
    actor_role: str
    occurred_at: datetime
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    correction_type: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    hash: str = ""

    @property
    def label(self) -> str:
        return ACTION_LABELS[self.action]

    @property
    def changes(self) -> dict[str, tuple[Any, Any]]:
        """Fields whose value differs between old and new snapshots."""
        old = self.old_values or {}
        new = self.new_values or {}
        return {
            key: (old.get(key), new.get(key))
            for key in sorted(set(old) | set(new))
            if old.get(key) != new.get(key)
        }


@dataclass(frozen=True)
class AuditTrail:
    """All audit entries of one record, in ``seq`` order."""

    record_id: UUID
    entries: tuple[AuditLogEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def first_action(self) -> AuditAction | None:
        return self.entries[0].action if self.entries else None

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)

    def render(self) -> list[str]:
        """Human-readable trail, one line per entry plus one per changed field."""
        lines: list[str] = []
        for entry in self.entries:
            stamp = entry.occurred_at.strftime("%Y-%m-%d %H:%M")
            lines.append(f"{stamp}  {entry.label} by {entry.actor_role}")
            reason = entry.details.get("reason")
            if reason:
                lines.append(f"    reason: {reason}")
            for name, (old, new) in entry.changes.items():
                lines.append(f"    {name}: {_display(old)} -> {_display(new)}")
        return lines


def _display(value: Any) -> str:
    return "-" if value is None else str(value)


# =========================================================================
# Field rules
# =========================================================================

_COMMON_FIELDS = frozenset({
    "amount",
    "tax_percentage",
    "withholding_percentage",
    "description",
    "record_date",
    "attachment_url",
})

EDITABLE_FIELDS: dict[RecordKind, frozenset[str]] = {
    RecordKind.EXPENSE: _COMMON_FIELDS | {"category_id", "item_name", "budget_item_id"},
    RecordKind.INCOME: _COMMON_FIELDS | {"category_id", "fiscal_year", "month"},
    RecordKind.PETTY_CASH: _COMMON_FIELDS | {"item_name"},
    RecordKind.CAM: frozenset({
        "amount",
        "description",
        "attachment_url",
        "tower",
        "year",
        "month",
        "paid_flats",
        "pending_flats",
        "dues_cleared_from_previous",
        "advance_payments",
    }),
}

REQUIRED_FIELDS: dict[RecordKind, tuple[str, ...]] = {
    RecordKind.EXPENSE: ("amount", "description", "record_date", "category_id"),
    RecordKind.INCOME: ("amount", "category_id", "fiscal_year", "month"),
    RecordKind.PETTY_CASH: ("amount", "item_name", "record_date"),
    RecordKind.CAM: ("tower", "year", "month", "paid_flats", "pending_flats"),
}

# Fields the kernel computes; never accepted from callers.
DERIVED_FIELDS = ("tax_amount", "withholding_amount", "total_flats")

# Fields that make up the before/after snapshot of a record.
SNAPSHOT_FIELDS: tuple[str, ...] = (
    "status",
    "amount",
    "tax_percentage",
    "tax_amount",
    "withholding_percentage",
    "withholding_amount",
    "description",
    "record_date",
    "category_id",
    "item_name",
    "budget_item_id",
    "attachment_url",
    "fiscal_year",
    "month",
    "year",
    "tower",
    "paid_flats",
    "pending_flats",
    "total_flats",
    "dues_cleared_from_previous",
    "advance_payments",
    "is_correction",
    "correction_reason",
)

_INT_FIELDS = frozenset({
    "year",
    "month",
    "paid_flats",
    "pending_flats",
    "dues_cleared_from_previous",
    "advance_payments",
})


def _coerce_amount(name: str, value: Any) -> Decimal:
    try:
        amount = money_from_value(value)
    except ValueError as exc:
        raise InvalidRecordError(name, str(exc)) from exc
    if not amount.is_finite() or amount < 0:
        raise InvalidRecordError(name, "must be a non-negative amount")
    return round_money(amount)


def _coerce_percentage(name: str, value: Any) -> Decimal:
    pct = _coerce_amount(name, value)
    if pct > 100:
        raise InvalidRecordError(name, "must be between 0 and 100")
    return pct


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidRecordError(name, "must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRecordError(name, "must be a whole number") from exc
    if number != Decimal(str(value)):
        raise InvalidRecordError(name, "must be a whole number")
    if number < 0:
        raise InvalidRecordError(name, "must not be negative")
    if name == "month" and not 1 <= number <= 12:
        raise InvalidRecordError(name, "must be between 1 and 12")
    return number


def _coerce_date(name: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise InvalidRecordError(name, "must be an ISO date (YYYY-MM-DD)") from exc


def _coerce_uuid(name: str, value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidRecordError(name, "must be a UUID") from exc


def _coerce_text(name: str, value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce(name: str, value: Any, tower_flats: Mapping[str, int]) -> Any:
    if value is None:
        return None
    if name == "amount":
        return _coerce_amount(name, value)
    if name in ("tax_percentage", "withholding_percentage"):
        return _coerce_percentage(name, value)
    if name in _INT_FIELDS:
        return _coerce_int(name, value)
    if name == "record_date":
        return _coerce_date(name, value)
    if name in ("category_id", "budget_item_id"):
        return _coerce_uuid(name, value)
    if name == "fiscal_year":
        text = str(value).strip()
        if not _FISCAL_YEAR_RE.match(text):
            raise InvalidRecordError(name, "expected the form FY25-26")
        return text
    if name == "tower":
        tower = str(value).strip()
        if tower not in tower_flats:
            raise InvalidRecordError(name, f"unknown tower {tower!r}")
        return tower
    return _coerce_text(name, value)


def normalize_changes(
    kind: RecordKind,
    changes: Mapping[str, Any],
    tower_flats: Mapping[str, int],
) -> dict[str, Any]:
    """
    Validate and coerce caller-supplied field values for a record kind.

    Raises:
        InvalidRecordError: Unknown field, or a value of the wrong shape.
    """
    allowed = EDITABLE_FIELDS[kind]
    cleaned: dict[str, Any] = {}
    for name, value in changes.items():
        if name not in allowed:
            raise InvalidRecordError(name, f"not an editable {kind.value} field")
        cleaned[name] = _coerce(name, value, tower_flats)
    return cleaned


def derive_fields(
    kind: RecordKind,
    values: Mapping[str, Any],
    tower_flats: Mapping[str, int],
) -> dict[str, Any]:
    """
    Compute derived fields from a merged set of values.

    Raises:
        CAMFlatCountError: Paid plus pending flats exceed the tower.
    """
    derived: dict[str, Any] = {}
    if kind == RecordKind.CAM:
        tower = values.get("tower")
        if tower is not None:
            total = tower_flats[tower]
            paid = values.get("paid_flats") or 0
            pending = values.get("pending_flats") or 0
            if paid + pending > total:
                raise CAMFlatCountError(tower, paid, pending, total)
            derived["total_flats"] = total
        return derived

    amount = values.get("amount")
    if amount is None:
        return derived
    tax_pct = values.get("tax_percentage") or Decimal("0")
    tds_pct = values.get("withholding_percentage") or Decimal("0")
    derived["tax_amount"] = percentage_of(amount, tax_pct)
    derived["withholding_amount"] = percentage_of(amount, tds_pct)
    return derived


def check_required(kind: RecordKind, values: Mapping[str, Any]) -> None:
    """Raise InvalidRecordError for the first missing required field."""
    for name in REQUIRED_FIELDS[kind]:
        if values.get(name) is None:
            raise InvalidRecordError(name, "is required")


def prepare_changes(
    kind: RecordKind,
    current: Mapping[str, Any],
    changes: Mapping[str, Any],
    tower_flats: Mapping[str, int],
    require_complete: bool = True,
) -> dict[str, Any]:
    """
    Turn caller-supplied changes into the column updates to write.

    ``current`` is the record's present values (empty for a new record).
    The result holds the normalised changes plus every derived field.
    Drafts pass ``require_complete=False`` and may omit required fields.
    """
    cleaned = normalize_changes(kind, changes, tower_flats)
    merged = {**current, **cleaned}
    derived = derive_fields(kind, merged, tower_flats)
    merged.update(derived)
    if require_complete:
        check_required(kind, merged)
    return {**cleaned, **derived}
