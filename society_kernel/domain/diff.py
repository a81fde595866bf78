"""
Before/after snapshots for the audit trail.

Snapshots are plain JSON-safe dicts so they can be stored in a JSON column
and hashed canonically.  Decimals become strings with their stored scale,
dates and UUIDs become their ISO/string forms.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

MULTIPLE_FIELDS = "multiple_fields"

# Workflow bookkeeping and derived columns; excluded from the correction type.
_NON_DATA_FIELDS = frozenset({
    "status",
    "is_correction",
    "correction_reason",
    "tax_amount",
    "withholding_amount",
    "total_flats",
})


def json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return str(value)


def snapshot(values: Mapping[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """JSON-safe copy of the named fields."""
    return {name: json_safe(values.get(name)) for name in fields}


def field_changes(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Reduce two snapshots to the fields that changed.

    Returns:
        ``(old_values, new_values)`` restricted to differing keys.
    """
    changed = [
        key for key in sorted(set(before) | set(after))
        if before.get(key) != after.get(key)
    ]
    return (
        {key: before.get(key) for key in changed},
        {key: after.get(key) for key in changed},
    )


def correction_type(changed_fields: Iterable[str]) -> str | None:
    """Name the single changed data field, ``multiple_fields``, or None."""
    fields = [name for name in changed_fields if name not in _NON_DATA_FIELDS]
    if not fields:
        return None
    if len(fields) == 1:
        return fields[0]
    return MULTIPLE_FIELDS
