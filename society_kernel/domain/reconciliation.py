"""
Missing-data reconciliation (``society_kernel.domain.reconciliation``).

Responsibility
--------------
Set difference of expected ``(series x fiscal month)`` combinations against
the months actually recorded, plus the fiscal calendar helpers the report
needs.  The report service gathers the recorded months from the database;
everything here is pure.

Architecture position
---------------------
**Kernel domain layer** -- pure functions and value objects.  ZERO I/O.

Invariants enforced
-------------------
* Fiscal months run from ``start_month`` for twelve months (Apr..Mar by
  default); missing entries come out in that order.
* A month range whose start comes after its end in fiscal order wraps
  around (Jan..Jun covers Jan, Feb, Mar, Apr, May, Jun).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

_MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_FISCAL_LABEL_RE = re.compile(r"^FY(\d{2})-(\d{2})$")


class EntryType(str, Enum):
    """Report sections, named as they appear in the exported sheet."""

    INCOME = "Income"
    EXPENSE = "Expense"
    PETTY_CASH = "Petty Cash"
    CAM = "CAM"


@dataclass(frozen=True)
class ExpectedSeries:
    """One row of expectations: a category (or tower) due every month."""

    entry_type: EntryType
    category: str
    subcategory: str | None = None
    recorded_months: frozenset[int] = frozenset()


@dataclass(frozen=True)
class MissingEntry:
    """A combination with no recorded entry."""

    entry_type: EntryType
    category: str
    subcategory: str | None
    month: str
    month_number: int

    @property
    def status(self) -> str:
        return "Missing"


def month_abbreviation(month_number: int) -> str:
    return _MONTH_ABBREVIATIONS[month_number - 1]


def month_number(abbreviation: str) -> int:
    """Calendar month number for a three-letter abbreviation."""
    try:
        return _MONTH_ABBREVIATIONS.index(abbreviation.strip().title()) + 1
    except ValueError as exc:
        raise ValueError(f"Unknown month: {abbreviation!r}") from exc


def fiscal_months(start_month: int = 4) -> tuple[int, ...]:
    """Calendar month numbers in fiscal order."""
    return tuple((start_month - 1 + offset) % 12 + 1 for offset in range(12))


def fiscal_index(month: int, start_month: int = 4) -> int:
    """Position of a calendar month within the fiscal year (0..11)."""
    return (month - start_month) % 12


def fiscal_year_start(day: date, start_month: int = 4) -> int:
    """Calendar year in which the fiscal year containing ``day`` starts."""
    return day.year if day.month >= start_month else day.year - 1


def fiscal_year_label(start_year: int) -> str:
    """``FY25-26`` for the fiscal year starting in 2025."""
    return f"FY{start_year % 100:02d}-{(start_year + 1) % 100:02d}"


def parse_fiscal_year_label(label: str, century: int = 2000) -> int:
    """Start year of a ``FYyy-yy`` label."""
    match = _FISCAL_LABEL_RE.match(label.strip())
    if not match:
        raise ValueError(f"Not a fiscal year label: {label!r}")
    first, second = (int(part) for part in match.groups())
    if (first + 1) % 100 != second:
        raise ValueError(f"Fiscal year label does not span one year: {label!r}")
    return century + first


def fiscal_year_bounds(start_year: int, start_month: int = 4) -> tuple[date, date]:
    """First and last day (inclusive) of a fiscal year."""
    start = date(start_year, start_month, 1)
    end = date(start_year + 1, start_month, 1) - timedelta(days=1)
    return start, end


def calendar_year_of(month: int, start_year: int, start_month: int = 4) -> int:
    """Calendar year of a fiscal month within the fiscal year."""
    return start_year if month >= start_month else start_year + 1


def find_missing(
    series: Iterable[ExpectedSeries],
    start_month: int = 4,
) -> list[MissingEntry]:
    """Every ``(series, month)`` pair whose month was not recorded."""
    months = fiscal_months(start_month)
    missing: list[MissingEntry] = []
    for row in series:
        for month in months:
            if month not in row.recorded_months:
                missing.append(
                    MissingEntry(
                        entry_type=row.entry_type,
                        category=row.category,
                        subcategory=row.subcategory,
                        month=month_abbreviation(month),
                        month_number=month,
                    )
                )
    return missing


def month_in_range(
    month: int,
    from_month: int,
    to_month: int,
    start_month: int = 4,
) -> bool:
    """Whether ``month`` lies in ``from..to`` in fiscal order, with wrap-around."""
    index = fiscal_index(month, start_month)
    low = fiscal_index(from_month, start_month)
    high = fiscal_index(to_month, start_month)
    if low <= high:
        return low <= index <= high
    return index >= low or index <= high


def filter_missing(
    entries: Iterable[MissingEntry],
    entry_type: EntryType | None = None,
    from_month: int | None = None,
    to_month: int | None = None,
    start_month: int = 4,
) -> list[MissingEntry]:
    """Apply the report's type and month-range filters."""
    months = fiscal_months(start_month)
    low = from_month if from_month is not None else months[0]
    high = to_month if to_month is not None else months[-1]
    return [
        entry for entry in entries
        if (entry_type is None or entry.entry_type == entry_type)
        and month_in_range(entry.month_number, low, high, start_month)
    ]
