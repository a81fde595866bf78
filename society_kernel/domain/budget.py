"""
Budget planning against actual spend (``society_kernel.domain.budget``).

Pure arithmetic over budget lines.  The reports layer supplies each line's
actual spend (approved expenses linked to the budget item) and renders
the result.

Invariants enforced
-------------------
* ``utilization = actual / budget * 100`` rounded to two places, and 0
  when the budget is zero.
* ``remaining = max(budget - actual, 0)`` and
  ``over_amount = max(actual - budget, 0)``; at most one is non-zero.
* A line is over budget iff its utilisation is above 100; above 80 it is
  a warning.
* A missing monthly budget defaults to the annual budget over twelve.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from society_kernel.db.types import round_money
from society_kernel.domain.reconciliation import fiscal_index, fiscal_year_bounds

WARNING_UTILIZATION = Decimal("80")
EXCEEDED_UTILIZATION = Decimal("100")

_ZERO = Decimal("0")
_CURRENCY_NOISE_RE = re.compile(r"[₹,\s]")
_SUMMARY_ROW_MARKERS = ("total", "per annum")


class BudgetBand(str, Enum):
    """How close a line is to its budget."""

    WITHIN = "within"
    WARNING = "warning"
    EXCEEDED = "exceeded"


def utilization(budget: Decimal, actual: Decimal) -> Decimal:
    """Actual as a percentage of budget; 0 for a zero budget."""
    if budget <= 0:
        return round_money(_ZERO)
    return round_money(actual * Decimal(100) / budget)


def budget_band(percentage: Decimal) -> BudgetBand:
    if percentage > EXCEEDED_UTILIZATION:
        return BudgetBand.EXCEEDED
    if percentage > WARNING_UTILIZATION:
        return BudgetBand.WARNING
    return BudgetBand.WITHIN


def default_monthly_budget(annual_budget: Decimal) -> Decimal:
    return round_money(annual_budget / Decimal(12)) if annual_budget > 0 else round_money(_ZERO)


def months_elapsed(as_of: date, start_year: int, start_month: int = 4) -> int:
    """Fiscal months begun by ``as_of`` (0 before the year, 12 after it)."""
    first, last = fiscal_year_bounds(start_year, start_month)
    if as_of < first:
        return 0
    if as_of > last:
        return 12
    return fiscal_index(as_of.month, start_month) + 1


@dataclass(frozen=True)
class BudgetLine:
    """One budget item of a fiscal year with what was spent against it."""

    serial_no: int
    item_name: str
    annual_budget: Decimal
    monthly_budget: Decimal
    actual: Decimal = _ZERO
    category: str | None = None
    committee: str | None = None

    @property
    def remaining(self) -> Decimal:
        return max(self.annual_budget - self.actual, _ZERO)

    @property
    def variance(self) -> Decimal:
        """Budget less actual; negative when over budget."""
        return self.annual_budget - self.actual

    @property
    def over_amount(self) -> Decimal:
        return max(self.actual - self.annual_budget, _ZERO)

    @property
    def utilization(self) -> Decimal:
        return utilization(self.annual_budget, self.actual)

    @property
    def band(self) -> BudgetBand:
        return budget_band(self.utilization)

    @property
    def is_over_budget(self) -> bool:
        return self.band == BudgetBand.EXCEEDED

    def year_to_date_budget(self, months: int) -> Decimal:
        """Monthly budget times the fiscal months elapsed, capped at the annual budget."""
        return min(round_money(self.monthly_budget * months), self.annual_budget)


@dataclass(frozen=True)
class BudgetSummary:
    """All budget lines of a fiscal year."""

    fiscal_year: str
    lines: tuple[BudgetLine, ...]

    @property
    def total_budget(self) -> Decimal:
        return sum((line.annual_budget for line in self.lines), _ZERO)

    @property
    def total_actual(self) -> Decimal:
        return sum((line.actual for line in self.lines), _ZERO)

    @property
    def total_remaining(self) -> Decimal:
        return max(self.total_budget - self.total_actual, _ZERO)

    @property
    def utilization(self) -> Decimal:
        return utilization(self.total_budget, self.total_actual)

    @property
    def over_budget(self) -> tuple[BudgetLine, ...]:
        """Lines above 100%, largest excess first."""
        over = [line for line in self.lines if line.is_over_budget]
        return tuple(sorted(over, key=lambda line: (-line.over_amount, line.serial_no)))

    @property
    def total_over_amount(self) -> Decimal:
        return sum((line.over_amount for line in self.over_budget), _ZERO)


def summarize(fiscal_year: str, lines: Iterable[BudgetLine]) -> BudgetSummary:
    return BudgetSummary(
        fiscal_year=fiscal_year,
        lines=tuple(sorted(lines, key=lambda line: line.serial_no)),
    )


# =========================================================================
# Budget sheet rows
# =========================================================================


def clean_amount(value: Any) -> Decimal:
    """
    Amount from a budget sheet cell.

    Rupee signs, thousands separators and spaces are ignored.  Blank or
    unreadable cells count as zero.
    """
    if value is None or isinstance(value, bool):
        return round_money(_ZERO)
    if isinstance(value, (int, Decimal)):
        return round_money(Decimal(value))
    text = _CURRENCY_NOISE_RE.sub("", str(value))
    try:
        amount = Decimal(text)
    except ArithmeticError:
        return round_money(_ZERO)
    if not amount.is_finite():
        return round_money(_ZERO)
    return round_money(amount)


def parse_serial(value: Any) -> int | None:
    """Positive serial number, or None for headers, blanks and subtotals."""
    if value is None or isinstance(value, bool):
        return None
    try:
        serial = int(Decimal(str(value).strip()))
    except (ArithmeticError, ValueError):
        return None
    return serial if serial > 0 else None


def budget_line_from_row(cells: tuple[Any, ...]) -> BudgetLine | None:
    """
    Budget line from the cells of one sheet row.

    Columns: serial, item, category, committee, annual budget with tax,
    monthly budget with tax.  Rows without a serial or an item, and
    "total" or "per annum" summary rows, give None.
    """
    padded = tuple(cells) + (None,) * (6 - len(cells))
    serial = parse_serial(padded[0])
    item_name = str(padded[1] or "").strip()
    if serial is None or not item_name:
        return None
    if any(marker in item_name.lower() for marker in _SUMMARY_ROW_MARKERS):
        return None

    annual = clean_amount(padded[4])
    monthly = clean_amount(padded[5])
    return BudgetLine(
        serial_no=serial,
        item_name=item_name,
        category=str(padded[2] or "").strip() or None,
        committee=str(padded[3] or "").strip() or None,
        annual_budget=annual,
        monthly_budget=monthly if monthly > 0 else default_monthly_budget(annual),
    )
