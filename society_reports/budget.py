"""
BudgetReportService -- planned versus actual spend per budget item.

Responsibility:
    Loads a fiscal year's budget items, sums the spend recorded against
    each, and returns a BudgetSummary (utilisation, remaining, over-budget
    lines).  Also imports a committee budget sheet, upserting items by
    ``(fiscal_year, serial_no)``.

Architecture position:
    Reports layer.  Reads kernel models and writes only ``budget_items``;
    the arithmetic lives in ``society_kernel.domain.budget``.

Actual spend means:
    Expenses in an approved or correction status, dated inside the fiscal
    year and linked to the item by ``budget_item_id``, counted with GST
    (``amount + tax_amount``) since budgets are planned with tax.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO
from uuid import UUID

from openpyxl import load_workbook
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from society_kernel.db.types import money_from_value, round_money
from society_kernel.domain.budget import (
    BudgetLine,
    BudgetSummary,
    budget_line_from_row,
    summarize,
)
from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.reconciliation import fiscal_year_bounds, fiscal_year_label
from society_kernel.domain.roles import PRIVILEGED_ROLES, Actor
from society_kernel.domain.status import BUDGET_ACTUAL_STATUSES, RecordKind
from society_kernel.exceptions import BudgetImportError, UnauthorizedActorError
from society_kernel.logging_config import get_logger
from society_kernel.models.budget import BudgetItemModel
from society_kernel.models.records import FinancialRecordModel

logger = get_logger("reports.budget")

_HEADER_SERIAL = "SL.NO"
_HEADER_ITEM = "ITEM"


@dataclass(frozen=True)
class BudgetImportResult:
    fiscal_year: str
    created: int
    updated: int

    @property
    def total(self) -> int:
        return self.created + self.updated


# =========================================================================
# Budget sheet reader
# =========================================================================


def _is_header(cells: tuple[Any, ...]) -> bool:
    first = str(cells[0]).strip().upper() if cells and cells[0] is not None else ""
    second = str(cells[1]).strip().upper() if len(cells) > 1 and cells[1] is not None else ""
    return first == _HEADER_SERIAL or second == _HEADER_ITEM


def _budget_sheet(wb):
    for ws in wb.worksheets:
        title = ws.title.lower()
        if "summary" in title and "whole year" in title:
            return ws
    return wb.worksheets[0]


def read_budget_workbook(source: Path | str | bytes | BinaryIO) -> list[BudgetLine]:
    """
    Budget lines from a committee budget workbook.

    Uses the "Summary - for whole year" sheet when there is one, else the
    first sheet.  Rows above the ``SL.NO`` / ``ITEM`` header are ignored,
    as are subtotal and blank rows below it.

    Raises:
        BudgetImportError: No header row on the sheet.
    """
    if isinstance(source, bytes):
        source = BytesIO(source)
    wb = load_workbook(source, read_only=True, data_only=True)
    try:
        ws = _budget_sheet(wb)
        rows = ws.iter_rows(values_only=True)
        for cells in rows:
            if _is_header(cells):
                break
        else:
            raise BudgetImportError(ws.title, "no SL.NO / ITEM header row")
        lines = [line for line in map(budget_line_from_row, rows) if line is not None]
    finally:
        wb.close()
    logger.info("budget_sheet_read", extra={"sheet": ws.title, "line_count": len(lines)})
    return lines


# =========================================================================
# Service
# =========================================================================


class BudgetReportService:
    """
    Budget versus actual for one fiscal year.

    Contract:
        ``summary(start_year)`` returns every budget item of the year in
        serial order with its actual spend.  Spend on expenses without a
        budget item is not attributed to any line.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, policy: WorkflowPolicy | None = None):
        self._session = session
        self._policy = policy or WorkflowPolicy()

    def items(self, start_year: int) -> list[BudgetItemModel]:
        return list(
            self._session.execute(
                select(BudgetItemModel)
                .where(BudgetItemModel.fiscal_year == fiscal_year_label(start_year))
                .order_by(BudgetItemModel.serial_no)
            ).scalars()
        )

    def actuals(self, start_year: int, as_of: date | None = None) -> dict[UUID, Decimal]:
        """Spend with GST per budget item, optionally only up to ``as_of``."""
        first, last = fiscal_year_bounds(start_year, self._policy.fiscal_year_start_month)
        if as_of is not None:
            last = min(last, as_of)
        spent = func.sum(FinancialRecordModel.amount + FinancialRecordModel.tax_amount)
        rows = self._session.execute(
            select(FinancialRecordModel.budget_item_id, spent)
            .where(
                FinancialRecordModel.kind == RecordKind.EXPENSE.value,
                FinancialRecordModel.status.in_(
                    [status.value for status in BUDGET_ACTUAL_STATUSES]
                ),
                FinancialRecordModel.budget_item_id.is_not(None),
                FinancialRecordModel.record_date >= first,
                FinancialRecordModel.record_date <= last,
            )
            .group_by(FinancialRecordModel.budget_item_id)
        ).all()
        return {item_id: round_money(money_from_value(total or 0)) for item_id, total in rows}

    def summary(self, start_year: int, as_of: date | None = None) -> BudgetSummary:
        spent = self.actuals(start_year, as_of)
        summary = summarize(
            fiscal_year_label(start_year),
            (item.to_line(spent.get(item.id, Decimal("0"))) for item in self.items(start_year)),
        )
        logger.info(
            "budget_report_built",
            extra={
                "fiscal_year": summary.fiscal_year,
                "line_count": len(summary.lines),
                "over_budget_count": len(summary.over_budget),
                "total_budget": summary.total_budget,
                "total_actual": summary.total_actual,
            },
        )
        return summary

    def import_lines(
        self,
        start_year: int,
        lines: Iterable[BudgetLine],
        actor: Actor,
    ) -> BudgetImportResult:
        """
        Create or update the year's budget items from sheet lines.

        Items already present but missing from ``lines`` are left alone.

        Raises:
            UnauthorizedActorError: The actor is not a treasurer.
        """
        if actor.role not in PRIVILEGED_ROLES:
            raise UnauthorizedActorError(
                str(actor.actor_id),
                actor.role.value,
                "import_budget",
                tuple(sorted(role.value for role in PRIVILEGED_ROLES)),
            )

        label = fiscal_year_label(start_year)
        existing = {
            item.serial_no: item
            for item in self._session.execute(
                select(BudgetItemModel)
                .where(BudgetItemModel.fiscal_year == label)
                .with_for_update()
            ).scalars()
        }
        created = updated = 0
        for line in lines:
            item = existing.get(line.serial_no)
            if item is None:
                item = BudgetItemModel(fiscal_year=label, serial_no=line.serial_no)
                self._session.add(item)
                existing[line.serial_no] = item
                created += 1
            else:
                updated += 1
            item.item_name = line.item_name
            item.category = line.category
            item.committee = line.committee
            item.annual_budget = line.annual_budget
            item.monthly_budget = line.monthly_budget
        self._session.flush()

        logger.info(
            "budget_imported",
            extra={
                "fiscal_year": label,
                "created": created,
                "updated": updated,
                "actor_id": str(actor.actor_id),
            },
        )
        return BudgetImportResult(fiscal_year=label, created=created, updated=updated)
