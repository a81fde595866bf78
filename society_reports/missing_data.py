"""
MissingDataReportService -- which months have no recorded entry.

Responsibility:
    Builds the expected ``(series x fiscal month)`` grid for a fiscal year
    from the database (active categories, configured towers), collects the
    months that are actually recorded, and returns the difference.

Architecture position:
    Reports layer.  Read-only over kernel models; the set arithmetic lives
    in ``society_kernel.domain.reconciliation``.

Recorded means:
    - Income: approved, with the fiscal year's ``FYyy-yy`` label.
    - Expense and petty cash: approved, dated inside the fiscal year.
    - CAM: submitted or approved, with ``(year, month)`` in the fiscal year.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from society_kernel.domain.policy import WorkflowPolicy
from society_kernel.domain.reconciliation import (
    EntryType,
    ExpectedSeries,
    MissingEntry,
    calendar_year_of,
    filter_missing,
    find_missing,
    fiscal_year_bounds,
    fiscal_year_label,
)
from society_kernel.domain.status import (
    CAM_RECORDED_STATUSES,
    RecordKind,
    RecordStatus,
)
from society_kernel.logging_config import get_logger
from society_kernel.models.category import CategoryModel
from society_kernel.models.records import FinancialRecordModel

logger = get_logger("reports.missing_data")

PETTY_CASH_SERIES = "Petty Cash Entries"


class MissingDataReportService:
    """
    Missing-data reconciliation for one fiscal year.

    Contract:
        ``report(start_year, ...)`` returns MissingEntry rows ordered by
        section (Income, Expense, Petty Cash, CAM), then series, then
        fiscal month.
    """

    def __init__(self, session: Session, policy: WorkflowPolicy | None = None):
        self._session = session
        self._policy = policy or WorkflowPolicy()

    @property
    def _start_month(self) -> int:
        return self._policy.fiscal_year_start_month

    def _categories(self, kind: str) -> list[CategoryModel]:
        return list(
            self._session.execute(
                select(CategoryModel)
                .where(CategoryModel.kind == kind, CategoryModel.is_active.is_(True))
                .order_by(CategoryModel.name, CategoryModel.subcategory)
            ).scalars()
        )

    def _category_series(
        self,
        entry_type: EntryType,
        categories: list[CategoryModel],
        recorded: dict[UUID, set[int]],
    ) -> list[ExpectedSeries]:
        return [
            ExpectedSeries(
                entry_type=entry_type,
                category=category.name,
                subcategory=category.subcategory,
                recorded_months=frozenset(recorded.get(category.id, ())),
            )
            for category in categories
        ]

    def income_series(self, start_year: int) -> list[ExpectedSeries]:
        rows = self._session.execute(
            select(FinancialRecordModel.category_id, FinancialRecordModel.month).where(
                FinancialRecordModel.kind == RecordKind.INCOME.value,
                FinancialRecordModel.status == RecordStatus.APPROVED.value,
                FinancialRecordModel.fiscal_year == fiscal_year_label(start_year),
            )
        ).all()
        recorded: dict[UUID, set[int]] = defaultdict(set)
        for category_id, month in rows:
            if category_id is not None and month is not None:
                recorded[category_id].add(month)
        return self._category_series(EntryType.INCOME, self._categories("income"), recorded)

    def _approved_dates(self, kind: RecordKind, start_year: int):
        first, last = fiscal_year_bounds(start_year, self._start_month)
        return self._session.execute(
            select(FinancialRecordModel.category_id, FinancialRecordModel.record_date).where(
                FinancialRecordModel.kind == kind.value,
                FinancialRecordModel.status == RecordStatus.APPROVED.value,
                FinancialRecordModel.record_date >= first,
                FinancialRecordModel.record_date <= last,
            )
        ).all()

    def expense_series(self, start_year: int) -> list[ExpectedSeries]:
        recorded: dict[UUID, set[int]] = defaultdict(set)
        for category_id, record_date in self._approved_dates(RecordKind.EXPENSE, start_year):
            if category_id is not None:
                recorded[category_id].add(record_date.month)
        return self._category_series(EntryType.EXPENSE, self._categories("expense"), recorded)

    def petty_cash_series(self, start_year: int) -> list[ExpectedSeries]:
        months = {
            record_date.month
            for _, record_date in self._approved_dates(RecordKind.PETTY_CASH, start_year)
        }
        return [
            ExpectedSeries(
                entry_type=EntryType.PETTY_CASH,
                category=PETTY_CASH_SERIES,
                recorded_months=frozenset(months),
            )
        ]

    def cam_series(self, start_year: int) -> list[ExpectedSeries]:
        rows = self._session.execute(
            select(
                FinancialRecordModel.tower,
                FinancialRecordModel.year,
                FinancialRecordModel.month,
            ).where(
                FinancialRecordModel.kind == RecordKind.CAM.value,
                FinancialRecordModel.status.in_(
                    [status.value for status in CAM_RECORDED_STATUSES]
                ),
                FinancialRecordModel.year.in_([start_year, start_year + 1]),
            )
        ).all()
        recorded: dict[str, set[int]] = defaultdict(set)
        for tower, year, month in rows:
            if month is None:
                continue
            if calendar_year_of(month, start_year, self._start_month) == year:
                recorded[tower].add(month)
        return [
            ExpectedSeries(
                entry_type=EntryType.CAM,
                category=f"Tower {tower}",
                recorded_months=frozenset(recorded.get(tower, ())),
            )
            for tower in self._policy.cam_tower_flats
        ]

    def expected_series(self, start_year: int) -> list[ExpectedSeries]:
        """Every series due in the fiscal year starting in ``start_year``."""
        return (
            self.income_series(start_year)
            + self.expense_series(start_year)
            + self.petty_cash_series(start_year)
            + self.cam_series(start_year)
        )

    def report(
        self,
        start_year: int,
        entry_type: EntryType | None = None,
        from_month: int | None = None,
        to_month: int | None = None,
    ) -> list[MissingEntry]:
        """
        Missing entries for a fiscal year, optionally filtered.

        ``from_month``/``to_month`` are calendar month numbers compared in
        fiscal order; a range whose start comes after its end wraps around
        the fiscal year end.
        """
        series = self.expected_series(start_year)
        missing = filter_missing(
            find_missing(series, self._start_month),
            entry_type=entry_type,
            from_month=from_month,
            to_month=to_month,
            start_month=self._start_month,
        )
        logger.info(
            "missing_data_report_built",
            extra={
                "fiscal_year": fiscal_year_label(start_year),
                "series_count": len(series),
                "missing_count": len(missing),
                "entry_type": entry_type.value if entry_type else None,
            },
        )
        return missing
