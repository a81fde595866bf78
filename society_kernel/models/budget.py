"""
Module: society_kernel.models.budget
Responsibility: Planned spend per budget item and fiscal year.
Architecture position: Kernel > Models.  May import from db/ and domain/
    value types only.

An expense counts against a budget item through its ``budget_item_id``.
Items are keyed by ``(fiscal_year, serial_no)``, the serial number of the
line in the committee's budget sheet; re-importing a sheet updates the
items in place.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from society_kernel.db.base import Base
from society_kernel.db.types import Money
from society_kernel.domain.budget import BudgetLine


class BudgetItemModel(Base):
    """One line of a fiscal year's expense budget."""

    __tablename__ = "budget_items"

    __table_args__ = (
        UniqueConstraint("fiscal_year", "serial_no", name="uq_budget_items_serial"),
        CheckConstraint("serial_no > 0", name="ck_budget_items_serial_no"),
        CheckConstraint(
            "annual_budget >= 0 AND monthly_budget >= 0",
            name="ck_budget_items_non_negative",
        ),
    )

    # "FY25-26"
    fiscal_year: Mapped[str] = mapped_column(String(10), nullable=False)
    serial_no: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    committee: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Amounts include GST
    annual_budget: Mapped[Money] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )
    monthly_budget: Mapped[Money] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<BudgetItem {self.fiscal_year} #{self.serial_no} {self.item_name}>"

    def to_line(self, actual: Decimal = Decimal("0")) -> BudgetLine:
        return BudgetLine(
            serial_no=self.serial_no,
            item_name=self.item_name,
            category=self.category,
            committee=self.committee,
            annual_budget=self.annual_budget,
            monthly_budget=self.monthly_budget,
            actual=actual,
        )
