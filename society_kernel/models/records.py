"""
Module: society_kernel.models.records
Responsibility: ORM persistence for the four kinds of financial record.
Architecture position: Kernel > Models.  May import from db/ and domain/
    value types only.

All kinds share the ``financial_records`` table (single-table inheritance,
discriminated by ``kind``) so the workflow service and the audit trail
treat every record alike.  Variant columns are nullable and unused by the
kinds that do not need them.

Invariants enforced:
    - status is one of the seven workflow positions (DB check constraint).
    - kind is one of expense, income, petty_cash, cam (DB check constraint).
    - CAM flat counts are non-negative (DB check constraint); the upper
      bound against the tower size is enforced by the domain field rules.

Failure modes:
    - IntegrityError on an out-of-vocabulary status or kind written
      around the workflow service.

Audit relevance:
    Every status change of a row here produces an AuditLogEntryModel row.
    Hard deletes are allowed only through WorkflowService.delete_record,
    which audits them first.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from society_kernel.db.base import TrackedBase, UUIDString
from society_kernel.domain.records import SNAPSHOT_FIELDS

if TYPE_CHECKING:
    from society_kernel.domain.records import FinancialRecord


class FinancialRecordModel(TrackedBase):
    """
    A financial record of any kind.

    Contract:
        status changes go through WorkflowService only.  The model does
        not validate transitions.

    Guarantees:
        - kind and status hold values from the domain vocabulary.
        - amount, tax_amount and withholding_amount are Decimal(18, 2).
    """

    __tablename__ = "financial_records"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'pending', 'approved', 'rejected', "
            "'correction_pending', 'correction_approved')",
            name="ck_financial_records_valid_status",
        ),
        CheckConstraint(
            "kind IN ('expense', 'income', 'petty_cash', 'cam')",
            name="ck_financial_records_valid_kind",
        ),
        CheckConstraint(
            "paid_flats IS NULL OR paid_flats >= 0",
            name="ck_financial_records_paid_flats",
        ),
        CheckConstraint(
            "pending_flats IS NULL OR pending_flats >= 0",
            name="ck_financial_records_pending_flats",
        ),
        Index("idx_records_kind_status", "kind", "status"),
        Index("idx_records_correction_requested", "correction_requested_at"),
        Index("idx_records_cam_period", "tower", "year", "month"),
        Index("idx_records_budget_item", "budget_item_id"),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False)

    # Base amount before GST, in rupees
    amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )

    # GST
    tax_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )

    # TDS
    withholding_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    withholding_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    record_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    attachment_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Correction cycle
    is_correction: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    correction_reason: Mapped[str | None] = mapped_column(
        String(4000), nullable=True,
    )
    correction_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    correction_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    correction_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # Approver of the last approve/reject decision
    approved_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    # Expense and income
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Expense and petty cash
    item_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Expense: the budget line it counts against
    budget_item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Income ("FY25-26") and CAM period
    fiscal_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # CAM
    tower: Mapped[str | None] = mapped_column(String(10), nullable=True)
    paid_flats: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pending_flats: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_flats: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dues_cleared_from_previous: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
    )
    advance_payments: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __mapper_args__ = {
        "polymorphic_on": "kind",
    }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} status={self.status}>"

    def field_values(self, fields: tuple[str, ...] = SNAPSHOT_FIELDS) -> dict[str, Any]:
        """Current values of the named columns."""
        return {name: getattr(self, name) for name in fields}

    def to_dto(self) -> FinancialRecord:
        """Convert ORM model to frozen domain DTO."""
        from society_kernel.domain.records import FinancialRecord
        from society_kernel.domain.status import RecordKind, RecordStatus

        return FinancialRecord(
            id=self.id,
            kind=RecordKind(self.kind),
            status=RecordStatus(self.status),
            amount=self.amount,
            created_by_id=self.created_by_id,
            tax_percentage=self.tax_percentage,
            tax_amount=self.tax_amount,
            withholding_percentage=self.withholding_percentage,
            withholding_amount=self.withholding_amount,
            description=self.description,
            record_date=self.record_date,
            is_correction=self.is_correction,
            correction_reason=self.correction_reason,
            correction_requested_at=self.correction_requested_at,
            correction_approved_at=self.correction_approved_at,
            correction_completed_at=self.correction_completed_at,
            approved_by_id=self.approved_by_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            category_id=self.category_id,
            item_name=self.item_name,
            budget_item_id=self.budget_item_id,
            attachment_url=self.attachment_url,
            fiscal_year=self.fiscal_year,
            month=self.month,
            year=self.year,
            tower=self.tower,
            paid_flats=self.paid_flats,
            pending_flats=self.pending_flats,
            total_flats=self.total_flats,
            dues_cleared_from_previous=self.dues_cleared_from_previous,
            advance_payments=self.advance_payments,
        )


class ExpenseModel(FinancialRecordModel):
    """Society expense with GST and TDS, carrying the full correction cycle."""

    __mapper_args__ = {"polymorphic_identity": "expense"}


class IncomeActualModel(FinancialRecordModel):
    """Actual income for a category in one fiscal month."""

    __mapper_args__ = {"polymorphic_identity": "income"}


class PettyCashEntryModel(FinancialRecordModel):
    """Small cash expense recorded by the accountant or a lead."""

    __mapper_args__ = {"polymorphic_identity": "petty_cash"}


class CAMEntryModel(FinancialRecordModel):
    """Common-area maintenance collection for one tower and month."""

    __mapper_args__ = {"polymorphic_identity": "cam"}


MODEL_BY_KIND: dict[str, type[FinancialRecordModel]] = {
    "expense": ExpenseModel,
    "income": IncomeActualModel,
    "petty_cash": PettyCashEntryModel,
    "cam": CAMEntryModel,
}
