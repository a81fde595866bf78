"""
Module: society_kernel.selectors.record_selector
Responsibility: Read-only queries over financial records: single lookups,
    status listings, the treasurer's approval queue and the corrections
    view.
Architecture position: Kernel > Selectors.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import func, select

from society_kernel.domain.records import FinancialRecord
from society_kernel.domain.status import RecordKind, RecordStatus
from society_kernel.models.records import FinancialRecordModel
from society_kernel.selectors.base import BaseSelector

# Statuses waiting on an approver.
AWAITING_REVIEW = (
    RecordStatus.PENDING.value,
    RecordStatus.SUBMITTED.value,
    RecordStatus.CORRECTION_PENDING.value,
)


class CorrectionFilter(str, Enum):
    """Views of the corrections page."""

    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    ALL = "all"


class RecordSelector(BaseSelector):
    """Selector for financial records."""

    def get(self, record_id: UUID) -> FinancialRecord | None:
        record = self.session.get(FinancialRecordModel, record_id)
        return record.to_dto() if record is not None else None

    def list_by_status(
        self,
        kind: RecordKind,
        status: RecordStatus | None = None,
    ) -> list[FinancialRecord]:
        """Records of one kind, optionally in one status, oldest first."""
        query = select(FinancialRecordModel).where(
            FinancialRecordModel.kind == kind.value
        )
        if status is not None:
            query = query.where(FinancialRecordModel.status == status.value)
        query = query.order_by(FinancialRecordModel.created_at, FinancialRecordModel.id)
        return [row.to_dto() for row in self.session.execute(query).scalars()]

    def pending_approvals(self, kind: RecordKind | None = None) -> list[FinancialRecord]:
        """Everything an approver still has to decide on."""
        query = select(FinancialRecordModel).where(
            FinancialRecordModel.status.in_(AWAITING_REVIEW)
        )
        if kind is not None:
            query = query.where(FinancialRecordModel.kind == kind.value)
        query = query.order_by(FinancialRecordModel.created_at, FinancialRecordModel.id)
        return [row.to_dto() for row in self.session.execute(query).scalars()]

    def corrections(
        self,
        view: CorrectionFilter = CorrectionFilter.ALL,
        kind: RecordKind = RecordKind.EXPENSE,
    ) -> list[FinancialRecord]:
        """
        Records in or through the correction cycle.

        pending:   status correction_pending
        approved:  status correction_approved
        completed: is_correction and approved
        all:       any of the above

        Most recent request first; records without a request time last.
        """
        model = FinancialRecordModel
        in_progress = {
            CorrectionFilter.PENDING: (RecordStatus.CORRECTION_PENDING.value,),
            CorrectionFilter.APPROVED: (RecordStatus.CORRECTION_APPROVED.value,),
        }
        completed = (model.is_correction.is_(True)) & (
            model.status == RecordStatus.APPROVED.value
        )

        if view in in_progress:
            condition = model.status.in_(in_progress[view])
        elif view == CorrectionFilter.COMPLETED:
            condition = completed
        else:
            condition = (
                model.status.in_(
                    (
                        RecordStatus.CORRECTION_PENDING.value,
                        RecordStatus.CORRECTION_APPROVED.value,
                    )
                )
                | completed
            )

        query = (
            select(model)
            .where(model.kind == kind.value, condition)
            .order_by(model.correction_requested_at.desc().nulls_last(), model.id)
        )
        return [row.to_dto() for row in self.session.execute(query).scalars()]

    def count_by_status(self, kind: RecordKind) -> dict[RecordStatus, int]:
        rows = self.session.execute(
            select(FinancialRecordModel.status, func.count(FinancialRecordModel.id))
            .where(FinancialRecordModel.kind == kind.value)
            .group_by(FinancialRecordModel.status)
        ).all()
        return {RecordStatus(status): count for status, count in rows}
