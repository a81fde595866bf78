"""
Module: society_kernel.models.audit_log
Responsibility: ORM persistence for the append-only, hash-chained audit log
    of record transitions.
Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - Audit entries are append-only; no UPDATE or DELETE (ORM listeners).
    - seq is unique and monotonically increasing, allocated by
      SequenceService.
    - hash = H(record_kind | record_id | action | payload_hash | prev_hash),
      validated by AuditorService.
    - No foreign key to financial_records: entries outlive a deleted record.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from society_kernel.db.base import Base, UUIDString
from society_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from society_kernel.domain.records import AuditLogEntry


class AuditLogEntryModel(Base):
    """
    One audit entry per accepted transition.

    Contract:
        Rows are append-only -- never updated or deleted.

    Guarantees:
        - seq is globally unique and monotonically increasing.
        - prev_hash is None only for the genesis entry.
        - old_values/new_values are JSON snapshots (null when not recorded).
    """

    __tablename__ = "audit_log_entries"

    __table_args__ = (
        Index("idx_audit_log_record", "record_id", "seq"),
        Index("idx_audit_log_action_time", "action", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    record_kind: Mapped[str] = mapped_column(String(20), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    actor_role: Mapped[str] = mapped_column(String(30), nullable=False)

    # UTC
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Name of the single corrected field, or "multiple_fields"
    correction_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Reason, batch id and other context
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.seq} {self.action} on {self.record_kind}:{self.record_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> AuditLogEntry:
        """Convert ORM model to frozen domain DTO."""
        from society_kernel.domain.records import AuditLogEntry
        from society_kernel.domain.status import RecordKind
        from society_kernel.domain.workflow import AuditAction

        return AuditLogEntry(
            id=self.id,
            seq=self.seq,
            record_id=self.record_id,
            record_kind=RecordKind(self.record_kind),
            action=AuditAction(self.action),
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            occurred_at=self.occurred_at,
            old_values=self.old_values,
            new_values=self.new_values,
            correction_type=self.correction_type,
            details=dict(self.details or {}),
            hash=self.hash,
        )


@event.listens_for(AuditLogEntryModel, "before_update")
def prevent_audit_log_update(mapper, connection, target):
    """Prevent updates to audit log entries."""
    raise ImmutabilityViolationError(
        entity_type="AuditLogEntry",
        entity_id=str(target.id),
        reason="Audit log entries are immutable -- cannot modify",
    )


@event.listens_for(AuditLogEntryModel, "before_delete")
def prevent_audit_log_delete(mapper, connection, target):
    """Prevent deletion of audit log entries."""
    raise ImmutabilityViolationError(
        entity_type="AuditLogEntry",
        entity_id=str(target.id),
        reason="Audit log entries are immutable -- cannot delete",
    )
