"""
AuditorService -- the audit trail writer and reader.

Responsibility:
    Creates one immutable, hash-chained audit log entry per accepted
    transition, returns a record's trail in order, and validates the chain
    for tamper detection.

Architecture position:
    Kernel > Services -- imperative shell, called by WorkflowService.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never raw SQL max+1), so
      ordering by ``seq`` yields non-decreasing ``occurred_at``.
    - Chain integrity: ``hash = H(record_kind | record_id | action |
      payload_hash | prev_hash)``; the payload covers actor, time,
      snapshots and details, so editing any stored column is detectable.
    - Append-only: AuditLogEntryModel rejects UPDATE and DELETE.

Failure modes:
    - AuditChainBrokenError: Recomputed hash does not match stored hash,
      or prev_hash does not match the predecessor's hash.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from society_kernel.domain.clock import Clock, SystemClock
from society_kernel.domain.records import AuditTrail
from society_kernel.domain.roles import Actor
from society_kernel.domain.status import RecordKind
from society_kernel.domain.workflow import AuditAction
from society_kernel.exceptions import AuditChainBrokenError
from society_kernel.logging_config import get_logger
from society_kernel.models.audit_log import AuditLogEntryModel
from society_kernel.services.sequence_service import SequenceService
from society_kernel.utils.hashing import hash_audit_entry, hash_payload

logger = get_logger("services.auditor")


def _utc_naive(value: datetime) -> datetime:
    """UTC wall time without tzinfo, as SQLite hands it back."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _entry_payload(
    actor_id: str,
    actor_role: str,
    occurred_at: datetime,
    old_values: dict | None,
    new_values: dict | None,
    correction_type: str | None,
    details: dict | None,
) -> dict[str, Any]:
    return {
        "actor_id": actor_id,
        "actor_role": actor_role,
        "occurred_at": _utc_naive(occurred_at).isoformat(timespec="microseconds"),
        "old_values": old_values,
        "new_values": new_values,
        "correction_type": correction_type,
        "details": details or {},
    }


class AuditorService:
    """
    Service for creating, reading and validating audit log entries.

    Contract:
        ``record_transition`` is called exactly once per accepted
        transition, inside the same transaction as the status change.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT decide whether a transition is allowed.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        """Get the hash of the most recent audit entry."""
        last_entry = self._session.execute(
            select(AuditLogEntryModel)
            .order_by(AuditLogEntryModel.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

        return last_entry.hash if last_entry else None

    def record_transition(
        self,
        record_id: UUID,
        record_kind: RecordKind,
        action: AuditAction,
        actor: Actor,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        correction_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntryModel:
        """
        Append one audit entry with hash chain linkage.

        Preconditions:
            - ``old_values``, ``new_values`` and ``details`` are JSON-safe.

        Postconditions:
            - A new row is flushed with the next ``seq`` and a valid link
              to its predecessor.
        """
        # The counter row lock serialises writers, so the last hash read
        # below is the true predecessor.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_LOG)
        prev_hash = self._get_last_hash()

        occurred_at = self._clock.now_utc()
        payload = _entry_payload(
            actor_id=str(actor.actor_id),
            actor_role=actor.role.value,
            occurred_at=occurred_at,
            old_values=old_values,
            new_values=new_values,
            correction_type=correction_type,
            details=details,
        )
        payload_hash = hash_payload(payload)
        entry_hash = hash_audit_entry(
            record_kind=record_kind.value,
            record_id=str(record_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditLogEntryModel(
            seq=seq,
            record_id=record_id,
            record_kind=record_kind.value,
            action=action.value,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            occurred_at=occurred_at,
            old_values=old_values,
            new_values=new_values,
            correction_type=correction_type,
            details=details or {},
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "audit_entry_created",
            extra={
                "record_kind": record_kind.value,
                "record_id": str(record_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return entry

    # Read path

    def get_trail(self, record_id: UUID) -> AuditTrail:
        """All entries for a record, ordered by ``seq``."""
        rows = self._session.execute(
            select(AuditLogEntryModel)
            .where(AuditLogEntryModel.record_id == record_id)
            .order_by(AuditLogEntryModel.seq)
        ).scalars().all()

        return AuditTrail(
            record_id=record_id,
            entries=tuple(row.to_dto() for row in rows),
        )

    def count_actions_between(
        self,
        action: AuditAction,
        start: datetime,
        end: datetime,
        actor_roles: tuple[str, ...] | None = None,
        actor_id: UUID | None = None,
    ) -> int:
        """Entries with ``action`` whose ``occurred_at`` lies in ``[start, end)``."""
        query = select(func.count(AuditLogEntryModel.id)).where(
            AuditLogEntryModel.action == action.value,
            AuditLogEntryModel.occurred_at >= _as_utc(start),
            AuditLogEntryModel.occurred_at < _as_utc(end),
        )
        if actor_roles is not None:
            query = query.where(AuditLogEntryModel.actor_role.in_(actor_roles))
        if actor_id is not None:
            query = query.where(AuditLogEntryModel.actor_id == actor_id)
        return self._session.execute(query).scalar_one()

    def get_recent_entries(self, limit: int = 100) -> list[AuditLogEntryModel]:
        """Most recent audit entries, newest first."""
        result = self._session.execute(
            select(AuditLogEntryModel)
            .order_by(AuditLogEntryModel.seq.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Postconditions:
            - Returns ``True`` only if every stored payload hash and entry
              hash match their recomputed values and every ``prev_hash``
              matches its predecessor's ``hash``.

        Raises:
            AuditChainBrokenError: If chain validation fails at any point.
        """
        entries = self._session.execute(
            select(AuditLogEntryModel).order_by(AuditLogEntryModel.seq)
        ).scalars().all()

        if not entries:
            return True

        if entries[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": entries[0].seq})
            raise AuditChainBrokenError(
                str(entries[0].id),
                "None",
                entries[0].prev_hash,
            )

        for i, entry in enumerate(entries):
            payload_hash = hash_payload(
                _entry_payload(
                    actor_id=str(entry.actor_id),
                    actor_role=entry.actor_role,
                    occurred_at=entry.occurred_at,
                    old_values=entry.old_values,
                    new_values=entry.new_values,
                    correction_type=entry.correction_type,
                    details=entry.details,
                )
            )
            if payload_hash != entry.payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(
                    str(entry.id),
                    payload_hash,
                    entry.payload_hash,
                )

            expected_hash = hash_audit_entry(
                record_kind=entry.record_kind,
                record_id=str(entry.record_id),
                action=entry.action,
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(
                    str(entry.id),
                    expected_hash,
                    entry.hash,
                )

            if i > 0:
                expected_prev = entries[i - 1].hash
                if entry.prev_hash != expected_prev:
                    logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                    raise AuditChainBrokenError(
                        str(entry.id),
                        expected_prev,
                        entry.prev_hash or "None",
                    )

        logger.info(
            "audit_chain_valid",
            extra={"entry_count": len(entries)},
        )
        return True
