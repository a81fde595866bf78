"""
Module: society_kernel.models.quota
Responsibility: Persisted per-day usage counter for the correction quota.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (scope_key, day) (unique constraint).
    - used is only ever incremented, under a row lock, by DailyQuotaGuard.
"""

from datetime import date

from sqlalchemy import BigInteger, Date, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from society_kernel.db.base import Base


class DailyQuotaCounter(Base):
    """Correction requests consumed by a scope on one calendar day."""

    __tablename__ = "daily_quota_counters"

    __table_args__ = (
        UniqueConstraint("scope_key", "day", name="uq_daily_quota_scope_day"),
    )

    # "role:accountant" or "actor:<uuid>"
    scope_key: Mapped[str] = mapped_column(String(100), nullable=False)

    # Calendar day in the configured time zone
    day: Mapped[date] = mapped_column(Date, nullable=False)

    used: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<DailyQuotaCounter {self.scope_key} {self.day} used={self.used}>"
