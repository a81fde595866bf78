"""
WorkflowPolicy -- the kernel's view of configuration.

The kernel never reads configuration files.  ``society_config.bridges``
builds a ``WorkflowPolicy`` from the loaded settings and services receive
it by constructor injection.  Defaults match the shipped configuration so
tests and scripts can run without a file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from types import MappingProxyType
from typing import Mapping

from society_kernel.domain.clock import resolve_timezone
from society_kernel.domain.quota import QuotaScope
from society_kernel.domain.roles import Role

_SMALL_TOWERS = (
    "1A", "1B", "2A", "2B", "3A", "3B", "4A", "4B", "5", "6", "7", "8",
    "9A", "9B", "9C", "10", "14", "15A", "15B", "16A", "16B", "17A", "17B",
    "18A", "18B", "18C", "19", "20A", "20B", "20C",
)
_LARGE_TOWERS = ("11", "12", "13")

DEFAULT_TOWER_FLATS: Mapping[str, int] = MappingProxyType({
    **{tower: 67 for tower in _SMALL_TOWERS},
    **{tower: 201 for tower in _LARGE_TOWERS},
})

DEFAULT_DAILY_CORRECTION_LIMIT = 200


@dataclass(frozen=True)
class WorkflowPolicy:
    """Tunable rules for the workflow, quota and reconciliation.

    daily_correction_limit:  correction requests allowed per scope per day.
    quota_constrained_roles: roles whose correction requests count.
    quota_scope:             share one budget per role, or one per actor.
    timezone:                zone whose calendar day the quota resets on.
    audit_privileged_edits:  audit direct edits of approved records.
    cam_tower_flats:         total flats per tower.
    fiscal_year_start_month: first month of the fiscal year (April).
    """

    daily_correction_limit: int = DEFAULT_DAILY_CORRECTION_LIMIT
    quota_constrained_roles: frozenset[Role] = frozenset({Role.ACCOUNTANT})
    quota_scope: QuotaScope = QuotaScope.ROLE
    timezone: str = "UTC"
    audit_privileged_edits: bool = True
    cam_tower_flats: Mapping[str, int] = field(
        default_factory=lambda: DEFAULT_TOWER_FLATS
    )
    fiscal_year_start_month: int = 4

    def __post_init__(self) -> None:
        if self.daily_correction_limit < 0:
            raise ValueError("daily_correction_limit must be non-negative")
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError("fiscal_year_start_month must be 1..12")

    @property
    def tzinfo(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    def is_quota_constrained(self, role: Role) -> bool:
        return role in self.quota_constrained_roles
