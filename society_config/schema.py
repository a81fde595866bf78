"""
Configuration Schema (``society_config.schema``).

Frozen dataclasses describing the configuration file.  These are pure
data containers with no behaviour beyond convenience accessors; parsing
and validation live in ``society_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class QuotaSettings:
    """Daily correction quota."""

    daily_limit: int = 200
    constrained_roles: tuple[str, ...] = ("accountant",)
    scope: str = "role"


@dataclass(frozen=True)
class WorkflowSettings:
    """Workflow switches."""

    audit_privileged_edits: bool = True


@dataclass(frozen=True)
class CalendarSettings:
    """Quota day boundary and fiscal calendar."""

    timezone: str = "Asia/Kolkata"
    fiscal_year_start_month: int = 4


@dataclass(frozen=True)
class CAMSettings:
    """Towers and their total flat counts, in file order."""

    towers: tuple[tuple[str, int], ...] = ()

    @property
    def tower_flats(self) -> dict[str, int]:
        return dict(self.towers)

    @property
    def tower_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.towers)


@dataclass(frozen=True)
class SocietyConfig:
    """The complete, validated configuration."""

    society_name: str
    version: int
    quota: QuotaSettings = field(default_factory=QuotaSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    calendar: CalendarSettings = field(default_factory=CalendarSettings)
    cam: CAMSettings = field(default_factory=CAMSettings)
    checksum: str = ""
    source_path: Path | None = None
