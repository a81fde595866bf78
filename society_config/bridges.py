"""
Config-to-kernel bridges.

The kernel never imports ``society_config``; these functions translate
validated settings into the kernel's own ``WorkflowPolicy``.
"""

from __future__ import annotations

from types import MappingProxyType

from society_config.schema import SocietyConfig
from society_kernel.domain.policy import DEFAULT_TOWER_FLATS, WorkflowPolicy
from society_kernel.domain.quota import QuotaScope
from society_kernel.domain.roles import Role


def workflow_policy_from_config(config: SocietyConfig) -> WorkflowPolicy:
    """Build the kernel policy from a loaded configuration."""
    tower_flats = config.cam.tower_flats or dict(DEFAULT_TOWER_FLATS)
    return WorkflowPolicy(
        daily_correction_limit=config.quota.daily_limit,
        quota_constrained_roles=frozenset(
            Role(role) for role in config.quota.constrained_roles
        ),
        quota_scope=QuotaScope(config.quota.scope),
        timezone=config.calendar.timezone,
        audit_privileged_edits=config.workflow.audit_privileged_edits,
        cam_tower_flats=MappingProxyType(tower_flats),
        fiscal_year_start_month=config.calendar.fiscal_year_start_month,
    )
