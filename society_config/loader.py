"""
Configuration Loader (``society_config.loader``).

Responsibility
--------------
Reads the YAML configuration file and parses it into the frozen
dataclasses of ``society_config.schema``.  The single public entry point
for runtime config is ``society_config.get_active_config()``.

Invariants enforced
-------------------
* Every invalid value raises ``ConfigurationError`` naming the dotted key;
  a missing optional section falls back to the schema defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfoNotFoundError

import yaml

from society_config.schema import (
    CalendarSettings,
    CAMSettings,
    QuotaSettings,
    SocietyConfig,
    WorkflowSettings,
)
from society_kernel.domain.clock import resolve_timezone
from society_kernel.domain.quota import QuotaScope
from society_kernel.domain.roles import Role
from society_kernel.exceptions import ConfigurationError

_ROLE_VALUES = {role.value for role in Role}
_SCOPE_VALUES = {scope.value for scope in QuotaScope}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", "document must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(key, "must be a mapping")
    return value


def _int(value: Any, key: str, minimum: int | None = None, maximum: int | None = None) -> int:
    # bool is an int subclass; "true" is never a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise ConfigurationError(key, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ConfigurationError(key, f"must be <= {maximum}")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(key, f"expected true or false, got {value!r}")
    return value


def parse_quota(data: dict[str, Any]) -> QuotaSettings:
    defaults = QuotaSettings()
    limit = _int(data.get("daily_limit", defaults.daily_limit), "quota.daily_limit", minimum=0)

    roles = data.get("constrained_roles", list(defaults.constrained_roles))
    if isinstance(roles, str) or not isinstance(roles, list):
        raise ConfigurationError("quota.constrained_roles", "must be a list of roles")
    unknown = [role for role in roles if role not in _ROLE_VALUES]
    if unknown:
        raise ConfigurationError(
            "quota.constrained_roles", f"unknown role(s): {', '.join(map(str, unknown))}"
        )

    scope = data.get("scope", defaults.scope)
    if scope not in _SCOPE_VALUES:
        raise ConfigurationError(
            "quota.scope", f"must be one of {sorted(_SCOPE_VALUES)}, got {scope!r}"
        )

    return QuotaSettings(daily_limit=limit, constrained_roles=tuple(roles), scope=scope)


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    defaults = WorkflowSettings()
    return WorkflowSettings(
        audit_privileged_edits=_bool(
            data.get("audit_privileged_edits", defaults.audit_privileged_edits),
            "workflow.audit_privileged_edits",
        ),
    )


def parse_calendar(data: dict[str, Any]) -> CalendarSettings:
    defaults = CalendarSettings()
    tz_name = data.get("timezone", defaults.timezone)
    if not isinstance(tz_name, str) or not tz_name:
        raise ConfigurationError("calendar.timezone", "expected an IANA zone name")
    try:
        resolve_timezone(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError("calendar.timezone", f"unknown zone {tz_name!r}") from None
    return CalendarSettings(
        timezone=tz_name,
        fiscal_year_start_month=_int(
            data.get("fiscal_year_start_month", defaults.fiscal_year_start_month),
            "calendar.fiscal_year_start_month", minimum=1, maximum=12,
        ),
    )


def parse_cam(data: dict[str, Any]) -> CAMSettings:
    towers = data.get("towers")
    if towers is None:
        return CAMSettings()
    if not isinstance(towers, dict) or not towers:
        raise ConfigurationError("cam.towers", "must map tower names to flat counts")
    parsed = []
    for name, flats in towers.items():
        # YAML reads an unquoted 10 as an int
        parsed.append((str(name), _int(flats, f"cam.towers.{name}", minimum=1)))
    return CAMSettings(towers=tuple(parsed))


def parse_config(data: dict[str, Any], source_path: Path | None = None) -> SocietyConfig:
    """Validate a parsed document and build a ``SocietyConfig``."""
    society = _section(data, "society")
    name = society.get("name", "Residential Society")
    if not isinstance(name, str):
        raise ConfigurationError("society.name", "expected a string")

    return SocietyConfig(
        society_name=name,
        version=_int(society.get("version", 1), "society.version", minimum=1),
        quota=parse_quota(_section(data, "quota")),
        workflow=parse_workflow(_section(data, "workflow")),
        calendar=parse_calendar(_section(data, "calendar")),
        cam=parse_cam(_section(data, "cam")),
        checksum=compute_checksum(data),
        source_path=source_path,
    )


def load_config(path: Path) -> SocietyConfig:
    """Load and validate one configuration file."""
    return parse_config(load_yaml_file(path), source_path=path)
