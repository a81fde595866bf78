"""
Society configuration (``society_config``).

``get_active_config`` is the only public entry point for runtime
configuration.  It resolves the file to read (explicit path, then the
``SOCIETY_CONFIG_PATH`` environment variable, then the packaged
``defaults.yaml``), validates it and logs a ``SOCIETY_CONFIG_TRACE``
entry carrying the checksum.

The kernel never imports this package: callers pass the result through
``workflow_policy_from_config`` and inject the policy into services.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from society_config.bridges import workflow_policy_from_config
from society_config.loader import compute_checksum, load_config
from society_config.schema import (
    CalendarSettings,
    CAMSettings,
    QuotaSettings,
    SocietyConfig,
    WorkflowSettings,
)

_logger = logging.getLogger("society_kernel.config")

CONFIG_PATH_ENV = "SOCIETY_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> SocietyConfig:
    """Load and validate the active configuration.

    Raises:
        FileNotFoundError: The resolved file does not exist.
        ConfigurationError: A value fails validation.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    resolved = Path(path or env_path or DEFAULT_CONFIG_PATH)
    config = load_config(resolved)

    _logger.info(
        "SOCIETY_CONFIG_TRACE",
        extra={
            "trace_type": "SOCIETY_CONFIG_TRACE",
            "config_path": str(resolved),
            "config_version": config.version,
            "checksum": config.checksum,
            "daily_limit": config.quota.daily_limit,
            "quota_scope": config.quota.scope,
            "timezone": config.calendar.timezone,
            "tower_count": len(config.cam.towers),
        },
    )
    return config


__all__ = [
    "CAMSettings",
    "CONFIG_PATH_ENV",
    "CalendarSettings",
    "DEFAULT_CONFIG_PATH",
    "QuotaSettings",
    "SocietyConfig",
    "WorkflowSettings",
    "compute_checksum",
    "get_active_config",
    "workflow_policy_from_config",
]
