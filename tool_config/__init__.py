"""
tool_config -- single public entrypoint for tool kernel configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  Settings come from a YAML configuration
    set (``tool_config/sets/default.yaml`` unless overridden) with two
    environment overrides:

        TOOL_KERNEL_CONFIG        path to an alternative YAML file
        TOOL_KERNEL_DATABASE_URL  replaces database.url

Architecture position:
    Configuration -- sits above ``tool_kernel``.  The kernel MUST NEVER
    import from ``tool_config``; ``tool_config.bridges`` translates
    settings into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- configured YAML file does not exist.
    - ``ValueError`` -- invalid setting values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from tool_config.loader import load_settings
from tool_config.schema import ToolKernelSettings

_logger = logging.getLogger("tool_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "TOOL_KERNEL_CONFIG"
DATABASE_URL_ENV_VAR = "TOOL_KERNEL_DATABASE_URL"


def get_active_settings(config_path: Path | None = None) -> ToolKernelSettings:
    """
    The ONLY public configuration entrypoint.

    Args:
        config_path: Explicit YAML file.  Takes precedence over
            TOOL_KERNEL_CONFIG and the packaged default set.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    path = config_path or (Path(env_path) if env_path else _DEFAULT_CONFIG_PATH)

    settings = load_settings(path)

    env_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if env_url:
        settings = replace(settings, database=replace(settings.database, url=env_url))

    _logger.info(
        "tool_config_loaded",
        extra={
            "config_name": settings.name,
            "config_path": str(path),
            "database_url_from_env": bool(env_url),
            "adjustment_tolerance": str(settings.costing.adjustment_tolerance),
        },
    )
    return settings


__all__ = ["get_active_settings", "ToolKernelSettings"]
