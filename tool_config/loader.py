"""
Configuration Loader (``tool_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses
of ``tool_config.schema``.  The single public entry point for runtime
settings is ``tool_config.get_active_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values (negative timeouts, unknown unmount state, non-numeric
  tolerance)  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from tool_config.schema import (
    CostingSettings,
    DatabaseSettings,
    LoggingSettings,
    ToolingSettings,
    ToolKernelSettings,
)

_UNMOUNT_STATES = frozenset({"new", "sharpened"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _positive_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=_positive_int(data, "pool_size", defaults.pool_size),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        pool_timeout=_positive_int(data, "pool_timeout", defaults.pool_timeout),
        transaction_timeout_ms=_positive_int(
            data, "transaction_timeout_ms", defaults.transaction_timeout_ms
        ),
        lock_timeout_ms=_positive_int(data, "lock_timeout_ms", defaults.lock_timeout_ms),
    )


def parse_costing(data: dict[str, Any]) -> CostingSettings:
    raw = data.get("adjustment_tolerance", CostingSettings().adjustment_tolerance)
    if isinstance(raw, float):
        # YAML reads 0.01 as a float; go through its literal text.
        raw = repr(raw)
    try:
        tolerance = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"adjustment_tolerance is not a number: {raw!r}") from None
    if not tolerance.is_finite() or tolerance < 0:
        raise ValueError(f"adjustment_tolerance must be >= 0, got {raw!r}")
    return CostingSettings(adjustment_tolerance=tolerance)


def parse_tooling(data: dict[str, Any]) -> ToolingSettings:
    defaults = ToolingSettings()
    state = str(data.get("default_unmount_state", defaults.default_unmount_state)).lower()
    if state not in _UNMOUNT_STATES:
        raise ValueError(
            f"default_unmount_state must be one of {sorted(_UNMOUNT_STATES)}, got {state!r}"
        )
    return ToolingSettings(
        default_unmount_state=state,
        code_sequence_width=_positive_int(
            data, "code_sequence_width", defaults.code_sequence_width
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", LoggingSettings().level)).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any]) -> ToolKernelSettings:
    """Parse a full configuration set from a dict."""
    return ToolKernelSettings(
        name=str(data.get("name", "default")),
        database=parse_database(data.get("database") or {}),
        costing=parse_costing(data.get("costing") or {}),
        tooling=parse_tooling(data.get("tooling") or {}),
        logging=parse_logging(data.get("logging") or {}),
    )


def load_settings(path: Path) -> ToolKernelSettings:
    return parse_settings(load_yaml_file(path))
