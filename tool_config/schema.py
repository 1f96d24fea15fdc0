"""
Configuration schema (``tool_config.schema``).

Frozen dataclasses describing a tool kernel configuration set.  Parsed from
YAML by ``tool_config.loader``; converted into kernel inputs by
``tool_config.bridges``.  Defaults here are the values used when a key is
absent from the YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and transaction settings."""

    url: str = "sqlite:///tooling.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    transaction_timeout_ms: int = 10_000
    lock_timeout_ms: int = 5_000


@dataclass(frozen=True)
class CostingSettings:
    # Adjustments with |value| <= tolerance are not written to work orders
    adjustment_tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class ToolingSettings:
    default_unmount_state: str = "sharpened"
    code_sequence_width: int = 6


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class ToolKernelSettings:
    """A complete, validated configuration set."""

    name: str = "default"
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    costing: CostingSettings = field(default_factory=CostingSettings)
    tooling: ToolingSettings = field(default_factory=ToolingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
