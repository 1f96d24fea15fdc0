"""
Config -> Kernel Bridges.

Functions that convert ToolKernelSettings into kernel inputs.  These live
in tool_config (the producer) because the kernel must NEVER import
tool_config.

Usage:
    from tool_config import get_active_settings
    from tool_config.bridges import build_lifecycle_service

    settings = get_active_settings()
    service = build_lifecycle_service(settings)
"""

from __future__ import annotations

from tool_config.schema import ToolKernelSettings
from tool_kernel.db.engine import Database
from tool_kernel.domain.clock import Clock
from tool_kernel.domain.tool_state import parse_state
from tool_kernel.logging_config import configure_logging
from tool_kernel.services.tool_lifecycle_service import ToolLifecycleService


def build_database(settings: ToolKernelSettings) -> Database:
    # Before Database.from_url, which would otherwise configure the default level.
    configure_logging(level=settings.logging.level)
    db = settings.database
    return Database.from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        transaction_timeout_ms=db.transaction_timeout_ms,
        lock_timeout_ms=db.lock_timeout_ms,
    )


def build_lifecycle_service(
    settings: ToolKernelSettings,
    database: Database | None = None,
    clock: Clock | None = None,
) -> ToolLifecycleService:
    """Wire a ToolLifecycleService (and its Database) from settings."""
    configure_logging(level=settings.logging.level)
    return ToolLifecycleService(
        database or build_database(settings),
        clock=clock,
        tolerance=settings.costing.adjustment_tolerance,
        default_unmount_state=parse_state(settings.tooling.default_unmount_state),
        code_width=settings.tooling.code_sequence_width,
    )
