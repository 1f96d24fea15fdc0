"""CLI utilities: formatting, logging mute/restore, result printing."""

import logging
import sys
from decimal import Decimal

from tool_kernel.domain.dtos import ToolInstanceInfo, WorkOrderCostSnapshot
from tool_kernel.domain.results import OperationResult


def fmt_amount(v) -> str:
    """Format a cost for display (e.g. $1,234.56)."""
    d = Decimal(str(v))
    return f"${d:,.2f}"


def fmt_quantity(v) -> str:
    d = Decimal(str(v)).normalize()
    # normalize() turns 100 into 1E+2
    return f"{d:f}"


def enable_quiet_logging():
    """Mute console handlers so CLI output stays clean. Returns list to pass to restore_logging."""
    tk_logger = logging.getLogger("tool_kernel")
    muted = []
    for h in tk_logger.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            muted.append((h, h.level))
            h.setLevel(logging.CRITICAL + 1)
    return muted


def restore_logging(muted):
    """Restore muted handlers after a quiet-logging section."""
    for h, orig_level in muted:
        h.setLevel(orig_level)


def report(result: OperationResult) -> int:
    """Print a result message and return the process exit code."""
    if result.is_success:
        if result.message:
            print(result.message)
        return 0
    print(f"  ERROR [{result.error_code}]: {result.message}", file=sys.stderr)
    return 1


def print_tool(tool: ToolInstanceInfo) -> None:
    life = fmt_quantity(tool.estimated_life) if tool.estimated_life is not None else "-"
    remaining = tool.remaining_life
    print(f"  {tool.code}  ({tool.catalog_item_ref})")
    print(f"    id:               {tool.id}")
    print(f"    state:            {tool.state.value}")
    print(f"    location:         {tool.location or '-'}")
    print(f"    mounted on:       {tool.mounted_on or '-'}")
    print(f"    initial cost:     {fmt_amount(tool.initial_cost)}")
    print(f"    estimated life:   {life}")
    print(f"    accumulated life: {fmt_quantity(tool.accumulated_life)}")
    if remaining is not None:
        print(f"    remaining life:   {fmt_quantity(remaining)}")
    if tool.retired_at is not None:
        print(f"    retired at:       {tool.retired_at.isoformat()}")


def print_work_order(snapshot: WorkOrderCostSnapshot) -> None:
    print(f"  Work order {snapshot.code}  ({snapshot.id})")
    print(f"    materials:  {fmt_amount(snapshot.cost_materials):>14}")
    print(f"    labor:      {fmt_amount(snapshot.cost_labor):>14}")
    print(f"    overheads:  {fmt_amount(snapshot.cost_overheads):>14}")
    print(f"    total:      {fmt_amount(snapshot.cost_total):>14}")
    if not snapshot.is_balanced:
        print("    WARNING: total does not equal materials + labor + overheads")
