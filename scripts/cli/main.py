"""CLI main: argument parsing, logging setup, command dispatch."""

import argparse
import logging
import sys
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

import yaml
from sqlalchemy.exc import SQLAlchemyError

from scripts.cli import config as cli_config
from scripts.cli.setup import (
    add_catalog_item,
    add_work_order,
    init_db,
    resolve_work_order_id,
)
from scripts.cli.util import (
    enable_quiet_logging,
    fmt_amount,
    fmt_quantity,
    print_tool,
    print_work_order,
    report,
    restore_logging,
)
from tool_config import get_active_settings
from tool_config.bridges import build_database, build_lifecycle_service
from tool_kernel.domain.tool_state import ToolState
from tool_kernel.logging_config import StructuredFormatter
from tool_kernel.selectors.base import coerce_uuid
from tool_kernel.services.tool_lifecycle_service import ToolLifecycleService

_RETIREMENT_STATES = [s.value for s in (ToolState.BROKEN, ToolState.WORN, ToolState.LOST)]
_UNMOUNT_STATES = [s.value for s in (ToolState.SHARPENED, ToolState.NEW)]
_USAGE_STATES = _UNMOUNT_STATES + _RETIREMENT_STATES


class _FlushingFileHandler(logging.FileHandler):
    """FileHandler that flushes after every emit so the log updates immediately."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scripts.cli",
        description="Tool lifecycle and work order tooling cost CLI.",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration set")
    parser.add_argument("--database-url", help="override database.url")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="echo structured logs to stderr"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="create the schema")
    p.add_argument("--reset", action="store_true", help="drop all tables first")

    p = sub.add_parser("add-catalog-item", help="register or update a catalog item")
    p.add_argument("sku")
    p.add_argument("name")
    p.add_argument("--estimated-life", type=_decimal)
    p.add_argument("--unit-cost", type=_decimal)

    p = sub.add_parser("add-work-order", help="register a work order")
    p.add_argument("code")
    p.add_argument("--materials", type=_decimal, default=Decimal("0"))
    p.add_argument("--labor", type=_decimal, default=Decimal("0"))

    p = sub.add_parser("create-tool", help="create a tool instance from a catalog item")
    p.add_argument("sku")
    p.add_argument("--code", help="tool code (default: next <SKU>-NNNNNN)")
    p.add_argument("--location")
    p.add_argument("--initial-cost")
    p.add_argument("--estimated-life")

    p = sub.add_parser("mount", help="mount a tool on a machine")
    p.add_argument("tool", help="tool code or id")
    p.add_argument("machine")

    p = sub.add_parser("unmount", help="take a tool off its machine")
    p.add_argument("tool", help="tool code or id")
    p.add_argument("--state", choices=_UNMOUNT_STATES)

    p = sub.add_parser("produce", help="register production on a machine")
    p.add_argument("work_order", help="work order code or id")
    p.add_argument("machine")
    p.add_argument("quantity")

    p = sub.add_parser("use", help="report usage of a single tool")
    p.add_argument("work_order", help="work order code or id")
    p.add_argument("tool", help="tool code or id")
    p.add_argument("quantity")
    p.add_argument("--final-state", choices=_USAGE_STATES)
    p.add_argument("--notes")

    p = sub.add_parser("set-state", help="move a tool to another lifecycle state")
    p.add_argument("tool", help="tool code or id")
    p.add_argument("state", choices=[s.value for s in ToolState])

    p = sub.add_parser("retire", help="finalize a tool's life and reconcile its costs")
    p.add_argument("tool", help="tool code or id")
    p.add_argument("state", choices=_RETIREMENT_STATES)

    p = sub.add_parser("show-tool", help="show a tool and its usage history")
    p.add_argument("tool", help="tool code or id")

    p = sub.add_parser("machine-tools", help="list tools mounted on a machine")
    p.add_argument("machine")

    p = sub.add_parser("work-order", help="show work order cost columns")
    p.add_argument("work_order", help="work order code or id")

    return parser


def _attach_file_log() -> logging.Handler | None:
    try:
        cli_config.LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = _FlushingFileHandler(str(cli_config.LOG_FILE), mode="a")
    except OSError as exc:
        print(f"  WARNING: file logging disabled: {exc}", file=sys.stderr)
        return None
    handler.setFormatter(StructuredFormatter())
    logging.getLogger("tool_kernel").addHandler(handler)
    return handler


def _resolve_tool(service: ToolLifecycleService, ref: str) -> UUID | None:
    parsed = coerce_uuid(ref)
    if parsed is not None:
        return parsed
    result = service.get_tool_by_code(ref)
    if not result.is_success:
        report(result)
        return None
    return result.value.id


def _resolve_work_order(database, ref: str) -> UUID | None:
    work_order_id = resolve_work_order_id(database, ref)
    if work_order_id is None:
        print(f"  ERROR [WORK_ORDER_NOT_FOUND]: Work order not found: {ref}", file=sys.stderr)
    return work_order_id


def _show_tool(service: ToolLifecycleService, tool_id: UUID) -> int:
    result = service.get_tool(tool_id)
    if not result.is_success:
        return report(result)
    print_tool(result.value)

    history = service.usage_history(tool_id)
    if not history.is_success:
        return report(history)
    if history.value:
        print()
        print("    usage:")
        for usage in history.value:
            print(
                f"      {usage.recorded_at:%Y-%m-%d %H:%M}  wo={usage.work_order_id}  "
                f"qty={fmt_quantity(usage.quantity_produced):>8}  "
                f"cost={fmt_amount(usage.provisional_cost):>10}  "
                f"{usage.state_before.value}->{usage.state_after.value}"
            )
    return 0


def run(args: argparse.Namespace) -> int:
    settings = get_active_settings(args.config)
    if args.database_url:
        settings = replace(settings, database=replace(settings.database, url=args.database_url))

    database = build_database(settings)
    file_handler = _attach_file_log()
    muted = [] if args.verbose else enable_quiet_logging()

    try:
        if args.command == "init-db":
            tables = init_db(database, reset=args.reset)
            print(f"Created {len(tables)} tables: {', '.join(tables)}")
            return 0

        if args.command == "add-catalog-item":
            item = add_catalog_item(
                database,
                args.sku,
                args.name,
                estimated_life=args.estimated_life,
                unit_cost=args.unit_cost,
            )
            print(f"Catalog item {item.sku} saved")
            return 0

        if args.command == "add-work-order":
            work_order = add_work_order(
                database, args.code, cost_materials=args.materials, cost_labor=args.labor
            )
            print(f"Work order {work_order.code} created ({work_order.id})")
            return 0

        service = build_lifecycle_service(settings, database=database)
        return _dispatch(service, database, args)
    finally:
        database.dispose()
        restore_logging(muted)
        if file_handler is not None:
            logging.getLogger("tool_kernel").removeHandler(file_handler)
            file_handler.close()


def _dispatch(service: ToolLifecycleService, database, args: argparse.Namespace) -> int:
    command = args.command

    if command == "create-tool":
        result = service.create_tool_instance(
            args.sku,
            code=args.code,
            location=args.location,
            initial_cost=args.initial_cost,
            estimated_life=args.estimated_life,
        )
        if result.is_success:
            print(f"{result.message} ({result.value.id})")
            return 0
        return report(result)

    if command == "machine-tools":
        result = service.list_mounted_tools(args.machine)
        if not result.is_success:
            return report(result)
        if not result.value:
            print(f"No tools mounted on machine {args.machine}")
        for tool in result.value:
            print(
                f"  {tool.code:<24} {tool.state.value:<10} "
                f"life {fmt_quantity(tool.accumulated_life)}"
                f"/{fmt_quantity(tool.estimated_life) if tool.estimated_life else '-'}"
            )
        return 0

    if command in ("produce", "use", "work-order"):
        work_order_id = _resolve_work_order(database, args.work_order)
        if work_order_id is None:
            return 1
        if command == "produce":
            return report(
                service.register_machine_production(work_order_id, args.machine, args.quantity)
            )
        if command == "work-order":
            result = service.work_order_costs(work_order_id)
            if result.is_success:
                print_work_order(result.value)
                return 0
            return report(result)

    tool_id = _resolve_tool(service, args.tool)
    if tool_id is None:
        return 1

    if command == "use":
        return report(
            service.register_tool_usage(
                work_order_id,
                tool_id,
                args.quantity,
                final_state=args.final_state,
                notes=args.notes,
            )
        )
    if command == "mount":
        return report(service.mount_on_machine(tool_id, args.machine))
    if command == "unmount":
        return report(service.unmount_from_machine(tool_id, args.state))
    if command == "set-state":
        return report(service.set_state(tool_id, args.state))
    if command == "retire":
        return report(service.finalize_tool_life(tool_id, args.state))
    if command == "show-tool":
        return _show_tool(service, tool_id)

    raise AssertionError(f"unhandled command {command!r}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        # Configuration problems: missing YAML, invalid settings.
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        print(f"  ERROR [DATABASE]: {exc}", file=sys.stderr)
        return 1
