"""
ToolLifecycleService -- public boundary of the tool kernel.

Responsibility:
    Exposes every tool operation as a method returning an OperationResult.
    Each call runs in exactly one transaction (Database.session_scope),
    builds the component services for that session, and converts every
    exception into a structured failure so that nothing crosses the
    boundary.

Architecture position:
    Kernel > Services -- imperative shell.  The only class that opens
    transactions.  Components below it (ToolRegistry, UsageLedger,
    CostEstimator, ReconciliationEngine, WorkOrderCostAccumulator) are
    flush-only.

Error mapping:
    ToolKernelError subclasses   -> their own ErrorKind and code
    OperationalError (timeout)   -> TransactionTimeoutError
    any other SQLAlchemyError    -> TransactionError
    TransactionError results are safe to re-issue: the transaction was
    rolled back as a whole.
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from tool_kernel.db.engine import Database
from tool_kernel.db.immutability import register_immutability_listeners
from tool_kernel.db.types import DEFAULT_ADJUSTMENT_TOLERANCE
from tool_kernel.domain.clock import Clock, SystemClock
from tool_kernel.domain.dtos import (
    ProductionAllocation,
    ReconciliationReport,
    ToolInstanceInfo,
    UsageRecordInfo,
    WorkOrderCostSnapshot,
)
from tool_kernel.domain.results import OperationResult
from tool_kernel.domain.tool_state import ToolState
from tool_kernel.exceptions import (
    ToolKernelError,
    TransactionError,
    TransactionTimeoutError,
)
from tool_kernel.logging_config import LogContext, get_logger
from tool_kernel.services.cost_accumulator import WorkOrderCostAccumulator
from tool_kernel.services.cost_estimator import CostEstimator
from tool_kernel.services.reconciliation_engine import ReconciliationEngine
from tool_kernel.services.tool_registry import DEFAULT_CODE_WIDTH, ToolRegistry
from tool_kernel.services.usage_ledger import UsageLedger

logger = get_logger("services.tool_lifecycle")

T = TypeVar("T")

_TIMEOUT_MARKERS = (
    "lock timeout",
    "statement timeout",
    "canceling statement due to",
    "database is locked",
)


@dataclass(frozen=True)
class _Components:
    """Component services bound to one session."""

    session: Session
    ledger: UsageLedger
    accumulator: WorkOrderCostAccumulator
    reconciliation: ReconciliationEngine
    registry: ToolRegistry
    estimator: CostEstimator


def _is_timeout(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)


class ToolLifecycleService:
    """
    Transactional facade over the tool kernel.

    Contract:
        Every public method returns ``OperationResult``.  On success the
        transaction has committed and ``value`` holds a frozen DTO; on
        failure nothing was written.

    Usage:
        service = ToolLifecycleService(Database.from_url(url))
        result = service.register_machine_production(wo_id, "CNC-01", Decimal("10"))
        if not result.is_success:
            print(result.message)
    """

    def __init__(
        self,
        database: Database,
        clock: Clock | None = None,
        tolerance: Decimal = DEFAULT_ADJUSTMENT_TOLERANCE,
        default_unmount_state: ToolState = ToolState.SHARPENED,
        code_width: int = DEFAULT_CODE_WIDTH,
    ):
        self._database = database
        self._clock = clock or SystemClock()
        self._tolerance = tolerance
        self._default_unmount_state = default_unmount_state
        self._code_width = code_width
        register_immutability_listeners()

    def _components(self, session: Session) -> _Components:
        ledger = UsageLedger(session, self._clock)
        accumulator = WorkOrderCostAccumulator(session)
        reconciliation = ReconciliationEngine(
            session, ledger, accumulator, clock=self._clock, tolerance=self._tolerance
        )
        registry = ToolRegistry(
            session,
            reconciliation,
            default_unmount_state=self._default_unmount_state,
            code_width=self._code_width,
        )
        estimator = CostEstimator(session, ledger, accumulator, registry, reconciliation)
        return _Components(
            session=session,
            ledger=ledger,
            accumulator=accumulator,
            reconciliation=reconciliation,
            registry=registry,
            estimator=estimator,
        )

    def _run(
        self,
        operation: str,
        fn: Callable[[_Components], T],
        message: Callable[[T], str] | None = None,
        **context: object,
    ) -> OperationResult[T]:
        """Run ``fn`` in one transaction and convert the outcome."""
        with LogContext.bind(correlation_id=str(uuid4()), operation=operation, **context):
            logger.info("tool_operation_started")
            t0 = time.monotonic()
            try:
                with self._database.session_scope() as session:
                    value = fn(self._components(session))
            except ToolKernelError as exc:
                return self._failed(exc, t0)
            except OperationalError as exc:
                error_cls = TransactionTimeoutError if _is_timeout(exc) else TransactionError
                return self._failed(error_cls(operation, str(exc.orig or exc)), t0)
            except SQLAlchemyError as exc:
                return self._failed(
                    TransactionError(operation, f"{type(exc).__name__}: {exc}"), t0
                )

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("tool_operation_completed", extra={"duration_ms": duration_ms})
            return OperationResult.success(value, message(value) if message else None)

    def _failed(self, error: ToolKernelError, t0: float) -> OperationResult:
        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.warning(
            "tool_operation_failed",
            extra={
                "error_kind": error.kind,
                "error_code": error.code,
                "error_message": str(error),
                "retryable": error.retryable,
                "duration_ms": duration_ms,
            },
        )
        return OperationResult.failure(error)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def create_tool_instance(
        self,
        catalog_item_ref: str,
        code: str | None = None,
        location: str | None = None,
        initial_cost: Decimal | int | str | None = None,
        estimated_life: Decimal | int | str | None = None,
    ) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "create_tool_instance",
            lambda c: ToolInstanceInfo.from_model(
                c.registry.create_tool_instance(
                    catalog_item_ref,
                    code=code,
                    location=location,
                    initial_cost=initial_cost,
                    estimated_life=estimated_life,
                )
            ),
            lambda tool: f"Tool {tool.code} created",
        )

    def next_tool_code(self, catalog_item_ref: str) -> OperationResult[str]:
        return self._run(
            "next_tool_code",
            lambda c: c.registry.next_tool_code(catalog_item_ref),
        )

    def mount_on_machine(
        self, tool_id: UUID | str, machine_id: str
    ) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "mount_on_machine",
            lambda c: ToolInstanceInfo.from_model(
                c.registry.mount_on_machine(tool_id, machine_id)
            ),
            lambda tool: f"Tool {tool.code} mounted on machine {tool.mounted_on}",
            tool_id=tool_id,
            machine_id=machine_id,
        )

    def unmount_from_machine(
        self,
        tool_id: UUID | str,
        resulting_state: ToolState | str | None = None,
    ) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "unmount_from_machine",
            lambda c: ToolInstanceInfo.from_model(
                c.registry.unmount_from_machine(tool_id, resulting_state)
            ),
            lambda tool: f"Tool {tool.code} unmounted ({tool.state.value})",
            tool_id=tool_id,
        )

    def set_state(
        self, tool_id: UUID | str, new_state: ToolState | str
    ) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "set_state",
            lambda c: ToolInstanceInfo.from_model(c.registry.set_state(tool_id, new_state)),
            lambda tool: f"Tool {tool.code} state updated to {tool.state.value}",
            tool_id=tool_id,
        )

    def update_estimated_life(
        self, tool_id: UUID | str, estimated_life: Decimal | int | str
    ) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "update_estimated_life",
            lambda c: ToolInstanceInfo.from_model(
                c.registry.update_estimated_life(tool_id, estimated_life)
            ),
            lambda tool: f"Tool {tool.code} estimated life set to {tool.estimated_life}",
            tool_id=tool_id,
        )

    # ------------------------------------------------------------------
    # Costing
    # ------------------------------------------------------------------

    def register_machine_production(
        self,
        work_order_id: UUID | str,
        machine_id: str,
        quantity_produced: Decimal | int | str,
    ) -> OperationResult[ProductionAllocation]:
        return self._run(
            "register_machine_production",
            lambda c: c.estimator.register_machine_production(
                work_order_id, machine_id, quantity_produced
            ),
            lambda alloc: (
                "No tools charged"
                if alloc.is_noop
                else f"Charged {alloc.total_provisional_cost} across "
                f"{len(alloc.usage_records)} tool(s)"
            ),
            work_order_id=work_order_id,
            machine_id=machine_id,
        )

    def register_tool_usage(
        self,
        work_order_id: UUID | str,
        tool_id: UUID | str,
        quantity_produced: Decimal | int | str,
        final_state: ToolState | str | None = None,
        notes: str | None = None,
    ) -> OperationResult[ProductionAllocation]:
        return self._run(
            "register_tool_usage",
            lambda c: c.estimator.register_tool_usage(
                work_order_id, tool_id, quantity_produced, final_state, notes
            ),
            lambda alloc: f"Usage registered, charged {alloc.total_provisional_cost}",
            work_order_id=work_order_id,
            tool_id=tool_id,
        )

    def finalize_tool_life(
        self, tool_id: UUID | str, final_state: ToolState | str
    ) -> OperationResult[ReconciliationReport]:
        return self._run(
            "finalize_tool_life",
            lambda c: c.reconciliation.finalize_tool_life(tool_id, final_state),
            lambda report: (
                f"Tool {report.tool.code} retired ({report.final_state.value}); "
                f"{report.applied_count} adjustment(s) totalling {report.applied_total}"
            ),
            tool_id=tool_id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tool(self, tool_id: UUID | str) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "get_tool",
            lambda c: ToolInstanceInfo.from_model(c.registry.get_tool(tool_id)),
            tool_id=tool_id,
        )

    def get_tool_by_code(self, code: str) -> OperationResult[ToolInstanceInfo]:
        return self._run(
            "get_tool_by_code",
            lambda c: ToolInstanceInfo.from_model(c.registry.get_tool_by_code(code)),
        )

    def list_mounted_tools(self, machine_id: str) -> OperationResult[list[ToolInstanceInfo]]:
        return self._run(
            "list_mounted_tools",
            lambda c: [
                ToolInstanceInfo.from_model(t)
                for t in c.registry.list_mounted_tools(machine_id)
            ],
            machine_id=machine_id,
        )

    def list_available_tools(self) -> OperationResult[list[ToolInstanceInfo]]:
        return self._run(
            "list_available_tools",
            lambda c: [
                ToolInstanceInfo.from_model(t) for t in c.registry.list_available_tools()
            ],
        )

    def usage_history(self, tool_id: UUID | str) -> OperationResult[list[UsageRecordInfo]]:
        def _history(c: _Components) -> list[UsageRecordInfo]:
            tool = c.registry.get_tool(tool_id)
            return [UsageRecordInfo.from_model(r) for r in c.ledger.list_usage(tool.id)]

        return self._run("usage_history", _history, tool_id=tool_id)

    def work_order_costs(
        self, work_order_id: UUID | str
    ) -> OperationResult[WorkOrderCostSnapshot]:
        return self._run(
            "work_order_costs",
            lambda c: c.accumulator.snapshot(work_order_id),
            work_order_id=work_order_id,
        )
