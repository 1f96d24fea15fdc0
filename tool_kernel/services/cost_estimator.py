"""
CostEstimator -- provisional cost allocation from production events.

Responsibility:
    Converts "N units produced on machine M for work order W" into usage
    records for every tool mounted on M and a provisional charge on W:

        provisional = quantity / estimated_life * initial_cost

    The charges for all tools are summed and applied as a single paired
    increment.  Manual per-tool usage reports are handled the same way.

Architecture position:
    Kernel > Services.  Called by ToolLifecycleService.  Writes usage via
    UsageLedger and costs via WorkOrderCostAccumulator; retirement through
    ReconciliationEngine.

Invariants enforced:
    - Mounted tools are locked (FOR UPDATE, id order) before any write, so
      a concurrent reconciliation of the same tool either sees this usage
      or runs entirely after it.
    - Tools without a positive estimated life accrue wear but no cost.

Failure modes:
    - InvalidQuantityError: float or non-finite quantity.
    - WorkOrderNotFoundError: work order does not exist.
    - ToolNotFoundError / ToolNotMountedError / ToolRetiredError for manual
      usage reports.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tool_kernel.db.types import ZERO
from tool_kernel.domain.costing import provisional_cost, to_decimal, validate_quantity
from tool_kernel.domain.dtos import ProductionAllocation, UsageRecordInfo
from tool_kernel.domain.tool_state import TERMINAL_STATES, ToolState, parse_state
from tool_kernel.exceptions import ToolNotFoundError
from tool_kernel.logging_config import get_logger
from tool_kernel.models.usage_record import UsageRecord
from tool_kernel.selectors.base import coerce_uuid
from tool_kernel.selectors.tool_selector import ToolSelector
from tool_kernel.services.base import BaseService
from tool_kernel.services.cost_accumulator import WorkOrderCostAccumulator
from tool_kernel.services.reconciliation_engine import ReconciliationEngine
from tool_kernel.services.tool_registry import ToolRegistry
from tool_kernel.services.usage_ledger import UsageLedger

logger = get_logger("services.cost_estimator")

AUTOMATIC_USAGE_NOTE = "Automatic wear from machine production"


class CostEstimator(BaseService[UsageRecord]):
    """Provisional costing of production against mounted tools."""

    def __init__(
        self,
        session: Session,
        ledger: UsageLedger,
        accumulator: WorkOrderCostAccumulator,
        registry: ToolRegistry,
        reconciliation_engine: ReconciliationEngine,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._accumulator = accumulator
        self._registry = registry
        self._reconciliation = reconciliation_engine
        self._tools = ToolSelector(session)

    def register_machine_production(
        self,
        work_order_id: UUID | str,
        machine_id: str,
        quantity_produced: Decimal | int | str,
    ) -> ProductionAllocation:
        """
        Record production on a machine against every tool mounted on it.

        A non-positive quantity, or a machine with no mounted tools, is a
        successful no-op.
        """
        quantity = to_decimal(quantity_produced, "quantity_produced")
        if quantity <= 0:
            logger.info(
                "production_skipped",
                extra={"machine_id": machine_id, "reason": "non_positive_quantity"},
            )
            return ProductionAllocation(
                work_order_id=coerce_uuid(work_order_id) or work_order_id,
                machine_id=machine_id,
                quantity_produced=quantity,
            )

        tools = self._tools.mounted_on(machine_id, for_update=True)
        if not tools:
            logger.info(
                "production_skipped",
                extra={"machine_id": machine_id, "reason": "no_mounted_tools"},
            )
            return ProductionAllocation(
                work_order_id=coerce_uuid(work_order_id) or work_order_id,
                machine_id=machine_id,
                quantity_produced=quantity,
            )

        work_order = self._accumulator.require(work_order_id)

        records: list[UsageRecord] = []
        total = ZERO
        for tool in tools:
            cost = provisional_cost(
                quantity,
                Decimal(str(tool.estimated_life)) if tool.estimated_life is not None else None,
                Decimal(str(tool.initial_cost)),
            )
            records.append(
                self._ledger.record_usage(
                    tool,
                    work_order.id,
                    quantity,
                    provisional_cost=cost,
                    notes=AUTOMATIC_USAGE_NOTE,
                )
            )
            total += cost

        if total != 0:
            self._accumulator.increment(work_order.id, total, reason="machine_production")

        logger.info(
            "production_registered",
            extra={
                "work_order_id": str(work_order.id),
                "machine_id": machine_id,
                "quantity_produced": quantity,
                "tool_count": len(tools),
                "total_provisional_cost": total,
            },
        )
        return ProductionAllocation(
            work_order_id=work_order.id,
            machine_id=machine_id,
            quantity_produced=quantity,
            usage_records=tuple(UsageRecordInfo.from_model(r) for r in records),
            total_provisional_cost=total,
        )

    def register_tool_usage(
        self,
        work_order_id: UUID | str,
        tool_id: UUID | str,
        quantity_produced: Decimal | int | str,
        final_state: ToolState | str | None = None,
        notes: str | None = None,
    ) -> ProductionAllocation:
        """
        Record a manual usage report against one mounted tool.

        The usage and its provisional charge are written first; then a
        terminal ``final_state`` retires the tool through reconciliation,
        and SHARPENED or NEW unmounts it into that state.
        """
        target = parse_state(final_state) if final_state is not None else None
        quantity = validate_quantity(quantity_produced)

        tool = self._tools.get(tool_id, for_update=True)
        if tool is None:
            raise ToolNotFoundError(str(tool_id))

        work_order = self._accumulator.require(work_order_id)

        machine_id = tool.mounted_on
        cost = provisional_cost(
            quantity,
            Decimal(str(tool.estimated_life)) if tool.estimated_life is not None else None,
            Decimal(str(tool.initial_cost)),
        )
        record = self._ledger.record_usage(
            tool,
            work_order.id,
            quantity,
            provisional_cost=cost,
            state_after=target,
            notes=notes,
        )
        if cost != 0:
            self._accumulator.increment(work_order.id, cost, reason="tool_usage_report")

        logger.info(
            "tool_usage_registered",
            extra={
                "work_order_id": str(work_order.id),
                "tool_id": str(tool.id),
                "quantity_produced": record.quantity_produced,
                "provisional_cost": cost,
                "final_state": target.value if target else None,
            },
        )

        if target in TERMINAL_STATES:
            self._reconciliation.finalize_locked(tool, target)
        elif target in (ToolState.SHARPENED, ToolState.NEW):
            self._registry.unmount_from_machine(tool.id, target)

        return ProductionAllocation(
            work_order_id=work_order.id,
            machine_id=machine_id,
            quantity_produced=record.quantity_produced,
            usage_records=(UsageRecordInfo.from_model(record),),
            total_provisional_cost=cost,
        )
