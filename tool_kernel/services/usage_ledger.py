"""
UsageLedger -- append-only record of production attributed to tools.

Responsibility:
    Appends one immutable UsageRecord per (tool, work order, production
    event) and advances the tool's accumulated life by the same quantity.
    Never touches work order cost columns.

Architecture position:
    Kernel > Services.  Called by CostEstimator (machine production and
    manual usage reports).

Invariants enforced:
    - sum(quantity_produced) over a tool's records == accumulated_life,
      because both are written in the same flush.
    - accumulated_life only increases (quantity must be positive).
    - Usage is only recorded against a mounted, non-terminal tool.

Failure modes:
    - InvalidQuantityError: quantity_produced <= 0.
    - ToolRetiredError: tool is BROKEN, WORN or LOST.
    - ToolNotMountedError: tool is not IN_USE on a machine.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tool_kernel.domain.clock import Clock, SystemClock
from tool_kernel.domain.costing import validate_quantity
from tool_kernel.domain.tool_state import ToolState, parse_state, validate_transition
from tool_kernel.exceptions import ToolNotMountedError, ToolRetiredError
from tool_kernel.logging_config import get_logger
from tool_kernel.models.tool_instance import ToolInstance
from tool_kernel.models.usage_record import UsageRecord
from tool_kernel.selectors.tool_selector import UsageSelector
from tool_kernel.services.base import BaseService

logger = get_logger("services.usage_ledger")


class UsageLedger(BaseService[UsageRecord]):
    """Append-only usage ledger."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._selector = UsageSelector(session)

    def record_usage(
        self,
        tool: ToolInstance,
        work_order_id: UUID,
        quantity_produced: Decimal,
        provisional_cost: Decimal,
        state_after: ToolState | str | None = None,
        notes: str | None = None,
    ) -> UsageRecord:
        """
        Append a usage record and advance the tool's accumulated life.

        ``tool`` must already be locked by the caller.  ``state_after``
        defaults to the tool's current state; it is recorded on the row but
        the tool's own state is changed by ToolRegistry/ReconciliationEngine.
        """
        quantity = validate_quantity(quantity_produced)
        current = parse_state(tool.state)

        if tool.is_retired:
            raise ToolRetiredError(str(tool.id), current.value, "record usage on")
        if current != ToolState.IN_USE or not tool.is_mounted:
            raise ToolNotMountedError(str(tool.id), current.value)

        if state_after is None:
            after = current
        else:
            # Validates the edge; terminal targets are allowed from IN_USE.
            after = validate_transition(tool.id, current, state_after, "record usage on")

        record = UsageRecord(
            tool_instance_id=tool.id,
            work_order_id=work_order_id,
            quantity_produced=quantity,
            state_before=current.value,
            state_after=after.value,
            estimated_life_snapshot=tool.estimated_life,
            provisional_cost=provisional_cost,
            notes=notes,
            recorded_at=self._clock.now(),
        )
        self.session.add(record)
        tool.accumulated_life = Decimal(str(tool.accumulated_life)) + quantity
        self.session.flush()

        logger.info(
            "usage_recorded",
            extra={
                "tool_id": str(tool.id),
                "work_order_id": str(work_order_id),
                "quantity_produced": quantity,
                "provisional_cost": provisional_cost,
                "accumulated_life": tool.accumulated_life,
            },
        )
        return record

    def list_usage(self, tool_id: UUID) -> list[UsageRecord]:
        return self._selector.for_tool(tool_id)

    def total_produced(self, tool_id: UUID) -> Decimal:
        return self._selector.total_quantity(tool_id)
