"""
WorkOrderCostAccumulator -- paired increments of work order costs.

Responsibility:
    The only writer of work order cost columns in the kernel.  Every change
    adds the same delta to ``cost_overheads`` and ``cost_total`` in one
    atomic ``UPDATE ... SET col = col + :delta``, so concurrent writers never
    lose an update and ``cost_total`` always equals
    materials + labor + overheads.

Architecture position:
    Kernel > Services.  External collaborator: the work_orders table is
    owned by the production-order subsystem; this class is the narrow
    interface the tool kernel writes through.

Failure modes:
    - WorkOrderNotFoundError when no row matched the id.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import update

from tool_kernel.db.types import round_money
from tool_kernel.domain.dtos import WorkOrderCostSnapshot
from tool_kernel.exceptions import WorkOrderNotFoundError
from tool_kernel.logging_config import get_logger
from tool_kernel.models.work_order import WorkOrder
from tool_kernel.selectors.base import coerce_uuid
from tool_kernel.selectors.reference_selector import WorkOrderSelector
from tool_kernel.services.base import BaseService

logger = get_logger("services.cost_accumulator")


class WorkOrderCostAccumulator(BaseService[WorkOrder]):
    """Paired-increment primitive over the work order cost columns."""

    def __init__(self, session):
        super().__init__(session)
        self._selector = WorkOrderSelector(session)

    def require(self, work_order_id: UUID | str) -> WorkOrder:
        """Load a work order, raising WorkOrderNotFoundError if absent."""
        work_order = self._selector.get(work_order_id)
        if work_order is None:
            raise WorkOrderNotFoundError(str(work_order_id))
        return work_order

    def increment(self, work_order_id: UUID | str, delta: Decimal, reason: str = "") -> None:
        """
        Add ``delta`` (positive or negative) to overheads and total together.

        Raises:
            WorkOrderNotFoundError: no work order with this id.
        """
        parsed = coerce_uuid(work_order_id)
        if parsed is None:
            raise WorkOrderNotFoundError(str(work_order_id))

        amount = round_money(delta)
        result = self.session.execute(
            update(WorkOrder)
            .where(WorkOrder.id == parsed)
            .values(
                cost_overheads=WorkOrder.cost_overheads + amount,
                cost_total=WorkOrder.cost_total + amount,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise WorkOrderNotFoundError(str(work_order_id))

        logger.info(
            "work_order_cost_incremented",
            extra={
                "work_order_id": str(parsed),
                "delta": amount,
                "reason": reason,
            },
        )

    def snapshot(self, work_order_id: UUID | str) -> WorkOrderCostSnapshot:
        return WorkOrderCostSnapshot.from_model(self.require(work_order_id))
