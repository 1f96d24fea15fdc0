"""
Data Transfer Objects returned across the ToolLifecycleService boundary.

Frozen snapshots of ORM state, so that callers never hold a live model bound
to a closed session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from tool_kernel.db.types import ZERO
from tool_kernel.domain.costing import AdjustmentLine
from tool_kernel.domain.tool_state import ToolState, parse_state

if TYPE_CHECKING:
    from tool_kernel.models.tool_instance import ToolInstance
    from tool_kernel.models.usage_record import UsageRecord
    from tool_kernel.models.work_order import WorkOrder


@dataclass(frozen=True)
class ToolInstanceInfo:
    """Immutable snapshot of a tool instance."""

    id: UUID
    code: str
    catalog_item_ref: str
    location: str | None
    initial_cost: Decimal
    estimated_life: Decimal | None
    accumulated_life: Decimal
    state: ToolState
    mounted_on: str | None
    retired_at: datetime | None

    @property
    def is_retired(self) -> bool:
        return self.retired_at is not None

    @property
    def remaining_life(self) -> Decimal | None:
        """Estimated units of work left, never below zero."""
        if self.estimated_life is None:
            return None
        return max(self.estimated_life - self.accumulated_life, ZERO)

    @classmethod
    def from_model(cls, model: ToolInstance) -> ToolInstanceInfo:
        return cls(
            id=model.id,
            code=model.code,
            catalog_item_ref=model.catalog_item_ref,
            location=model.location,
            initial_cost=model.initial_cost,
            estimated_life=model.estimated_life,
            accumulated_life=model.accumulated_life,
            state=parse_state(model.state),
            mounted_on=model.mounted_on,
            retired_at=model.retired_at,
        )


@dataclass(frozen=True)
class UsageRecordInfo:
    """Immutable snapshot of one usage ledger row."""

    id: UUID
    tool_instance_id: UUID
    work_order_id: UUID
    quantity_produced: Decimal
    state_before: ToolState
    state_after: ToolState
    estimated_life_snapshot: Decimal | None
    provisional_cost: Decimal
    notes: str | None
    recorded_at: datetime

    @classmethod
    def from_model(cls, model: UsageRecord) -> UsageRecordInfo:
        return cls(
            id=model.id,
            tool_instance_id=model.tool_instance_id,
            work_order_id=model.work_order_id,
            quantity_produced=model.quantity_produced,
            state_before=parse_state(model.state_before),
            state_after=parse_state(model.state_after),
            estimated_life_snapshot=model.estimated_life_snapshot,
            provisional_cost=model.provisional_cost,
            notes=model.notes,
            recorded_at=model.recorded_at,
        )


@dataclass(frozen=True)
class WorkOrderCostSnapshot:
    """Cost columns of a work order at a point in time."""

    id: UUID
    code: str
    cost_materials: Decimal
    cost_labor: Decimal
    cost_overheads: Decimal
    cost_total: Decimal

    @property
    def is_balanced(self) -> bool:
        """cost_total == cost_materials + cost_labor + cost_overheads."""
        return self.cost_total == (
            self.cost_materials + self.cost_labor + self.cost_overheads
        )

    @classmethod
    def from_model(cls, model: WorkOrder) -> WorkOrderCostSnapshot:
        return cls(
            id=model.id,
            code=model.code,
            cost_materials=model.cost_materials,
            cost_labor=model.cost_labor,
            cost_overheads=model.cost_overheads,
            cost_total=model.cost_total,
        )


@dataclass(frozen=True)
class ProductionAllocation:
    """
    Outcome of one production registration.

    ``usage_records`` is empty when the quantity was not positive or no tool
    was mounted (successful no-op).
    """

    work_order_id: UUID
    machine_id: str | None
    quantity_produced: Decimal
    usage_records: tuple[UsageRecordInfo, ...] = ()
    total_provisional_cost: Decimal = ZERO

    @property
    def is_noop(self) -> bool:
        return not self.usage_records


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of finalizing a tool's life."""

    tool: ToolInstanceInfo
    final_state: ToolState
    accumulated_life: Decimal
    real_unit_cost: Decimal | None
    lines: tuple[AdjustmentLine, ...] = ()
    applied_total: Decimal = ZERO
    skipped_count: int = 0

    @property
    def applied_count(self) -> int:
        return len(self.lines) - self.skipped_count
