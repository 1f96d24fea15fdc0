"""
Pure domain layer.

State machine, costing math, clock and DTOs with NO dependencies on the
ORM session or on I/O.
"""

from tool_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from tool_kernel.domain.costing import (
    AdjustmentLine,
    ReconciliationPlan,
    UsageLine,
    plan_reconciliation,
    provisional_cost,
    real_unit_cost,
)
from tool_kernel.domain.dtos import (
    ProductionAllocation,
    ReconciliationReport,
    ToolInstanceInfo,
    UsageRecordInfo,
    WorkOrderCostSnapshot,
)
from tool_kernel.domain.results import OperationResult
from tool_kernel.domain.tool_state import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ToolState,
    parse_state,
    validate_transition,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AdjustmentLine",
    "ReconciliationPlan",
    "UsageLine",
    "plan_reconciliation",
    "provisional_cost",
    "real_unit_cost",
    "ProductionAllocation",
    "ReconciliationReport",
    "ToolInstanceInfo",
    "UsageRecordInfo",
    "WorkOrderCostSnapshot",
    "OperationResult",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "ToolState",
    "parse_state",
    "validate_transition",
]
