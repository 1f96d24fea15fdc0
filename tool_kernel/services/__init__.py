"""Kernel services: flush-only components and the transactional facade."""

from tool_kernel.services.base import BaseService
from tool_kernel.services.cost_accumulator import WorkOrderCostAccumulator
from tool_kernel.services.cost_estimator import CostEstimator
from tool_kernel.services.reconciliation_engine import ReconciliationEngine
from tool_kernel.services.sequence_service import SequenceService
from tool_kernel.services.tool_lifecycle_service import ToolLifecycleService
from tool_kernel.services.tool_registry import ToolRegistry
from tool_kernel.services.usage_ledger import UsageLedger

__all__ = [
    "BaseService",
    "WorkOrderCostAccumulator",
    "CostEstimator",
    "ReconciliationEngine",
    "SequenceService",
    "ToolLifecycleService",
    "ToolRegistry",
    "UsageLedger",
]
