"""Domain models for the tool kernel."""

from tool_kernel.models.catalog_item import CatalogItem
from tool_kernel.models.sequence_counter import SequenceCounter
from tool_kernel.models.tool_instance import ToolInstance
from tool_kernel.models.usage_record import UsageRecord
from tool_kernel.models.work_order import WorkOrder

__all__ = [
    "CatalogItem",
    "SequenceCounter",
    "ToolInstance",
    "UsageRecord",
    "WorkOrder",
]
