"""Read-only query selectors."""

from tool_kernel.selectors.base import BaseSelector, coerce_uuid
from tool_kernel.selectors.reference_selector import CatalogSelector, WorkOrderSelector
from tool_kernel.selectors.tool_selector import ToolSelector, UsageSelector

__all__ = [
    "BaseSelector",
    "coerce_uuid",
    "CatalogSelector",
    "WorkOrderSelector",
    "ToolSelector",
    "UsageSelector",
]
