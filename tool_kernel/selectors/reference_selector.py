"""Lookups against externally owned tables (catalog items, work orders)."""

from uuid import UUID

from sqlalchemy import select

from tool_kernel.models.catalog_item import CatalogItem
from tool_kernel.models.work_order import WorkOrder
from tool_kernel.selectors.base import BaseSelector, coerce_uuid


class CatalogSelector(BaseSelector[CatalogItem]):
    def get_by_sku(self, sku: str) -> CatalogItem | None:
        return self.session.execute(
            select(CatalogItem).where(CatalogItem.sku == sku)
        ).scalar_one_or_none()


class WorkOrderSelector(BaseSelector[WorkOrder]):
    def get(self, work_order_id: UUID | str) -> WorkOrder | None:
        parsed = coerce_uuid(work_order_id)
        if parsed is None:
            return None
        # Cost columns change through bulk UPDATEs; always re-read the row.
        return self.session.get(WorkOrder, parsed, populate_existing=True)

    def get_by_code(self, code: str) -> WorkOrder | None:
        return self.session.execute(
            select(WorkOrder).where(WorkOrder.code == code).order_by(WorkOrder.created_at)
        ).scalars().first()
