"""
Module: tool_kernel.models.catalog_item
Responsibility: Mapping of the externally owned catalog_items table, used as
    a read-only lookup of default tool life and purchase price by SKU.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from decimal import Decimal

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tool_kernel.db.base import TrackedBase


class CatalogItem(TrackedBase):
    __tablename__ = "catalog_items"

    __table_args__ = (UniqueConstraint("sku", name="uq_catalog_item_sku"),)

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Default expected life copied onto new tool instances
    estimated_life: Mapped[Decimal | None] = mapped_column(nullable=True)

    unit_cost_hint: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<CatalogItem {self.sku}>"
