"""
Module: tool_kernel.models.work_order
Responsibility: Mapping of the externally owned work_orders table, limited to
    the columns the tool kernel reads or writes.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    cost_total == cost_materials + cost_labor + cost_overheads.  The kernel
    only ever changes cost_overheads and cost_total together, in a single
    atomic UPDATE (services/cost_accumulator.py).
"""

from decimal import Decimal

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from tool_kernel.db.base import TrackedBase


class WorkOrder(TrackedBase):
    """Production work order (cost columns only)."""

    __tablename__ = "work_orders"

    __table_args__ = (Index("idx_work_order_code", "code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    cost_materials: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cost_labor: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cost_overheads: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cost_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<WorkOrder {self.code} total={self.cost_total}>"
