"""
Module: tool_kernel.models.usage_record
Responsibility: ORM persistence for the append-only tool usage ledger.  One
    row per (tool, work order, production event).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py).
    - quantity_produced > 0 (ck_usage_quantity_positive).
    - Sum of quantity_produced per tool equals ToolInstance.accumulated_life.

Audit relevance:
    estimated_life_snapshot and provisional_cost record exactly what was
    charged to the work order at the time.  Reconciliation adjusts against
    provisional_cost, so later edits to a tool's estimated life cannot break
    cost conservation.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tool_kernel.db.base import TrackedBase, UUIDString


class UsageRecord(TrackedBase):
    """Immutable record of production attributed to one tool."""

    __tablename__ = "tool_usage_records"

    __table_args__ = (
        CheckConstraint("quantity_produced > 0", name="ck_usage_quantity_positive"),
        Index("idx_usage_tool_recorded", "tool_instance_id", "recorded_at"),
        Index("idx_usage_work_order", "work_order_id"),
    )

    tool_instance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tool_instances.id"),
        nullable=False,
    )

    # External work order reference; the work_orders table is owned elsewhere
    work_order_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity_produced: Mapped[Decimal] = mapped_column(nullable=False)

    state_before: Mapped[str] = mapped_column(String(20), nullable=False)
    state_after: Mapped[str] = mapped_column(String(20), nullable=False)

    estimated_life_snapshot: Mapped[Decimal | None] = mapped_column(nullable=True)

    provisional_cost: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<UsageRecord tool={self.tool_instance_id} "
            f"wo={self.work_order_id} qty={self.quantity_produced}>"
        )
