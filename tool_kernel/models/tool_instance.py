"""
Module: tool_kernel.models.tool_instance
Responsibility: ORM persistence for physical cutting-tool instances: their
    cost basis, wear counters, lifecycle state and current machine mount.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - code is unique (uq_tool_instance_code).
    - accumulated_life never decreases (db/immutability.py).
    - A tool in BROKEN, WORN or LOST is frozen except for updated_at
      (db/immutability.py).
    - retired_at is set iff state is terminal; mounted_on is set only while
      state is IN_USE (maintained by ToolRegistry / ReconciliationEngine).

Failure modes:
    - IntegrityError on duplicate code.
    - ImmutabilityViolationError on modification of a retired tool.

Audit relevance:
    accumulated_life must equal the sum of the tool's UsageRecord quantities;
    ReconciliationEngine verifies this before redistributing cost.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tool_kernel.db.base import TrackedBase


class ToolInstance(TrackedBase):
    """
    One physical, individually tracked tool.

    ``state`` holds a ToolState value ("new", "in_use", "sharpened",
    "worn", "broken", "lost").
    """

    __tablename__ = "tool_instances"

    __table_args__ = (
        UniqueConstraint("code", name="uq_tool_instance_code"),
        Index("idx_tool_instance_state", "state"),
        Index("idx_tool_instance_mounted_on", "mounted_on"),
        Index("idx_tool_instance_catalog_item", "catalog_item_ref"),
    )

    # Human/barcode identifier, e.g. "FRESA-10-000001"
    code: Mapped[str] = mapped_column(String(100), nullable=False)

    # Catalog SKU this tool was bought as
    catalog_item_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    initial_cost: Mapped[Decimal] = mapped_column(nullable=False)

    # Units of work the tool is expected to last; None when unknown
    estimated_life: Mapped[Decimal | None] = mapped_column(nullable=True)

    accumulated_life: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    state: Mapped[str] = mapped_column(String(20), nullable=False, default="new")

    # Machine reference while IN_USE
    mounted_on: Mapped[str | None] = mapped_column(String(100), nullable=True)

    retired_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_retired(self) -> bool:
        return self.state in ("broken", "worn", "lost")

    @property
    def is_mounted(self) -> bool:
        return self.mounted_on is not None

    def __repr__(self) -> str:
        return f"<ToolInstance {self.code} {self.state}>"
