"""
Tool instance and usage ledger queries.

Key design decisions:
- Lock reads use ``SELECT ... FOR UPDATE`` ordered by id, so two
  transactions locking overlapping tool sets always lock in the same order.
- ``populate_existing`` on lock reads refreshes any instance already in the
  identity map with the row as of the lock.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from tool_kernel.db.types import round_money
from tool_kernel.models.tool_instance import ToolInstance
from tool_kernel.models.usage_record import UsageRecord
from tool_kernel.selectors.base import BaseSelector, coerce_uuid

_IN_USE = "in_use"
_AVAILABLE = ("new", "sharpened")


class ToolSelector(BaseSelector[ToolInstance]):
    """Selector for tool instances."""

    def get(self, tool_id: UUID | str, for_update: bool = False) -> ToolInstance | None:
        parsed = coerce_uuid(tool_id)
        if parsed is None:
            return None
        stmt = select(ToolInstance).where(ToolInstance.id == parsed)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_code(self, code: str) -> ToolInstance | None:
        return self.session.execute(
            select(ToolInstance).where(ToolInstance.code == code)
        ).scalar_one_or_none()

    def code_exists(self, code: str) -> bool:
        return self.session.execute(
            select(func.count()).select_from(ToolInstance).where(ToolInstance.code == code)
        ).scalar_one() > 0

    def mounted_on(self, machine_id: str, for_update: bool = False) -> list[ToolInstance]:
        """Tools currently IN_USE on ``machine_id``, ordered by id."""
        stmt = (
            select(ToolInstance)
            .where(
                ToolInstance.mounted_on == machine_id,
                ToolInstance.state == _IN_USE,
            )
            .order_by(ToolInstance.id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(self.session.execute(stmt).scalars().all())

    def available(self) -> list[ToolInstance]:
        """Tools that can be mounted (NEW or SHARPENED), ordered by code."""
        stmt = (
            select(ToolInstance)
            .where(ToolInstance.state.in_(_AVAILABLE))
            .order_by(ToolInstance.code)
        )
        return list(self.session.execute(stmt).scalars().all())


class UsageSelector(BaseSelector[UsageRecord]):
    """Selector for the usage ledger."""

    def for_tool(self, tool_id: UUID) -> list[UsageRecord]:
        """All usage records of a tool in recording order."""
        stmt = (
            select(UsageRecord)
            .where(UsageRecord.tool_instance_id == tool_id)
            .order_by(UsageRecord.recorded_at, UsageRecord.created_at, UsageRecord.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    def total_quantity(self, tool_id: UUID) -> Decimal:
        """Sum of quantity_produced over a tool's records."""
        total = self.session.execute(
            select(func.coalesce(func.sum(UsageRecord.quantity_produced), 0))
            .where(UsageRecord.tool_instance_id == tool_id)
        ).scalar_one()
        # Backends without native decimals sum as REAL; quantize to storage scale.
        return round_money(Decimal(str(total)))
