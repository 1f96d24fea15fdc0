"""Tests for the append-only usage ledger."""

from decimal import Decimal

import pytest

from tool_kernel.domain.tool_state import ToolState
from tool_kernel.exceptions import (
    InvalidQuantityError,
    ToolNotMountedError,
    ToolRetiredError,
)


class TestRecordUsage:
    def test_appends_record_and_advances_life(
        self, usage_ledger, mounted_tool, create_work_order, deterministic_clock
    ):
        tool = mounted_tool()
        work_order = create_work_order()

        record = usage_ledger.record_usage(
            tool, work_order.id, Decimal("10"), provisional_cost=Decimal("5")
        )

        assert record.tool_instance_id == tool.id
        assert record.work_order_id == work_order.id
        assert record.quantity_produced == Decimal("10")
        assert record.provisional_cost == Decimal("5")
        assert record.estimated_life_snapshot == Decimal("100")
        assert record.state_before == ToolState.IN_USE.value
        assert record.state_after == ToolState.IN_USE.value
        assert record.recorded_at == deterministic_clock.now()
        assert tool.accumulated_life == Decimal("10")

    def test_accumulated_life_matches_ledger(self, usage_ledger, mounted_tool, create_work_order):
        tool = mounted_tool()
        work_order = create_work_order()

        for quantity in ("3", "4.5", "2.5"):
            usage_ledger.record_usage(tool, work_order.id, Decimal(quantity), Decimal("0"))

        assert usage_ledger.total_produced(tool.id) == Decimal("10")
        assert tool.accumulated_life == Decimal("10")
        assert len(usage_ledger.list_usage(tool.id)) == 3

    def test_records_target_state(self, usage_ledger, mounted_tool, create_work_order):
        tool = mounted_tool()
        work_order = create_work_order()

        record = usage_ledger.record_usage(
            tool, work_order.id, Decimal("1"), Decimal("0"), state_after="broken"
        )

        assert record.state_after == ToolState.BROKEN.value
        # The ledger records the outcome; retiring the tool is not its job.
        assert tool.state == ToolState.IN_USE.value

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-3")])
    def test_quantity_must_be_positive(
        self, usage_ledger, mounted_tool, create_work_order, quantity
    ):
        tool = mounted_tool()

        with pytest.raises(InvalidQuantityError):
            usage_ledger.record_usage(tool, create_work_order().id, quantity, Decimal("0"))
        assert tool.accumulated_life == 0

    def test_unmounted_tool_rejected(
        self, usage_ledger, tool_registry, mounted_tool, create_work_order
    ):
        tool = mounted_tool()
        tool_registry.unmount_from_machine(tool.id)

        with pytest.raises(ToolNotMountedError):
            usage_ledger.record_usage(tool, create_work_order().id, Decimal("1"), Decimal("0"))

    def test_retired_tool_rejected(
        self, usage_ledger, tool_registry, mounted_tool, create_work_order
    ):
        tool = mounted_tool()
        tool_registry.set_state(tool.id, ToolState.BROKEN)

        with pytest.raises(ToolRetiredError):
            usage_ledger.record_usage(tool, create_work_order().id, Decimal("1"), Decimal("0"))

    def test_history_is_chronological(
        self, usage_ledger, mounted_tool, create_work_order, deterministic_clock
    ):
        tool = mounted_tool()
        work_order = create_work_order()
        for quantity in ("1", "2", "3"):
            usage_ledger.record_usage(tool, work_order.id, Decimal(quantity), Decimal("0"))
            deterministic_clock.advance(60)

        history = usage_ledger.list_usage(tool.id)

        assert [r.quantity_produced for r in history] == [Decimal("1"), Decimal("2"), Decimal("3")]
