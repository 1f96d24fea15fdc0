"""Tests for provisional costing and the reconciliation plan (tool_kernel/domain/costing.py)."""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tool_kernel.db.types import round_money
from tool_kernel.domain.costing import (
    UsageLine,
    plan_reconciliation,
    provisional_cost,
    real_cost,
    real_unit_cost,
    to_decimal,
    validate_cost,
    validate_estimated_life,
    validate_quantity,
)
from tool_kernel.exceptions import InvalidCostError, InvalidQuantityError

QUANTUM = Decimal("0.000000001")
TOLERANCE = Decimal("0.01")


def _usage(quantity, provisional, work_order_id=None) -> UsageLine:
    return UsageLine(
        record_id=uuid4(),
        work_order_id=work_order_id or uuid4(),
        quantity=Decimal(quantity),
        provisional_cost=Decimal(provisional),
    )


class TestInputValidation:
    def test_float_rejected(self):
        with pytest.raises(InvalidQuantityError):
            to_decimal(1.5, "quantity_produced")

    def test_bool_rejected(self):
        with pytest.raises(InvalidQuantityError):
            to_decimal(True, "quantity_produced")

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "abc"])
    def test_non_finite_or_garbage_rejected(self, raw):
        with pytest.raises(InvalidQuantityError):
            to_decimal(raw, "quantity_produced")

    def test_int_and_string_accepted(self):
        assert to_decimal(3, "q") == Decimal("3")
        assert to_decimal(" 2.5 ", "q") == Decimal("2.5")

    @pytest.mark.parametrize("raw", ["0", "-1"])
    def test_quantity_must_be_positive(self, raw):
        with pytest.raises(InvalidQuantityError) as exc_info:
            validate_quantity(raw)
        assert exc_info.value.code == "INVALID_QUANTITY"

    def test_negative_cost_rejected(self):
        with pytest.raises(InvalidCostError):
            validate_cost("-0.01")

    def test_zero_cost_allowed(self):
        assert validate_cost("0") == Decimal("0")

    def test_estimated_life_optional_but_positive(self):
        assert validate_estimated_life(None) is None
        assert validate_estimated_life("100") == Decimal("100")
        with pytest.raises(InvalidQuantityError):
            validate_estimated_life("0")


class TestProvisionalCost:
    def test_proportional_to_estimated_life(self):
        assert provisional_cost(Decimal("10"), Decimal("100"), Decimal("50")) == Decimal("5")

    def test_no_estimated_life_costs_nothing(self):
        assert provisional_cost(Decimal("10"), None, Decimal("50")) == 0

    def test_quantized_to_nine_places_half_up(self):
        # 1 / 3 * 2 = 0.666...
        assert provisional_cost(Decimal("1"), Decimal("3"), Decimal("2")) == Decimal(
            "0.666666667"
        )


class TestRealCost:
    def test_real_unit_cost(self):
        assert real_unit_cost(Decimal("50"), Decimal("10")) == Decimal("5")

    def test_real_unit_cost_undefined_without_usage(self):
        assert real_unit_cost(Decimal("50"), Decimal("0")) is None

    def test_real_cost(self):
        assert real_cost(Decimal("10"), Decimal("50"), Decimal("10")) == Decimal("50")


class TestPlanReconciliation:
    def test_break_early_charges_remaining_cost(self):
        usage = _usage("10", "5")
        plan = plan_reconciliation(Decimal("50"), Decimal("10"), [usage])

        (line,) = plan.lines
        assert line.real_cost == Decimal("50")
        assert line.original_estimate == Decimal("5")
        assert line.adjustment == Decimal("45")
        assert line.applied
        assert plan.applied_total == Decimal("45")
        assert plan.real_unit_cost == Decimal("5")

    def test_outlived_estimate_refunds(self):
        # Estimated life 100, real life 200: each unit really cost half.
        usages = [_usage("100", "50"), _usage("100", "0")]
        plan = plan_reconciliation(Decimal("50"), Decimal("200"), usages)

        assert [line.adjustment for line in plan.lines] == [Decimal("-25"), Decimal("25")]
        assert plan.applied_total == 0

    def test_adjustments_within_tolerance_are_skipped(self):
        usage = _usage("10", "49.995")
        plan = plan_reconciliation(Decimal("50"), Decimal("10"), [usage])

        assert plan.skipped_count == 1
        assert plan.applied_lines == ()
        assert plan.applied_total == 0

    def test_zero_life_yields_empty_plan(self):
        plan = plan_reconciliation(Decimal("50"), Decimal("0"), [])
        assert plan.lines == ()
        assert plan.real_unit_cost is None

    def test_applied_in_work_order_order(self):
        usages = [_usage("1", "0") for _ in range(5)]
        plan = plan_reconciliation(Decimal("50"), Decimal("5"), usages)

        ordered = [str(line.work_order_id) for line in plan.applied_in_lock_order()]
        assert ordered == sorted(ordered)


# -----------------------------------------------------------------------------
# Properties
# -----------------------------------------------------------------------------

quantities = st.lists(
    st.integers(min_value=1, max_value=10_000).map(Decimal), min_size=1, max_size=20
)
costs = st.integers(min_value=0, max_value=1_000_000).map(lambda c: Decimal(c) / 100)
lives = st.integers(min_value=1, max_value=50_000).map(Decimal)


@settings(max_examples=200, deadline=None)
@given(quantities=quantities, initial_cost=costs, estimated_life=lives)
def test_conservation_after_reconciliation(quantities, initial_cost, estimated_life):
    """Provisional charges plus applied adjustments add back to initial_cost."""
    usages = [
        _usage(q, provisional_cost(q, estimated_life, initial_cost)) for q in quantities
    ]
    accumulated = sum(quantities, Decimal("0"))
    plan = plan_reconciliation(initial_cost, accumulated, usages, tolerance=TOLERANCE)

    charged = sum((u.provisional_cost for u in usages), Decimal("0")) + plan.applied_total
    bound = len(quantities) * (TOLERANCE + QUANTUM)
    assert abs(charged - initial_cost) <= bound


@settings(max_examples=200, deadline=None)
@given(quantities=quantities, initial_cost=costs)
def test_real_costs_sum_to_initial_cost(quantities, initial_cost):
    accumulated = sum(quantities, Decimal("0"))
    total = sum((real_cost(q, initial_cost, accumulated) for q in quantities), Decimal("0"))
    assert abs(total - initial_cost) <= len(quantities) * QUANTUM


@settings(max_examples=100, deadline=None)
@given(quantities=quantities, initial_cost=costs, estimated_life=lives)
def test_zero_tolerance_makes_charges_exact(quantities, initial_cost, estimated_life):
    usages = [
        _usage(q, provisional_cost(q, estimated_life, initial_cost)) for q in quantities
    ]
    accumulated = sum(quantities, Decimal("0"))
    plan = plan_reconciliation(initial_cost, accumulated, usages, tolerance=Decimal("0"))

    for usage, line in zip(usages, plan.lines):
        if line.applied:
            assert round_money(usage.provisional_cost + line.adjustment) == line.real_cost
        else:
            assert usage.provisional_cost == line.real_cost
