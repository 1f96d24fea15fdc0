"""
Costing -- pure amortization math for tool cost allocation.

Responsibility:
    Provisional (estimated) cost of production against a tool, the real
    per-unit cost once the tool's life is known, and the per-record
    adjustment plan that moves every work order from its provisional charge
    to its real charge.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by
    CostEstimator and ReconciliationEngine; never touches the session.

Invariants enforced:
    - Decimal only.  Floats are rejected at the boundary (to_decimal).
    - Every cost leaving this module is quantized with round_money().
    - Conservation: sum(real_cost) over a tool's records equals initial_cost
      within one quantum per record.

Failure modes:
    - InvalidQuantityError / InvalidCostError for floats, non-finite values,
      and out-of-range inputs.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Iterable
from uuid import UUID

from tool_kernel.db.types import DEFAULT_ADJUSTMENT_TOLERANCE, ZERO, round_money
from tool_kernel.exceptions import InvalidCostError, InvalidQuantityError

# Working precision for intermediate products/quotients, wider than the
# Numeric(38, 9) storage so that quantizing is the only rounding step.
_WORKING_PRECISION = 60


def to_decimal(value: object, field: str, error: type = InvalidQuantityError) -> Decimal:
    """
    Convert an input to a finite Decimal.

    Accepts Decimal, int, and numeric strings.  Rejects float and bool.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise error(field, value, "must be a Decimal, int or numeric string, not float")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise error(field, value, "not a number") from None
    else:
        raise error(field, value, f"unsupported type {type(value).__name__}")

    if not result.is_finite():
        raise error(field, value, "must be finite")
    return result


def validate_quantity(value: object, field: str = "quantity_produced") -> Decimal:
    """Positive, finite quantity."""
    quantity = to_decimal(value, field)
    if quantity <= 0:
        raise InvalidQuantityError(field, value, "must be greater than zero")
    return quantity


def validate_cost(value: object, field: str = "initial_cost") -> Decimal:
    """Non-negative, finite cost."""
    cost = to_decimal(value, field, error=InvalidCostError)
    if cost < 0:
        raise InvalidCostError(field, value, "must not be negative")
    return cost


def validate_estimated_life(value: object, field: str = "estimated_life") -> Decimal | None:
    """None (unknown life) or a positive, finite quantity."""
    if value is None:
        return None
    life = to_decimal(value, field)
    if life <= 0:
        raise InvalidQuantityError(field, value, "must be greater than zero when set")
    return life


def provisional_cost(
    quantity: Decimal,
    estimated_life: Decimal | None,
    initial_cost: Decimal,
) -> Decimal:
    """
    Estimated cost of ``quantity`` units of work against a tool.

    quantity / estimated_life * initial_cost, or zero when the tool has no
    positive estimated life.
    """
    if estimated_life is None or estimated_life <= 0:
        return round_money(ZERO)
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return round_money(quantity / estimated_life * initial_cost)


def real_unit_cost(initial_cost: Decimal, accumulated_life: Decimal) -> Decimal | None:
    """initial_cost / accumulated_life, or None for a tool that never worked."""
    if accumulated_life <= 0:
        return None
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return round_money(initial_cost / accumulated_life)


def real_cost(quantity: Decimal, initial_cost: Decimal, accumulated_life: Decimal) -> Decimal:
    """
    Real cost of ``quantity`` units: quantity * initial_cost / accumulated_life.

    Computed from the unrounded unit cost so that per-record rounding error
    stays within one quantum.
    """
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return round_money(quantity * initial_cost / accumulated_life)


@dataclass(frozen=True)
class UsageLine:
    """Input to plan_reconciliation: one usage record's quantity and charge."""

    record_id: UUID
    work_order_id: UUID
    quantity: Decimal
    provisional_cost: Decimal


@dataclass(frozen=True)
class AdjustmentLine:
    """Planned correction for one usage record."""

    record_id: UUID
    work_order_id: UUID
    quantity: Decimal
    real_cost: Decimal
    original_estimate: Decimal
    adjustment: Decimal
    applied: bool


@dataclass(frozen=True)
class ReconciliationPlan:
    real_unit_cost: Decimal | None
    lines: tuple[AdjustmentLine, ...]

    @property
    def applied_lines(self) -> tuple[AdjustmentLine, ...]:
        return tuple(line for line in self.lines if line.applied)

    @property
    def applied_total(self) -> Decimal:
        return sum((line.adjustment for line in self.applied_lines), ZERO)

    @property
    def skipped_count(self) -> int:
        return sum(1 for line in self.lines if not line.applied)

    def applied_in_lock_order(self) -> list[AdjustmentLine]:
        """Applied lines sorted by work order id (stable within a work order)."""
        return sorted(self.applied_lines, key=lambda line: str(line.work_order_id))


def plan_reconciliation(
    initial_cost: Decimal,
    accumulated_life: Decimal,
    usages: Iterable[UsageLine],
    tolerance: Decimal = DEFAULT_ADJUSTMENT_TOLERANCE,
) -> ReconciliationPlan:
    """
    Build the adjustment plan for a retiring tool.

    For each usage: real_cost = quantity * initial_cost / accumulated_life,
    adjustment = real_cost - provisional_cost.  A line is applied only when
    |adjustment| > tolerance.  A tool with zero accumulated life yields an
    empty plan.
    """
    if accumulated_life <= 0:
        return ReconciliationPlan(real_unit_cost=None, lines=())

    lines: list[AdjustmentLine] = []
    for usage in usages:
        actual = real_cost(usage.quantity, initial_cost, accumulated_life)
        estimate = round_money(usage.provisional_cost)
        adjustment = actual - estimate
        lines.append(
            AdjustmentLine(
                record_id=usage.record_id,
                work_order_id=usage.work_order_id,
                quantity=usage.quantity,
                real_cost=actual,
                original_estimate=estimate,
                adjustment=adjustment,
                applied=abs(adjustment) > tolerance,
            )
        )

    return ReconciliationPlan(
        real_unit_cost=real_unit_cost(initial_cost, accumulated_life),
        lines=tuple(lines),
    )
