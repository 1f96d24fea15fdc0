"""
Module: tool_kernel.db.types
Responsibility: Precision constants and the rounding utility for fixed-point
    columns.  Column types themselves come from Base.type_annotation_map.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

CRITICAL: No floats anywhere in the tool kernel.  Costs and tool-life
quantities use Decimal with explicit precision.
"""

from decimal import Decimal, ROUND_HALF_UP

# Stored precision for costs; every persisted cost is quantized to this.
COST_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

# An adjustment must exceed this to be written to a work order.
DEFAULT_ADJUSTMENT_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a cost to the stored precision.

    This is the ONLY sanctioned rounding function for costs in the kernel.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
