"""
Module: ledger_kernel.db.types
Responsibility: Column types and rounding helpers for money and
    unit-cost columns.  Centralizes precision and rounding so that every model
    and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and the subledger modules.

Invariants enforced:
    - Currency amounts carry 2 decimal places, unit and average costs 4.
    - round_money() and round_unit_cost() are the ONLY sanctioned rounding
      functions.  Both use ROUND_HALF_UP.
    - No floats.  Every amount is a Decimal.

Failure modes:
    - decimal.InvalidOperation when a non-numeric string is coerced.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric

# Column types.  Decimal already maps to MoneyType via Base.type_annotation_map.
MoneyType = Numeric(18, 2)
UnitCostType = Numeric(18, 4)

MONEY_DECIMAL_PLACES = 2
UNIT_COST_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")

_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
_UNIT_COST_QUANTUM = Decimal(1).scaleb(-UNIT_COST_DECIMAL_PLACES)


def to_decimal(value) -> Decimal:
    """Coerce int/str/Decimal to Decimal.  Floats are rejected."""
    if isinstance(value, float):
        raise TypeError("float amounts are not accepted; pass str or Decimal")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Quantize a currency amount to 2 places, half-up."""
    return to_decimal(value).quantize(_MONEY_QUANTUM, rounding=DEFAULT_ROUNDING)


def round_unit_cost(value: Decimal) -> Decimal:
    """Quantize a unit or average cost to 4 places, half-up."""
    return to_decimal(value).quantize(_UNIT_COST_QUANTUM, rounding=DEFAULT_ROUNDING)


def exceeds_money_precision(value: Decimal) -> bool:
    """True when the amount has more than 2 decimal places of significance."""
    return to_decimal(value) != round_money(value)
