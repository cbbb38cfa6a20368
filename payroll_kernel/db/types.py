"""
Module: payroll_kernel.db.types
Responsibility: Annotated column types and the single rounding function for
    payroll amounts.

Invariants enforced:
    - No floats.  Every monetary column is Money (Numeric(38, 9)).
    - round_money() is the ONLY sanctioned rounding function.  Payroll figures
      are rounded to centavos with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Percentages and interest rates
Rate = Annotated[Decimal, Numeric(18, 6)]

# SHA-256 hex digest
PayloadHash = Annotated[str, String(64)]

# Closed-enumeration values and short codes
ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce an int, str or Decimal into a Decimal.

    Floats are rejected; they must be passed as strings.  NaN and infinities
    are not amounts.

    Raises:
        TypeError: If value is a float.
        decimal.InvalidOperation: If value is not a finite number.
    """
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    result = value if isinstance(value, Decimal) else Decimal(str(value))
    if not result.is_finite():
        raise InvalidOperation(f"Non-finite amount {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for payroll values.

    Preconditions: value is a Decimal.
    Postconditions: value quantized with the given rounding mode.
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)
