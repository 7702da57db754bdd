"""
Module: billing_kernel.db.types
Responsibility: Annotated column types and the single sanctioned rounding
    function for monetary values.
Architecture position: Kernel > DB.  May be imported by every layer.

Invariants enforced:
    - Every invoice amount is rounded half-up to 2 decimal places by
      round_money() before it is combined with any other amount.
    - No floats: rates and amounts entering the engine are converted with
      to_decimal(), which goes through str() so 0.12 stays 0.12.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Tax and withholding rates
Rate = Annotated[Decimal, Numeric(38, 18)]

# Monotonic sequence number
Sequence = Annotated[int, BigInteger]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]

INVOICE_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric input to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a numeric amount")
    return Decimal(str(value))


def round_money(
    value: Decimal | int | float | str,
    decimal_places: int = INVOICE_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary amount.

    Args:
        value: Amount to round.
        decimal_places: Number of decimal places (default 2).
        rounding: Decimal rounding mode (default ROUND_HALF_UP).

    Returns:
        Decimal quantized to ``decimal_places``.
    """
    quantizer = Decimal(1).scaleb(-decimal_places)
    return to_decimal(value).quantize(quantizer, rounding=rounding)
