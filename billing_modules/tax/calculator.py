"""
Tax Calculator (``billing_modules.tax.calculator``).

Responsibility
--------------
Pure computation of service fee, VAT, gross, withholding and net amounts
from a base fee and a set of rate/flag inputs.

Architecture position
---------------------
**Modules layer** -- pure function.  Zero I/O, no clock, no session.

Invariants enforced
-------------------
- Every monetary output is rounded half-up to 2 decimal places on its own
  before it is combined with another amount.
- ``net_amount == gross_amount - withholding_tax`` exactly.
- Non-VAT clients always get ``vat_amount == 0`` and
  ``gross_amount == service_fee``.

Failure modes
-------------
- InvalidAmountError for a negative discount value.  Valid numeric input
  never raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from billing_kernel.db.types import round_money, to_decimal
from billing_kernel.exceptions import InvalidAmountError

DEFAULT_VAT_RATE = Decimal("0.12")
DEFAULT_WITHHOLDING_RATE = Decimal("0.02")

ZERO = Decimal("0.00")


class VatType(str, Enum):
    """VAT registration of the billed client."""

    VAT = "VAT"
    NON_VAT = "NON_VAT"


class DiscountType(str, Enum):
    """How a line-item discount value is interpreted."""

    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


@dataclass(frozen=True)
class BillingAmounts:
    """Result of one tax calculation.

    ``service_fee`` is the taxable fee after any discount.
    """

    service_fee: Decimal
    vat_amount: Decimal
    gross_amount: Decimal
    withholding_tax: Decimal
    net_amount: Decimal
    discount_amount: Decimal = ZERO


def apply_discount(
    service_fee: Decimal,
    discount_type: DiscountType | str | None,
    discount_value: Decimal | int | float | str | None,
) -> Decimal:
    """Return the rounded discount for ``service_fee``, never exceeding it."""
    if discount_type is None or discount_value is None:
        return ZERO

    value = to_decimal(discount_value)
    if value < 0:
        raise InvalidAmountError("discount_value", value)

    kind = DiscountType(discount_type)
    if kind is DiscountType.PERCENTAGE:
        discount = round_money(service_fee * value / Decimal(100))
    else:
        discount = round_money(value)

    return min(discount, service_fee)


def calculate_billing(
    amount: Decimal | int | float | str,
    *,
    is_vat_inclusive: bool = False,
    is_vat_client: bool = True,
    has_withholding: bool = False,
    withholding_rate: Decimal | float | str = DEFAULT_WITHHOLDING_RATE,
    vat_rate: Decimal | float | str = DEFAULT_VAT_RATE,
    discount_type: DiscountType | str | None = None,
    discount_value: Decimal | int | float | str | None = None,
) -> BillingAmounts:
    """
    Compute the full amount breakdown for one billable amount.

    Args:
        amount: Base fee (VAT-inclusive when ``is_vat_inclusive`` and the
            client is VAT-registered).
        is_vat_inclusive: Whether ``amount`` already contains VAT.
        is_vat_client: VAT classification of the client.
        has_withholding: Whether the client withholds tax.
        withholding_rate: Withholding rate as a fraction (0.02 = 2%).
        vat_rate: VAT rate as a fraction (0.12 = 12%).
        discount_type: Optional PERCENTAGE or FIXED discount.
        discount_value: Percentage points or fixed amount.

    Returns:
        BillingAmounts with each field rounded to 2 decimal places.
    """
    base = to_decimal(amount)
    rate = to_decimal(vat_rate)
    wht_rate = to_decimal(withholding_rate)

    if is_vat_client and is_vat_inclusive:
        fee = round_money(base / (Decimal(1) + rate))
    else:
        fee = round_money(base)

    discount = apply_discount(fee, discount_type, discount_value)
    fee = fee - discount

    vat = round_money(fee * rate) if is_vat_client else ZERO
    gross = fee + vat
    withholding = round_money(fee * wht_rate) if has_withholding else ZERO
    net = gross - withholding

    return BillingAmounts(
        service_fee=fee,
        vat_amount=vat,
        gross_amount=gross,
        withholding_tax=withholding,
        net_amount=net,
        discount_amount=discount,
    )


def sum_amounts(items: tuple[BillingAmounts, ...] | list[BillingAmounts]) -> BillingAmounts:
    """Invoice-level totals from independently calculated line items."""
    return BillingAmounts(
        service_fee=sum((i.service_fee for i in items), ZERO),
        vat_amount=sum((i.vat_amount for i in items), ZERO),
        gross_amount=sum((i.gross_amount for i in items), ZERO),
        withholding_tax=sum((i.withholding_tax for i in items), ZERO),
        net_amount=sum((i.net_amount for i in items), ZERO),
        discount_amount=sum((i.discount_amount for i in items), ZERO),
    )


def format_amount(amount: Decimal | int | float | str, symbol: str = "₱") -> str:
    """Render an amount for email bodies, e.g. ``₱11,200.00``."""
    return f"{symbol}{round_money(amount):,.2f}"
