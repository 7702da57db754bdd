"""Tax calculation: VAT, withholding and net amounts."""

from billing_modules.tax.calculator import (
    DEFAULT_VAT_RATE,
    DEFAULT_WITHHOLDING_RATE,
    BillingAmounts,
    DiscountType,
    VatType,
    apply_discount,
    calculate_billing,
    format_amount,
    sum_amounts,
)
from billing_modules.tax.withholding import (
    DEFAULT_WITHHOLDING_CODE,
    WITHHOLDING_PRESETS,
    WithholdingPreset,
    get_withholding_preset,
)

__all__ = [
    "BillingAmounts",
    "DEFAULT_VAT_RATE",
    "DEFAULT_WITHHOLDING_CODE",
    "DEFAULT_WITHHOLDING_RATE",
    "DiscountType",
    "VatType",
    "WITHHOLDING_PRESETS",
    "WithholdingPreset",
    "apply_discount",
    "calculate_billing",
    "format_amount",
    "get_withholding_preset",
    "sum_amounts",
]
