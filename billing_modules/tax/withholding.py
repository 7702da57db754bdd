"""
Withholding tax presets.

ATC codes offered when configuring a schedule or contract.  The default code
is configurable through ``tax.defaultWithholdingCode``; this table only
supplies the rate and label for each known code.
"""

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_WITHHOLDING_CODE = "WC160"


@dataclass(frozen=True)
class WithholdingPreset:
    code: str
    rate: Decimal
    label: str


WITHHOLDING_PRESETS: tuple[WithholdingPreset, ...] = (
    WithholdingPreset("WC100", Decimal("0.01"), "1% - Services"),
    WithholdingPreset("WC160", Decimal("0.02"), "2% - Professional Services"),
    WithholdingPreset("WC058", Decimal("0.05"), "5% - Rentals"),
    WithholdingPreset("WC010", Decimal("0.10"), "10% - Professional Fees"),
)


def get_withholding_preset(code: str) -> WithholdingPreset | None:
    """Look up a preset by ATC code (case-insensitive)."""
    wanted = code.strip().upper()
    for preset in WITHHOLDING_PRESETS:
        if preset.code == wanted:
            return preset
    return None
