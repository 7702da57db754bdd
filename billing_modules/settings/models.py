"""
Settings Domain Models (``billing_modules.settings.models``).

Typed view over the dotted-key settings store.  ``SETTING_KEYS`` is the
single table mapping each recognised key to its field and type.
"""

from dataclasses import dataclass
from decimal import Decimal

from billing_kernel.domain.calendar import DEFAULT_BUSINESS_TIMEZONE


@dataclass(frozen=True)
class BillingSettings:
    vat_rate: Decimal = Decimal("0.12")
    default_withholding_rate: Decimal = Decimal("0.02")
    default_withholding_code: str = "WC160"
    scheduler_enabled: bool = True
    scheduler_cron_expression: str = "0 8 * * *"
    scheduler_timezone: str = DEFAULT_BUSINESS_TIMEZONE
    scheduler_days_before_due: int = 15
    email_enabled: bool = True
    email_bcc_address: str | None = None
    email_reply_to: str | None = None
    invoice_default_prefix: str = "INV"


# dotted key -> (BillingSettings field, python type)
SETTING_KEYS: dict[str, tuple[str, type]] = {
    "tax.vatRate": ("vat_rate", Decimal),
    "tax.defaultWithholdingRate": ("default_withholding_rate", Decimal),
    "tax.defaultWithholdingCode": ("default_withholding_code", str),
    "scheduler.enabled": ("scheduler_enabled", bool),
    "scheduler.cronExpression": ("scheduler_cron_expression", str),
    "scheduler.timezone": ("scheduler_timezone", str),
    "scheduler.daysBeforeDue": ("scheduler_days_before_due", int),
    "email.enabled": ("email_enabled", bool),
    "email.bccAddress": ("email_bcc_address", str),
    "email.replyTo": ("email_reply_to", str),
    "invoice.defaultPrefix": ("invoice_default_prefix", str),
}


@dataclass(frozen=True)
class InvoiceBranding:
    """Per-entity look of the rendered invoice document."""
    primary_color: str = "#2563eb"
    secondary_color: str = "#1e40af"
    footer_bg_color: str = "#dbeafe"
    invoice_title: str = "Invoice"
    footer_text: str = ""
    show_disclaimer: bool = True
    logo_path: str | None = None
    notes: str | None = None
