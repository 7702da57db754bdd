"""Engine configuration: typed settings, branding and email templates."""

from billing_modules.settings.cache import TTLCache
from billing_modules.settings.models import SETTING_KEYS, BillingSettings, InvoiceBranding
from billing_modules.settings.provider import SettingsProvider

__all__ = [
    "BillingSettings",
    "InvoiceBranding",
    "SETTING_KEYS",
    "SettingsProvider",
    "TTLCache",
]
