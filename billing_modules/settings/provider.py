"""
SettingsProvider (``billing_modules.settings.provider``).

Responsibility
--------------
Single source of configuration for the engine: tax rates and withholding
defaults, scheduler cron/timezone, email switches, per-entity invoice
branding and follow-up email templates.

Precedence (last wins): built-in defaults, settings file (YAML), the
``billing_settings`` table, explicit overrides.

Architecture position
---------------------
**Modules layer** -- service.  Reads the database through the
BillingRepository protocol.  Owns two TTLCache instances (settings snapshot
and templates); both are invalidated explicitly after writes.

Failure modes
-------------
* InvalidSettingError when a stored value cannot be coerced or a rate is
  outside [0, 1).  Tax-rate-bearing values are never silently defaulted.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import UUID

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import InvalidSettingError
from billing_kernel.logging_config import get_logger
from billing_modules.follow_up.models import EmailTemplate, TemplateType
from billing_modules.settings.cache import TTLCache
from billing_modules.settings.loader import load_settings_file
from billing_modules.settings.models import SETTING_KEYS, BillingSettings, InvoiceBranding

if TYPE_CHECKING:
    from billing_modules.repository import BillingRepository

logger = get_logger("modules.settings.provider")

DEFAULT_CACHE_TTL_SECONDS = 300

_SETTINGS_KEY = "settings"
_RATE_FIELDS = frozenset({"vat_rate", "default_withholding_rate"})


def _default_values() -> dict[str, Any]:
    defaults = BillingSettings()
    return {key: getattr(defaults, name) for key, (name, _) in SETTING_KEYS.items()}


def _coerce(key: str, raw: Any, kind: type) -> Any:
    if raw is None:
        return None
    if kind is Decimal:
        if isinstance(raw, bool):
            raise InvalidSettingError(key, raw, "expected a number")
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            raise InvalidSettingError(key, raw, "expected a number") from None
    if kind is bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.lower() in ("true", "false"):
            return raw.lower() == "true"
        raise InvalidSettingError(key, raw, "expected true or false")
    if kind is int:
        if isinstance(raw, bool):
            raise InvalidSettingError(key, raw, "expected an integer")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise InvalidSettingError(key, raw, "expected an integer") from None
    return str(raw)


class SettingsProvider:
    """
    Cached, typed access to engine configuration.

    Contract:
        - ``get_settings()`` returns a BillingSettings snapshot, cached for
          ``ttl_seconds``.
        - ``set_setting()`` persists through the repository and invalidates
          the snapshot.
        - ``template_cache.invalidate(key)`` drops one cached template.
    """

    def __init__(
        self,
        repository: BillingRepository | None = None,
        clock: Clock | None = None,
        *,
        settings_file: Path | str | None = None,
        overrides: dict[str, Any] | None = None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._settings_file = Path(settings_file) if settings_file else None
        self._overrides = dict(overrides or {})
        self.settings_cache: TTLCache[Any] = TTLCache(self._clock, ttl_seconds)
        self.template_cache: TTLCache[Any] = TTLCache(self._clock, ttl_seconds)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def raw_values(self) -> dict[str, Any]:
        """Merged dotted-key values, uncached."""
        values = _default_values()
        if self._settings_file is not None:
            values.update(load_settings_file(self._settings_file))
        if self._repository is not None:
            values.update(self._repository.list_settings())
        values.update(self._overrides)
        return values

    def get_settings(self) -> BillingSettings:
        cached = self.settings_cache.get(_SETTINGS_KEY)
        if cached is not None:
            return cached

        raw = self.raw_values()
        kwargs: dict[str, Any] = {}
        for key, (name, kind) in SETTING_KEYS.items():
            value = _coerce(key, raw.get(key), kind)
            if value is None and name in _RATE_FIELDS:
                raise InvalidSettingError(key, value, "a rate is required")
            if name in _RATE_FIELDS and not (Decimal(0) <= value < Decimal(1)):
                raise InvalidSettingError(key, value, "rate must be in [0, 1)")
            kwargs[name] = value

        defaults = {f.name: f.default for f in fields(BillingSettings)}
        for name, value in list(kwargs.items()):
            if value is None and defaults[name] is not None:
                kwargs[name] = defaults[name]

        snapshot = BillingSettings(**kwargs)
        self.settings_cache.put(_SETTINGS_KEY, snapshot)
        logger.debug("settings_loaded", extra={"source_count": len(raw)})
        return snapshot

    def get(self, key: str, default: Any = None) -> Any:
        """Raw value for any dotted key, including ones without a typed field."""
        return self.raw_values().get(key, default)

    def set_setting(self, key: str, value: Any, actor_id: UUID) -> None:
        if self._repository is None:
            raise RuntimeError("SettingsProvider has no repository to persist to")
        if key in SETTING_KEYS:
            _coerce(key, value, SETTING_KEYS[key][1])
        self._repository.upsert_setting(key, value, actor_id)
        self.clear_cache()
        logger.info("setting_updated", extra={"key": key})

    def clear_cache(self) -> None:
        """Drop the cached settings snapshot (call after updating settings)."""
        self.settings_cache.clear()

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def get_branding(self, entity_code: str) -> InvoiceBranding:
        cache_key = f"branding:{entity_code}"
        cached = self.template_cache.get(cache_key)
        if cached is not None:
            return cached

        raw = self.get(f"branding.{entity_code}")
        if isinstance(raw, dict):
            known = {f.name for f in fields(InvoiceBranding)}
            branding = InvoiceBranding(**{k: v for k, v in raw.items() if k in known})
        else:
            branding = InvoiceBranding()
        self.template_cache.put(cache_key, branding)
        return branding

    def get_follow_up_template(self, billing_entity_id: UUID, level: int) -> EmailTemplate | None:
        """Entity-specific template for ``level``, else the global one, else None."""
        return self._get_template(billing_entity_id, TemplateType.FOLLOW_UP, level)

    def get_billing_template(self, billing_entity_id: UUID) -> EmailTemplate | None:
        return self._get_template(billing_entity_id, TemplateType.BILLING, None)

    def invalidate_templates(self, billing_entity_id: UUID | None = None) -> int:
        """Drop cached email templates for one entity, or all of them."""
        if billing_entity_id is None:
            return self.template_cache.invalidate_prefix("email:")
        return self.template_cache.invalidate_prefix(f"email:{billing_entity_id}:")

    def _get_template(
        self,
        billing_entity_id: UUID,
        template_type: TemplateType,
        level: int | None,
    ) -> EmailTemplate | None:
        cache_key = f"email:{billing_entity_id}:{template_type.value}:{level}"
        cached = self.template_cache.get(cache_key)
        if cached is not None:
            return cached
        if self._repository is None:
            return None

        template = self._repository.find_email_template(template_type, level, billing_entity_id)
        if template is None:
            template = self._repository.find_email_template(template_type, level, None)
        if template is not None:
            self.template_cache.put(cache_key, template)
        return template
