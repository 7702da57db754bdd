"""Settings ORM model (``billing_modules.settings.orm``)."""

from typing import Any

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class SettingModel(TrackedBase):
    """One dotted-key setting; ``value`` is any JSON value."""

    __tablename__ = "billing_settings"

    __table_args__ = (UniqueConstraint("key", name="uq_billing_settings_key"),)

    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<SettingModel {self.key}={self.value!r}>"
