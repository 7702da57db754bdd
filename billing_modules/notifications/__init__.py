"""In-app notifications and the append-only audit trail."""

from billing_modules.notifications.models import (
    AuditAction,
    AuditEntry,
    Notification,
    NotificationType,
)
from billing_modules.notifications.service import AuditService, NotificationService

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditService",
    "Notification",
    "NotificationService",
    "NotificationType",
]
