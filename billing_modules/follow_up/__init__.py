"""Follow-up escalation for sent, unpaid invoices."""

from billing_modules.follow_up.models import (
    EmailTemplate,
    FollowUpEligibility,
    FollowUpLog,
    FollowUpResult,
    FollowUpStatus,
    RenderedEmail,
    TemplateType,
)
from billing_modules.follow_up.templates import (
    PLACEHOLDERS,
    render_template,
    replace_placeholders,
)

__all__ = [
    "EmailTemplate",
    "FollowUpEligibility",
    "FollowUpLog",
    "FollowUpResult",
    "FollowUpStatus",
    "PLACEHOLDERS",
    "RenderedEmail",
    "TemplateType",
    "render_template",
    "replace_placeholders",
]
