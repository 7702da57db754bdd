"""
Email template rendering (``billing_modules.follow_up.templates``).

Templates carry ``{{placeholder}}`` markers in their subject, greeting,
body and closing.  Rendering is pure string substitution; unknown markers
are left untouched so a typo shows up in the sent mail instead of
silently vanishing.
"""

from __future__ import annotations

import html
import re
from datetime import date
from typing import Mapping

from billing_modules.follow_up.models import EmailTemplate, RenderedEmail
from billing_modules.tax.calculator import format_amount

PLACEHOLDERS = (
    "customerName",
    "billingNo",
    "dueDate",
    "totalAmount",
    "periodStart",
    "periodEnd",
    "companyName",
    "clientCompanyName",
    "daysOverdue",
)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def format_long_date(day: date | None) -> str:
    """``January 5, 2026``; empty for None."""
    if day is None:
        return ""
    return f"{day:%B} {day.day}, {day.year}"


def replace_placeholders(text: str, values: Mapping[str, str]) -> str:
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        return values[key] if key in values else match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, text or "")


def placeholder_values(
    invoice,
    *,
    company_name: str,
    due_date: date,
    period_start: date | None,
    period_end: date | None,
    days_overdue: int,
) -> dict[str, str]:
    """Values for every supported placeholder.  Dates are business-local."""
    return {
        "customerName": invoice.customer_name,
        "billingNo": invoice.billing_no or str(invoice.id)[:8],
        "dueDate": format_long_date(due_date),
        "totalAmount": format_amount(invoice.net_amount),
        "periodStart": format_long_date(period_start),
        "periodEnd": format_long_date(period_end),
        "companyName": company_name,
        "clientCompanyName": invoice.customer_name,
        "daysOverdue": str(days_overdue),
    }


def text_to_html(text: str) -> str:
    """Escape ``text`` and turn blank-line paragraphs and newlines into HTML."""
    paragraphs = [p for p in re.split(r"\n\s*\n", text.strip()) if p.strip()]
    return "\n".join(
        f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs
    )


def wrap_html(inner: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n<head><meta charset=\"UTF-8\"></head>\n"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">\n"
        f"<div style=\"max-width: 600px; margin: 0 auto; padding: 20px;\">\n{inner}\n</div>\n"
        "</body>\n</html>"
    )


def render_template(template: EmailTemplate, values: Mapping[str, str]) -> RenderedEmail:
    """Subject plus text and HTML bodies (greeting, body, closing)."""
    parts = [
        replace_placeholders(template.greeting, values),
        replace_placeholders(template.body, values),
        replace_placeholders(template.closing, values),
    ]
    text_body = "\n\n".join(parts)
    return RenderedEmail(
        subject=replace_placeholders(template.subject, values),
        text_body=text_body,
        html_body=wrap_html(text_to_html(text_body)),
    )
