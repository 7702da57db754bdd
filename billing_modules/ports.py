"""
External collaborator ports (``billing_modules.ports``).

Responsibility
--------------
Protocols for the outbound email transport and the invoice document
renderer, plus the value objects that cross those boundaries.  Concrete
SMTP and PDF implementations live outside this package; tests use
in-memory fakes.

Failure modes
-------------
* ``EmailSender.send`` reports transport failure in ``SendResult`` rather
  than raising.  Callers record the failure and never retry on their own.
* ``PdfRenderer.render_invoice_pdf`` may raise; the follow-up path logs and
  sends without an attachment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class EmailMessage:
    to: tuple[str, ...]
    subject: str
    text_body: str
    html_body: str
    attachments: tuple[EmailAttachment, ...] = ()
    bcc: tuple[str, ...] = ()
    reply_to: str | None = None


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> SendResult: ...


class PdfRenderer(Protocol):
    def render_invoice_pdf(self, invoice: Any, branding: Any) -> bytes: ...
