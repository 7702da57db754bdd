"""
Invoice recipient resolution (``billing_modules.invoicing.recipients``).

Responsibility
--------------
Decides who an invoice is addressed to.  Contracts billed through a
consolidated partner (GLOBE_INNOVE, RCBC_CONSOLIDATED) are addressed to the
partner; DIRECT partners and contracts without a partner use the
contract's own contact details; ad-hoc invoices use the caller's custom
recipient.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from uuid import UUID

from billing_modules.invoicing.models import BillingModel, Contract, Partner

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and _EMAIL_RE.match(value.strip()) is not None


def parse_emails(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated list, trimming blanks and dropping empties."""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def valid_emails(emails: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(e for e in emails if is_valid_email(e))


@dataclass(frozen=True)
class CustomBillTo:
    """Recipient for an ad-hoc invoice with no contract."""
    name: str
    attention: str | None = None
    address: str | None = None
    emails: str | None = None
    tin: str | None = None


@dataclass(frozen=True)
class Recipient:
    name: str
    attention: str | None
    address: str | None
    emails: tuple[str, ...]
    tin: str | None
    billing_model: BillingModel = BillingModel.DIRECT
    partner_id: UUID | None = None


def resolve_recipient(contract: Contract, partner: Partner | None = None) -> Recipient:
    """Addressee of an invoice billed against ``contract``."""
    if partner is not None and partner.billing_model.is_consolidated:
        return Recipient(
            name=partner.invoice_to or contract.company_name,
            attention=partner.attention,
            address=partner.address,
            emails=parse_emails(partner.emails),
            tin=contract.tin,
            billing_model=partner.billing_model,
            partner_id=partner.id,
        )
    return Recipient(
        name=contract.company_name,
        attention=contract.contact_person,
        address=contract.address,
        emails=parse_emails(contract.emails),
        tin=contract.tin,
        billing_model=partner.billing_model if partner else BillingModel.DIRECT,
        partner_id=partner.id if partner else None,
    )


def custom_recipient(bill_to: CustomBillTo) -> Recipient:
    return Recipient(
        name=bill_to.name,
        attention=bill_to.attention,
        address=bill_to.address,
        emails=parse_emails(bill_to.emails),
        tin=bill_to.tin,
    )
