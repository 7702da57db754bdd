"""Invoices: generation, lifecycle, numbering and delivery."""

from billing_modules.invoicing.models import (
    NON_BLOCKING_STATUSES,
    BillingEntity,
    BillingModel,
    Contract,
    ContractStatus,
    EmailLog,
    EmailStatus,
    GenerationSource,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Partner,
    PaymentMethod,
)
from billing_modules.invoicing.numbering import generate_billing_no
from billing_modules.invoicing.recipients import (
    CustomBillTo,
    Recipient,
    is_valid_email,
    parse_emails,
    resolve_recipient,
)
from billing_modules.invoicing.workflows import (
    INVOICE_WORKFLOW,
    allowed_transitions,
    is_terminal,
)

__all__ = [
    "BillingEntity",
    "BillingModel",
    "Contract",
    "ContractStatus",
    "CustomBillTo",
    "EmailLog",
    "EmailStatus",
    "GenerationSource",
    "INVOICE_WORKFLOW",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "NON_BLOCKING_STATUSES",
    "Partner",
    "PaymentMethod",
    "Recipient",
    "allowed_transitions",
    "generate_billing_no",
    "is_terminal",
    "is_valid_email",
    "parse_emails",
    "resolve_recipient",
]
