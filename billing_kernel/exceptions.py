"""
Typed Exception Hierarchy for the Billing Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Billing errors reach three audiences: the sweep (which must isolate one
schedule's failure from the next), operators reading logs, and callers that
map errors onto API responses.  None of them should parse message strings.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        lifecycle.send(invoice_id, actor_id)
    except InvalidInvoiceTransitionError as e:
        log.warning("send_rejected", extra={"status": e.from_status})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingError (base)
    |
    +-- ConfigurationError          fatal to one operation, never defaulted
    |   +-- BillingEntityNotFoundError
    |   +-- ContractNotFoundError
    |   +-- PartnerNotFoundError
    |   +-- MissingTemplateError
    |   +-- InvalidSettingError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- ScheduledBillingNotFoundError
    |
    +-- StateError                  rejected before any side effect
    |   +-- InvalidInvoiceTransitionError
    |   +-- InvalidScheduleTransitionError
    |   +-- FollowUpNotAllowedError
    |   +-- DuplicatePeriodInvoiceError
    |   +-- SweepAlreadyRunningError
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidPaymentMethodError
    |   +-- MissingReasonError
    |   +-- NoRecipientEmailError
    |   +-- InvalidBillingDayError
    |
    +-- DeliveryError               transient I/O, recorded on the log row
        +-- EmailDeliveryError

===============================================================================
"""


class BillingError(Exception):
    """
    Base exception for all billing engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_ERROR"


# Configuration errors


class ConfigurationError(BillingError):
    """A required reference or setting is missing or unusable."""

    code: str = "CONFIGURATION_ERROR"


class BillingEntityNotFoundError(ConfigurationError):
    """Issuing billing entity does not exist."""

    code: str = "BILLING_ENTITY_NOT_FOUND"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Billing entity not found: {entity_id}")


class ContractNotFoundError(ConfigurationError):
    """Contract referenced by a schedule or request does not exist."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class PartnerNotFoundError(ConfigurationError):
    """Contract points at a billing partner that does not exist."""

    code: str = "PARTNER_NOT_FOUND"

    def __init__(self, partner_id: str, contract_id: str | None = None):
        self.partner_id = partner_id
        self.contract_id = contract_id
        super().__init__(f"Partner not found: {partner_id}")


class MissingTemplateError(ConfigurationError):
    """No follow-up template is configured for the requested level."""

    code: str = "MISSING_TEMPLATE"

    def __init__(self, level: int):
        self.level = level
        super().__init__(f"No follow-up template configured for level {level}")


class InvalidSettingError(ConfigurationError):
    """A setting value cannot be coerced to its declared type."""

    code: str = "INVALID_SETTING"

    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid setting {key}={value!r}: {reason}")


# Lookup errors


class NotFoundError(BillingError):
    """Base exception for lookups by id."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class ScheduledBillingNotFoundError(NotFoundError):
    code: str = "SCHEDULED_BILLING_NOT_FOUND"

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Scheduled billing not found: {schedule_id}")


# State errors


class StateError(BillingError):
    """Operation is not permitted in the entity's current state."""

    code: str = "STATE_ERROR"


class InvalidInvoiceTransitionError(StateError):
    """Invoice status does not allow the requested action."""

    code: str = "INVALID_INVOICE_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, action: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} invoice {invoice_id} in status {from_status}"
        )


class InvalidScheduleTransitionError(StateError):
    """Scheduled billing status does not allow the requested action."""

    code: str = "INVALID_SCHEDULE_TRANSITION"

    def __init__(self, schedule_id: str, from_status: str, action: str):
        self.schedule_id = schedule_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} scheduled billing {schedule_id} in status {from_status}"
        )


class FollowUpNotAllowedError(StateError):
    """Follow-up preconditions failed; ``reason`` is operator-facing."""

    code: str = "FOLLOW_UP_NOT_ALLOWED"

    def __init__(self, invoice_id: str, reason: str):
        self.invoice_id = invoice_id
        self.reason = reason
        super().__init__(reason)


class DuplicatePeriodInvoiceError(StateError):
    """A live invoice already exists for this schedule and period."""

    code: str = "DUPLICATE_PERIOD_INVOICE"

    def __init__(self, schedule_id: str, period_key: str):
        self.schedule_id = schedule_id
        self.period_key = period_key
        super().__init__(
            f"Scheduled billing {schedule_id} already invoiced for period {period_key}"
        )


# Validation errors


class ValidationError(BillingError):
    """Input rejected before any side effect."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value}")


class InvalidPaymentMethodError(ValidationError):
    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Invalid payment method: {method}")


class MissingReasonError(ValidationError):
    code: str = "MISSING_REASON"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A reason is required to {action}")


class NoRecipientEmailError(ValidationError):
    code: str = "NO_RECIPIENT_EMAIL"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"No valid recipient email for invoice {invoice_id}")


class InvalidBillingDayError(ValidationError):
    code: str = "INVALID_BILLING_DAY"

    def __init__(self, day: int):
        self.day = day
        super().__init__(f"Billing day of month must be between 1 and 31, got {day}")


# Delivery errors


class DeliveryError(BillingError):
    """Transient transport failure."""

    code: str = "DELIVERY_ERROR"


class EmailDeliveryError(DeliveryError):
    code: str = "EMAIL_DELIVERY_FAILED"

    def __init__(self, invoice_id: str, error: str):
        self.invoice_id = invoice_id
        self.error = error
        super().__init__(f"Email delivery failed for invoice {invoice_id}: {error}")


# Batch errors


class SweepAlreadyRunningError(StateError):
    """A sweep is already executing on this scheduler."""

    code: str = "SWEEP_ALREADY_RUNNING"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is already running")
