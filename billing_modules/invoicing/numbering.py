"""Billing number formatting (``billing_modules.invoicing.numbering``)."""

BILLING_NO_WIDTH = 10
DEFAULT_INVOICE_PREFIX = "INV"


def generate_billing_no(prefix: str | None, sequence: int) -> str:
    """``prefix`` followed by ``sequence`` zero-padded to 10 digits.

    >>> generate_billing_no("ABBA", 42)
    'ABBA0000000042'
    """
    if sequence < 1:
        raise ValueError(f"Invoice sequence must be positive, got {sequence}")
    return f"{prefix or DEFAULT_INVOICE_PREFIX}{str(sequence).zfill(BILLING_NO_WIDTH)}"
