"""
billing_modules -- Recurring billing domain modules.

Subpackages:
    tax            -- VAT / withholding calculation (pure)
    recurring      -- schedule date arithmetic, period guard, schedule lifecycle
    invoicing      -- invoice generation, lifecycle state machine, delivery
    follow_up      -- bounded follow-up escalation for sent invoices
    notifications  -- in-app notifications and the append-only audit log
    settings       -- configuration provider and template cache

Architecture:
    Modules import from billing_kernel only.  Persistence is reached through
    ``billing_modules.repository.BillingRepository``.
"""
