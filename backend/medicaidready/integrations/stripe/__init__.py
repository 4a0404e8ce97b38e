"""
Stripe integration: billing client and typed webhook events.
"""

from medicaidready.integrations.stripe.billing_client import (
    StripeBillingClient,
    StripeBillingError,
    SubscriptionSnapshot,
    CheckoutSessionLink,
    CheckoutSessionSnapshot,
)
from medicaidready.integrations.stripe.events import (
    StripeEvent,
    StripeEventDecodeError,
    CheckoutSessionCompleted,
    SubscriptionUpdated,
    SubscriptionDeleted,
    InvoicePaymentFailed,
    InvoicePaid,
    UnrecognizedEvent,
    decode_event,
)

__all__ = [
    "StripeBillingClient",
    "StripeBillingError",
    "SubscriptionSnapshot",
    "CheckoutSessionLink",
    "CheckoutSessionSnapshot",
    "StripeEvent",
    "StripeEventDecodeError",
    "CheckoutSessionCompleted",
    "SubscriptionUpdated",
    "SubscriptionDeleted",
    "InvoicePaymentFailed",
    "InvoicePaid",
    "UnrecognizedEvent",
    "decode_event",
]
