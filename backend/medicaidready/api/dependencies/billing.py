"""
Billing client dependency.

The Stripe client is constructed per request from STRIPE_SECRET_KEY and
injected, so tests override get_billing_client instead of patching the
stripe module.
"""

from typing import Optional

from medicaidready.config.settings import get_stripe_secret_key
from medicaidready.integrations.stripe.billing_client import StripeBillingClient


def get_billing_client() -> Optional[StripeBillingClient]:
    """Stripe client, or None when STRIPE_SECRET_KEY is not configured."""
    api_key = get_stripe_secret_key()
    if not api_key:
        return None
    return StripeBillingClient(api_key)
