"""API route modules."""

from medicaidready.api.routes import health
from medicaidready.api.routes import webhooks_stripe
from medicaidready.api.routes import stripe_checkout
from medicaidready.api.routes import request_access
from medicaidready.api.routes import providers

__all__ = ["health", "webhooks_stripe", "stripe_checkout", "request_access", "providers"]
