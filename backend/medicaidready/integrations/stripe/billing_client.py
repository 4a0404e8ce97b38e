"""
Stripe billing client.

An explicitly constructed client: the API key is handed in at
construction and passed on every call, so nothing relies on the global
stripe.api_key. Routes receive an instance through a FastAPI dependency,
and tests substitute a mock.

Stripe objects are read through _field() rather than attribute access
because expandable fields may be ids or nested objects depending on the
call, and newer API versions moved some fields (period end lives on the
subscription items).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any, Dict

import stripe

from medicaidready.access.expiry import parse_period_end

logger = logging.getLogger(__name__)


class StripeBillingError(Exception):
    """Raised when a Stripe API call fails."""

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError, IndexError):
        return None


def _expandable_id(value: Any) -> Optional[str]:
    """Return the id of an expandable field whether it is a string or an object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    object_id = _field(value, "id")
    return object_id if isinstance(object_id, str) and object_id else None


def subscription_period_end(subscription: Any) -> Optional[datetime]:
    """current_period_end, falling back to the first subscription item's."""
    period_end = parse_period_end(_field(subscription, "current_period_end"))
    if period_end is not None:
        return period_end

    items = _field(_field(subscription, "items"), "data")
    if items:
        return parse_period_end(_field(items[0], "current_period_end"))
    return None


@dataclass
class SubscriptionSnapshot:
    """Live subscription state fetched from Stripe."""
    id: str
    status: Optional[str]
    current_period_end: Optional[datetime]
    customer_id: Optional[str] = None


@dataclass
class CheckoutSessionLink:
    """A freshly created Checkout session."""
    id: str
    url: Optional[str]


@dataclass
class CheckoutSessionSnapshot:
    """Fields of a completed Checkout session the app cares about."""
    id: str
    submission_id: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]


class StripeBillingClient:
    """Thin wrapper over the Stripe SDK bound to one API key."""

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError("Stripe API key is required")
        self.api_key = api_key

    def retrieve_subscription(self, subscription_id: str) -> SubscriptionSnapshot:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error(
                "Stripe subscription retrieve failed",
                extra={"stripe_subscription_id": subscription_id, "error": str(e)},
            )
            raise StripeBillingError(str(e), operation="retrieve_subscription") from e

        status = _field(subscription, "status")
        return SubscriptionSnapshot(
            id=_field(subscription, "id") or subscription_id,
            status=str(status) if status else None,
            current_period_end=subscription_period_end(subscription),
            customer_id=_expandable_id(_field(subscription, "customer")),
        )

    def create_checkout_session(
        self,
        price_id: str,
        email: str,
        submission_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSessionLink:
        """Create a subscription-mode Checkout session tied to a submission."""
        session_metadata = {"email": email, "submission_id": submission_id}
        session_metadata.update(metadata or {})

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                customer_email=email,
                client_reference_id=submission_id,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=session_metadata,
                subscription_data={"metadata": dict(session_metadata)},
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe checkout session create failed",
                extra={"submission_id": submission_id, "error": str(e)},
            )
            raise StripeBillingError(str(e), operation="create_checkout_session") from e

        return CheckoutSessionLink(id=_field(session, "id"), url=_field(session, "url"))

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionSnapshot:
        try:
            session = stripe.checkout.Session.retrieve(
                session_id,
                api_key=self.api_key,
                expand=["subscription", "customer"],
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe checkout session retrieve failed",
                extra={"checkout_session_id": session_id, "error": str(e)},
            )
            raise StripeBillingError(str(e), operation="retrieve_checkout_session") from e

        metadata_submission_id = _field(_field(session, "metadata"), "submission_id")
        client_reference_id = _field(session, "client_reference_id")
        submission_id = (
            (str(metadata_submission_id).strip() if metadata_submission_id else "")
            or (str(client_reference_id).strip() if client_reference_id else "")
        )

        return CheckoutSessionSnapshot(
            id=_field(session, "id") or session_id,
            submission_id=submission_id or None,
            customer_id=_expandable_id(_field(session, "customer")),
            subscription_id=_expandable_id(_field(session, "subscription")),
        )
