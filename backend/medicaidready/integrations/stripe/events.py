"""
Typed Stripe webhook events.

Verified webhook bodies are decoded into one model per event type the
app reacts to. Anything else becomes UnrecognizedEvent and is
acknowledged without side effects.

Expandable references (customer, subscription) are normalized to ids
and period ends to aware UTC datetimes during validation, so handlers
never look at raw payload shapes.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from medicaidready.access.expiry import parse_period_end

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
INVOICE_PAID = "invoice.paid"


class StripeEventDecodeError(Exception):
    """A known event type whose object did not match the expected shape."""

    def __init__(self, event_type: str, event_id: Optional[str], detail: str):
        super().__init__(f"{event_type}: {detail}")
        self.event_type = event_type
        self.event_id = event_id


def _expandable_to_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        object_id = value.get("id")
        return object_id if isinstance(object_id, str) and object_id else None
    return None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CustomerDetails(_StripeObject):
    email: Optional[str] = None


class CheckoutSessionObject(_StripeObject):
    id: str
    payment_status: Optional[str] = None
    client_reference_id: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None
    customer_email: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _coerce_expandable(cls, value):
        return _expandable_to_id(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value):
        return value or {}

    @property
    def is_paid(self) -> bool:
        return self.payment_status in ("paid", "no_payment_required")

    @property
    def metadata_submission_id(self) -> Optional[str]:
        return _clean_str(self.metadata.get("submission_id"))

    @property
    def email(self) -> Optional[str]:
        """customer_details.email, then customer_email, then metadata.email."""
        candidates = (
            self.customer_details.email if self.customer_details else None,
            self.customer_email,
            self.metadata.get("email"),
        )
        for candidate in candidates:
            cleaned = _clean_str(candidate)
            if cleaned:
                return cleaned.lower()
        return None


class SubscriptionObject(_StripeObject):
    id: str
    status: Optional[str] = None
    customer: Optional[str] = None
    current_period_end: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _period_end_from_items(cls, data):
        # Newer API versions only carry current_period_end on the items
        if isinstance(data, dict) and data.get("current_period_end") is None:
            items = data.get("items")
            items = items.get("data") if isinstance(items, dict) else None
            if items and isinstance(items, list) and isinstance(items[0], dict):
                data = {**data, "current_period_end": items[0].get("current_period_end")}
        return data

    @field_validator("customer", mode="before")
    @classmethod
    def _coerce_customer(cls, value):
        return _expandable_to_id(value)

    @field_validator("current_period_end", mode="before")
    @classmethod
    def _coerce_period_end(cls, value):
        return parse_period_end(value)


class InvoiceObject(_StripeObject):
    id: Optional[str] = None
    subscription: Optional[str] = None
    customer_email: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _subscription_from_parent(cls, data):
        # Newer API versions moved invoice.subscription under parent.subscription_details
        if isinstance(data, dict) and not data.get("subscription"):
            parent = data.get("parent")
            details = parent.get("subscription_details") if isinstance(parent, dict) else None
            if isinstance(details, dict) and details.get("subscription"):
                data = {**data, "subscription": details.get("subscription")}
        return data

    @field_validator("subscription", mode="before")
    @classmethod
    def _coerce_subscription(cls, value):
        return _expandable_to_id(value)

    @field_validator("customer_email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        cleaned = _clean_str(value)
        return cleaned.lower() if cleaned else None


class _StripeEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None


class CheckoutSessionCompleted(_StripeEvent):
    type: Literal["checkout.session.completed"] = CHECKOUT_SESSION_COMPLETED
    session: CheckoutSessionObject


class SubscriptionUpdated(_StripeEvent):
    type: Literal["customer.subscription.updated"] = SUBSCRIPTION_UPDATED
    subscription: SubscriptionObject


class SubscriptionDeleted(_StripeEvent):
    type: Literal["customer.subscription.deleted"] = SUBSCRIPTION_DELETED
    subscription: SubscriptionObject


class InvoicePaymentFailed(_StripeEvent):
    type: Literal["invoice.payment_failed"] = INVOICE_PAYMENT_FAILED
    invoice: InvoiceObject


class InvoicePaid(_StripeEvent):
    type: Literal["invoice.paid"] = INVOICE_PAID
    invoice: InvoiceObject


class UnrecognizedEvent(_StripeEvent):
    type: str


StripeEvent = Union[
    CheckoutSessionCompleted,
    SubscriptionUpdated,
    SubscriptionDeleted,
    InvoicePaymentFailed,
    InvoicePaid,
    UnrecognizedEvent,
]

# event type -> (model, name of the field holding data.object)
_EVENT_MODELS = {
    CHECKOUT_SESSION_COMPLETED: (CheckoutSessionCompleted, "session"),
    SUBSCRIPTION_UPDATED: (SubscriptionUpdated, "subscription"),
    SUBSCRIPTION_DELETED: (SubscriptionDeleted, "subscription"),
    INVOICE_PAYMENT_FAILED: (InvoicePaymentFailed, "invoice"),
    INVOICE_PAID: (InvoicePaid, "invoice"),
}


def decode_event(payload: Dict[str, Any]) -> StripeEvent:
    """
    Decode a verified webhook body into its typed variant.

    Raises:
        StripeEventDecodeError: known event type with a malformed object
    """
    event_type = str(payload.get("type") or "")
    event_id = payload.get("id")

    entry = _EVENT_MODELS.get(event_type)
    if entry is None:
        return UnrecognizedEvent(id=event_id, type=event_type)

    model, object_field = entry
    data = payload.get("data")
    data_object = data.get("object") if isinstance(data, dict) else None
    if not isinstance(data_object, dict):
        raise StripeEventDecodeError(event_type, event_id, "missing data.object")

    try:
        return model.model_validate({"id": event_id, object_field: data_object})
    except ValidationError as e:
        raise StripeEventDecodeError(event_type, event_id, str(e)) from e
