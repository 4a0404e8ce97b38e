"""
Subscription signup service.

Signup creates the submission row before talking to Stripe so the
Checkout session can carry a stable submission_id. The webhook later
uses that id to approve exactly this row.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from medicaidready.config.settings import CHECKOUT_PRODUCT_CODE
from medicaidready.integrations.stripe.billing_client import (
    StripeBillingClient,
    StripeBillingError,
)
from medicaidready.repositories.submission_repository import (
    SubmissionRepository,
    SubmissionStoreError,
    normalize_email,
)

logger = logging.getLogger(__name__)

DEFAULT_STATE = "MD"
DEFAULT_PROVIDER_TYPE = "home_health"


class CheckoutError(Exception):
    """Raised when signup cannot complete; error_code is returned to the caller."""

    def __init__(self, error_code: str, message: str):
        super().__init__(message)
        self.error_code = error_code


@dataclass
class CheckoutStartResult:
    submission_id: str
    checkout_url: Optional[str]
    checkout_session_id: str


@dataclass
class ResolvedSubmission:
    submission_id: str
    customer_id: Optional[str]
    subscription_id: Optional[str]


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class CheckoutService:
    """Creates submissions and their Stripe Checkout sessions."""

    def __init__(
        self,
        repository: SubmissionRepository,
        billing_client: StripeBillingClient,
        price_id: str,
    ):
        self.repository = repository
        self.billing_client = billing_client
        self.price_id = price_id

    def start_checkout(
        self,
        email: str,
        origin: str,
        name: Optional[str] = None,
        organization: Optional[str] = None,
        state: Optional[str] = None,
        provider_type: Optional[str] = None,
    ) -> CheckoutStartResult:
        """
        Insert a pending submission then open a Checkout session for it.

        Missing intake fields fall back to values derived from the email.

        Raises:
            CheckoutError: request_access_insert_failed or checkout_session_create_failed
        """
        email = normalize_email(email)
        local_part = email.split("@")[0].strip() or "subscriber"

        try:
            submission = self.repository.create(
                email=email,
                name=_clean(name) or local_part,
                organization=_clean(organization) or f"{local_part} org",
                state=_clean(state) or DEFAULT_STATE,
                provider_type=_clean(provider_type) or DEFAULT_PROVIDER_TYPE,
            )
        except SubmissionStoreError as e:
            raise CheckoutError("request_access_insert_failed", str(e)) from e

        origin = origin.rstrip("/")
        try:
            session = self.billing_client.create_checkout_session(
                price_id=self.price_id,
                email=email,
                submission_id=submission.id,
                success_url=f"{origin}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{origin}/checkout/cancel",
                metadata={"product": CHECKOUT_PRODUCT_CODE},
            )
        except StripeBillingError as e:
            raise CheckoutError("checkout_session_create_failed", str(e)) from e

        logger.info(
            "Checkout session created",
            extra={"submission_id": submission.id, "checkout_session_id": session.id},
        )
        return CheckoutStartResult(
            submission_id=submission.id,
            checkout_url=session.url,
            checkout_session_id=session.id,
        )

    def resolve_submission(self, session_id: str) -> ResolvedSubmission:
        """
        Map a completed Checkout session back to its submission id.

        Raises:
            CheckoutError: invalid_session_id, resolve_submission_failed
                or submission_id_not_found
        """
        session_id = _clean(session_id)
        if not session_id.startswith("cs_"):
            raise CheckoutError("invalid_session_id", "Checkout session id must start with cs_")

        try:
            snapshot = self.billing_client.retrieve_checkout_session(session_id)
        except StripeBillingError as e:
            raise CheckoutError("resolve_submission_failed", str(e)) from e

        if not snapshot.submission_id:
            raise CheckoutError(
                "submission_id_not_found",
                "No submission_id found on Stripe session.",
            )

        return ResolvedSubmission(
            submission_id=snapshot.submission_id,
            customer_id=snapshot.customer_id,
            subscription_id=snapshot.subscription_id,
        )
