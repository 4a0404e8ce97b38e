"""
Stripe billing webhook handler.

Reconciles submission access state from verified Stripe events:
- checkout.session.completed   -> approve the purchasing submission
- customer.subscription.updated -> approve or revoke by subscription id
- customer.subscription.deleted -> revoke by subscription id
- invoice.payment_failed       -> revoke (subscription id, else latest row for email)
- invoice.paid                 -> approve (subscription id, else latest row for email)

The email fallback never writes stripe_subscription_id; a row keeps the
subscription it was linked to at checkout.

There is no event deduplication table. Approve and revoke are both
idempotent, so redelivered events converge on the same row state.

Store failures are logged and reported in the result but never turned
into an error response; Stripe does not act on the response body.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from medicaidready.config.settings import GOOD_SUBSCRIPTION_STATUSES
from medicaidready.integrations.stripe.billing_client import (
    StripeBillingClient,
    StripeBillingError,
)
from medicaidready.integrations.stripe.events import (
    CheckoutSessionCompleted,
    SubscriptionUpdated,
    SubscriptionDeleted,
    InvoicePaymentFailed,
    InvoicePaid,
    StripeEvent,
    StripeEventDecodeError,
    decode_event,
)
from medicaidready.repositories.submission_repository import (
    SubmissionRepository,
    SubmissionStoreError,
    MirrorPatch,
)

logger = logging.getLogger(__name__)

SUBSCRIPTION_DELETED_REASON = "subscription_deleted"
INVOICE_PAYMENT_FAILED_REASON = "invoice_payment_failed"
INVOICE_PAYMENT_FAILED_EMAIL_REASON = "invoice_payment_failed_no_subscription_id"


@dataclass
class WebhookProcessingResult:
    """Result of webhook processing."""
    processed: bool
    message: str
    event_type: Optional[str] = None
    rows_updated: int = 0
    submission_id: Optional[str] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


def _build_patch(**fields) -> MirrorPatch:
    """MirrorPatch carrying only the fields that have a value."""
    return MirrorPatch(**{key: value for key, value in fields.items() if value is not None})


class StripeWebhookHandler:
    """
    Routes decoded Stripe events to submission approve/revoke operations.

    The billing client is optional: without it checkout completion still
    approves, but cannot mirror the live subscription status and period end.
    """

    def __init__(
        self,
        repository: SubmissionRepository,
        billing_client: Optional[StripeBillingClient] = None,
    ):
        self.repository = repository
        self.billing_client = billing_client

    def handle(self, payload: Dict[str, Any]) -> WebhookProcessingResult:
        """
        Decode and apply a verified webhook body.

        Unexpected exceptions propagate; the route turns them into a 500.
        """
        try:
            event = decode_event(payload)
        except StripeEventDecodeError as e:
            logger.warning(
                "Stripe event object did not decode",
                extra={"event_type": e.event_type, "stripe_event_id": e.event_id, "error": str(e)},
            )
            return WebhookProcessingResult(
                processed=False,
                message="Event object malformed",
                event_type=e.event_type,
                error="invalid_event_object",
            )

        try:
            result = self._dispatch(event)
        except SubmissionStoreError as e:
            logger.error(
                "Stripe webhook store write failed",
                extra={
                    "event_type": event.type,
                    "stripe_event_id": event.id,
                    "operation": e.operation,
                    "error": str(e),
                },
            )
            return WebhookProcessingResult(
                processed=False,
                message="Store write failed",
                event_type=event.type,
                error="store_error",
            )

        result.event_type = event.type
        logger.info(
            "Stripe webhook processed",
            extra={
                "event_type": event.type,
                "stripe_event_id": event.id,
                "processed": result.processed,
                "rows_updated": result.rows_updated,
                "skipped_reason": result.skipped_reason,
            },
        )
        return result

    def _dispatch(self, event: StripeEvent) -> WebhookProcessingResult:
        if isinstance(event, CheckoutSessionCompleted):
            return self._handle_checkout_completed(event)
        if isinstance(event, SubscriptionUpdated):
            return self._handle_subscription_updated(event)
        if isinstance(event, SubscriptionDeleted):
            return self._handle_subscription_deleted(event)
        if isinstance(event, InvoicePaymentFailed):
            return self._handle_invoice_payment_failed(event)
        if isinstance(event, InvoicePaid):
            return self._handle_invoice_paid(event)

        return WebhookProcessingResult(
            processed=False,
            message=f"Ignored event type: {event.type}",
            skipped_reason="unhandled_event_type",
        )

    # ------------------------------------------------------------------
    # checkout.session.completed
    # ------------------------------------------------------------------

    def _handle_checkout_completed(self, event: CheckoutSessionCompleted) -> WebhookProcessingResult:
        session = event.session
        if not session.is_paid:
            logger.info(
                "Checkout session completed without payment",
                extra={"checkout_session_id": session.id, "payment_status": session.payment_status},
            )
            return WebhookProcessingResult(
                processed=False,
                message="Checkout not paid",
                skipped_reason="payment_not_complete",
            )

        subscription_status = None
        period_end = None
        if session.subscription:
            subscription_status, period_end = self._fetch_subscription_state(session.subscription)
            subscription_status = subscription_status or "active"

        patch = _build_patch(
            stripe_customer_id=session.customer,
            stripe_subscription_id=session.subscription,
            stripe_subscription_status=subscription_status,
            stripe_current_period_end=period_end,
        )

        submission_id = session.metadata_submission_id
        if submission_id:
            rows = self.repository.approve(submission_id, patch)
            if rows == 0:
                logger.warning(
                    "Checkout submission_id matched no submission",
                    extra={"submission_id": submission_id, "checkout_session_id": session.id},
                )
                return WebhookProcessingResult(
                    processed=False,
                    message="Submission not found",
                    submission_id=submission_id,
                    skipped_reason="submission_not_found",
                )
            return WebhookProcessingResult(
                processed=True,
                message="Submission approved",
                rows_updated=rows,
                submission_id=submission_id,
            )

        email = session.email
        if not email:
            logger.warning(
                "Checkout session has no submission_id or email",
                extra={"checkout_session_id": session.id},
            )
            return WebhookProcessingResult(
                processed=False,
                message="No submission reference on session",
                skipped_reason="no_submission_reference",
            )

        approved_id = self.repository.approve_latest_by_email(email, patch)
        if approved_id is None:
            logger.warning(
                "No submission found for checkout email",
                extra={"checkout_session_id": session.id},
            )
            return WebhookProcessingResult(
                processed=False,
                message="Submission not found",
                skipped_reason="submission_not_found",
            )
        return WebhookProcessingResult(
            processed=True,
            message="Submission approved by email",
            rows_updated=1,
            submission_id=approved_id,
        )

    def _fetch_subscription_state(self, subscription_id: str):
        if self.billing_client is None:
            logger.warning(
                "Stripe client not configured; subscription state not mirrored",
                extra={"stripe_subscription_id": subscription_id},
            )
            return None, None
        try:
            snapshot = self.billing_client.retrieve_subscription(subscription_id)
        except StripeBillingError as e:
            logger.warning(
                "Subscription fetch failed during checkout reconciliation",
                extra={"stripe_subscription_id": subscription_id, "error": str(e)},
            )
            return None, None
        return snapshot.status, snapshot.current_period_end

    # ------------------------------------------------------------------
    # customer.subscription.*
    # ------------------------------------------------------------------

    def _handle_subscription_updated(self, event: SubscriptionUpdated) -> WebhookProcessingResult:
        subscription = event.subscription
        status = (subscription.status or "").strip().lower()
        patch = _build_patch(
            stripe_subscription_status=status or None,
            stripe_current_period_end=subscription.current_period_end,
        )

        if status in GOOD_SUBSCRIPTION_STATUSES:
            rows = self.repository.approve_by_subscription_id(subscription.id, patch)
            return WebhookProcessingResult(
                processed=rows > 0,
                message="Subscription active; access approved",
                rows_updated=rows,
                skipped_reason=None if rows else "submission_not_found",
            )

        reason = f"subscription_{status or 'not_active'}"
        rows = self.repository.revoke_by_subscription_id(subscription.id, reason, patch)
        return WebhookProcessingResult(
            processed=rows > 0,
            message=f"Subscription {status or 'not active'}; access revoked",
            rows_updated=rows,
            skipped_reason=None if rows else "submission_not_found",
        )

    def _handle_subscription_deleted(self, event: SubscriptionDeleted) -> WebhookProcessingResult:
        subscription = event.subscription
        patch = _build_patch(
            stripe_subscription_status="canceled",
            stripe_current_period_end=subscription.current_period_end,
        )
        rows = self.repository.revoke_by_subscription_id(
            subscription.id, SUBSCRIPTION_DELETED_REASON, patch
        )
        return WebhookProcessingResult(
            processed=rows > 0,
            message="Subscription deleted; access revoked",
            rows_updated=rows,
            skipped_reason=None if rows else "submission_not_found",
        )

    # ------------------------------------------------------------------
    # invoice.*
    # ------------------------------------------------------------------

    def _handle_invoice_payment_failed(self, event: InvoicePaymentFailed) -> WebhookProcessingResult:
        invoice = event.invoice

        if invoice.subscription:
            rows = self.repository.revoke_by_subscription_id(
                invoice.subscription,
                INVOICE_PAYMENT_FAILED_REASON,
                _build_patch(stripe_subscription_status="past_due"),
            )
            if rows:
                return WebhookProcessingResult(
                    processed=True,
                    message="Invoice payment failed; access revoked",
                    rows_updated=rows,
                )

        if not invoice.customer_email:
            logger.warning(
                "Invoice payment failed with no matching subscription or email",
                extra={"invoice_id": invoice.id, "stripe_subscription_id": invoice.subscription},
            )
            return WebhookProcessingResult(
                processed=False,
                message="No submission reference on invoice",
                skipped_reason="no_submission_reference",
            )

        revoked_id = self.repository.revoke_latest_by_email(
            invoice.customer_email,
            INVOICE_PAYMENT_FAILED_EMAIL_REASON,
            _build_patch(stripe_subscription_status="past_due"),
        )
        if revoked_id is None:
            logger.warning(
                "No submission found for failed invoice email",
                extra={"invoice_id": invoice.id},
            )
            return WebhookProcessingResult(
                processed=False,
                message="Submission not found",
                skipped_reason="submission_not_found",
            )
        return WebhookProcessingResult(
            processed=True,
            message="Invoice payment failed; access revoked by email",
            rows_updated=1,
            submission_id=revoked_id,
        )

    def _handle_invoice_paid(self, event: InvoicePaid) -> WebhookProcessingResult:
        invoice = event.invoice

        if invoice.subscription:
            rows = self.repository.approve_by_subscription_id(
                invoice.subscription,
                _build_patch(stripe_subscription_status="active"),
            )
            if rows:
                return WebhookProcessingResult(
                    processed=True,
                    message="Invoice paid; access approved",
                    rows_updated=rows,
                )

        if not invoice.customer_email:
            logger.warning(
                "Invoice paid with no matching subscription or email",
                extra={"invoice_id": invoice.id, "stripe_subscription_id": invoice.subscription},
            )
            return WebhookProcessingResult(
                processed=False,
                message="No submission reference on invoice",
                skipped_reason="no_submission_reference",
            )

        approved_id = self.repository.approve_latest_by_email(
            invoice.customer_email,
            _build_patch(stripe_subscription_status="active"),
        )
        if approved_id is None:
            logger.warning(
                "No submission found for paid invoice email",
                extra={"invoice_id": invoice.id},
            )
            return WebhookProcessingResult(
                processed=False,
                message="Submission not found",
                skipped_reason="submission_not_found",
            )
        return WebhookProcessingResult(
            processed=True,
            message="Invoice paid; access approved by email",
            rows_updated=1,
            submission_id=approved_id,
        )
