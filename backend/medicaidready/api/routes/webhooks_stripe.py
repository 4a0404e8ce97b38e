"""
Stripe webhook endpoint.

SECURITY: Every event MUST pass Stripe-Signature verification before any
processing. Verification failures are rejected with 400 and change nothing.

Documentation: https://docs.stripe.com/webhooks#verify-official-libraries
"""

import json
import logging
from typing import Any, Dict

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from medicaidready.api.dependencies.access import get_submission_repository
from medicaidready.api.dependencies.billing import get_billing_client
from medicaidready.config.settings import get_stripe_webhook_secret
from medicaidready.repositories.submission_repository import SubmissionRepository
from medicaidready.services.billing_webhook_handler import StripeWebhookHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["webhooks"])

SIGNATURE_HEADER = "Stripe-Signature"


class WebhookResponse(BaseModel):
    """Standard webhook acknowledgement."""
    received: bool = True


def verify_stripe_webhook(payload: bytes, signature_header: str, secret: str) -> Dict[str, Any]:
    """
    Verify the Stripe-Signature header and parse the body.

    Args:
        payload: Raw request body bytes
        signature_header: Stripe-Signature header value
        secret: Endpoint signing secret (whsec_...)

    Returns:
        Parsed event body

    Raises:
        HTTPException: 400 if the signature or body is invalid
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Stripe webhook body is not UTF-8")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    try:
        stripe.WebhookSignature.verify_header(
            text,
            signature_header,
            secret,
            tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
        )
    except stripe.SignatureVerificationError as e:
        logger.warning("Invalid Stripe webhook signature", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        event = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON in Stripe webhook body")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid event")
    return event


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    repository: SubmissionRepository = Depends(get_submission_repository),
    billing_client=Depends(get_billing_client),
):
    """
    Reconcile submission access from a Stripe event.

    Returns 200 for every verified event, including ones that matched no
    submission. Only an unexpected failure during reconciliation returns 500.
    """
    secret = get_stripe_webhook_secret()
    if not secret:
        # Stripe sees the same rejection as a failed signature
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook verification not configured",
        )

    signature_header = request.headers.get(SIGNATURE_HEADER)
    if not signature_header:
        logger.warning("Missing Stripe-Signature header in webhook")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing signature",
        )

    body = await request.body()
    event = verify_stripe_webhook(body, signature_header, secret)

    handler = StripeWebhookHandler(repository, billing_client)
    try:
        await run_in_threadpool(handler.handle, event)
    except Exception as e:
        logger.exception(
            "Stripe webhook handler failed",
            extra={"stripe_event_id": event.get("id"), "event_type": event.get("type"), "error": str(e)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"received": False, "error": "webhook_handler_failed"},
        )

    return WebhookResponse()
