"""
Stripe Checkout signup routes.

POST /api/stripe/create-checkout-session
    Creates a pending submission and a Checkout session for it.
GET  /api/stripe/resolve-submission?session_id=cs_...
    After payment, maps the session back to its submission and stores the
    submission id in an HttpOnly cookie for the access gate.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from medicaidready.api.dependencies.access import get_submission_repository
from medicaidready.api.dependencies.billing import get_billing_client
from medicaidready.config.settings import (
    SUBMISSION_COOKIE_MAX_AGE,
    SUBMISSION_COOKIE_NAME,
    get_stripe_price_id,
    is_production,
)
from medicaidready.integrations.stripe.billing_client import StripeBillingClient
from medicaidready.repositories.submission_repository import SubmissionRepository
from medicaidready.services.checkout_service import CheckoutError, CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["billing"])

_CLIENT_ERROR_CODES = {
    "invalid_email": status.HTTP_400_BAD_REQUEST,
    "invalid_session_id": status.HTTP_400_BAD_REQUEST,
    "submission_id_not_found": status.HTTP_404_NOT_FOUND,
}


class CreateCheckoutSessionRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    organization: Optional[str] = None
    state: Optional[str] = None
    provider_type: Optional[str] = None


def _error_response(error: CheckoutError) -> JSONResponse:
    status_code = _CLIENT_ERROR_CODES.get(error.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(
            "Checkout flow failed",
            extra={"error_code": error.error_code, "error": str(error)},
        )
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": error.error_code, "message": str(error)},
    )


@router.post("/create-checkout-session")
async def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    request: Request,
    repository: SubmissionRepository = Depends(get_submission_repository),
    billing_client: Optional[StripeBillingClient] = Depends(get_billing_client),
):
    email = (body.email or "").strip().lower()
    if not email or "@" not in email:
        return _error_response(CheckoutError("invalid_email", "A valid email is required."))

    price_id = get_stripe_price_id()
    if billing_client is None or not price_id:
        return _error_response(
            CheckoutError(
                "checkout_session_create_failed",
                "Missing STRIPE_SECRET_KEY or STRIPE_PRICE_ID",
            )
        )

    origin = request.headers.get("origin") or f"{request.url.scheme}://{request.headers.get('host', 'localhost')}"
    service = CheckoutService(repository, billing_client, price_id)
    try:
        # Stripe SDK calls block; keep them off the event loop
        result = await run_in_threadpool(
            service.start_checkout,
            email=email,
            origin=origin,
            name=body.name,
            organization=body.organization,
            state=body.state,
            provider_type=body.provider_type,
        )
    except CheckoutError as e:
        return _error_response(e)

    return {"ok": True, "url": result.checkout_url, "submissionId": result.submission_id}


@router.get("/resolve-submission")
async def resolve_submission(
    session_id: str = Query(default=""),
    repository: SubmissionRepository = Depends(get_submission_repository),
    billing_client: Optional[StripeBillingClient] = Depends(get_billing_client),
):
    if billing_client is None:
        return _error_response(
            CheckoutError("resolve_submission_failed", "Missing STRIPE_SECRET_KEY")
        )

    service = CheckoutService(repository, billing_client, price_id=get_stripe_price_id() or "")
    try:
        resolved = await run_in_threadpool(service.resolve_submission, session_id)
    except CheckoutError as e:
        return _error_response(e)

    response = JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "ok": True,
            "submissionId": resolved.submission_id,
            "customer": resolved.customer_id,
            "subscription": resolved.subscription_id,
        },
    )
    response.set_cookie(
        key=SUBMISSION_COOKIE_NAME,
        value=resolved.submission_id,
        max_age=SUBMISSION_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=is_production(),
    )
    return response
