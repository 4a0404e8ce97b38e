"""
MedicaidReady API entry point.

    uvicorn main:app --host 0.0.0.0 --port 8000

Routes:
- /api/health, /api/env-check          open
- /api/stripe/webhook                  Stripe-Signature verified
- /api/stripe/create-checkout-session  open (signup)
- /api/stripe/resolve-submission       open (post-checkout redirect)
- /api/request-access                  open (intake)
- /api/providers                       subscriber gate on GET, admin on POST,
                                       behind the perimeter middleware
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from medicaidready.access.audit import get_access_audit_logger, shutdown_access_audit_logger
from medicaidready.api.dependencies.access import install_access_error_handler
from medicaidready.api.routes import (
    health,
    providers,
    request_access,
    stripe_checkout,
    webhooks_stripe,
)
from medicaidready.config.settings import (
    access_control_enabled,
    get_cors_origins,
    get_database_url,
    get_stripe_price_id,
    get_stripe_secret_key,
    get_stripe_webhook_secret,
    read_only_mode,
)
from medicaidready.database.session import dispose_engine
from medicaidready.middleware.perimeter import PerimeterMiddleware

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _log_configuration() -> bool:
    """Log which switches are set (never their values). Returns whether the DB is configured."""
    database_url = get_database_url()
    if database_url:
        host = database_url.split("@")[-1] if "@" in database_url else "(local)"
        logger.info("Database configured", extra={"database_host": host})
    else:
        logger.error("DATABASE_URL is not set; gated and billing routes will return 503")

    stripe_env = {
        "STRIPE_SECRET_KEY": bool(get_stripe_secret_key()),
        "STRIPE_WEBHOOK_SECRET": bool(get_stripe_webhook_secret()),
        "STRIPE_PRICE_ID": bool(get_stripe_price_id()),
    }
    if all(stripe_env.values()):
        logger.info("Stripe configured")
    else:
        missing = [name for name, present in stripe_env.items() if not present]
        logger.warning("Stripe not fully configured", extra={"missing_env": missing})

    if not access_control_enabled():
        logger.warning("ACCESS_CONTROL_ENABLED is off; every caller is treated as admin")
    if read_only_mode():
        logger.warning("READ_ONLY_MODE is on; provider writes are blocked")

    return bool(database_url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting MedicaidReady API")
    if _log_configuration():
        get_access_audit_logger().start()

    yield

    logger.info("Shutting down MedicaidReady API")
    shutdown_access_audit_logger()
    dispose_engine()


async def _unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": False, "error": "internal_error"},
    )


def create_app() -> FastAPI:
    application = FastAPI(
        title="MedicaidReady API",
        description="Subscription-gated Medicaid compliance tracking",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(PerimeterMiddleware)

    install_access_error_handler(application)
    application.add_exception_handler(Exception, _unhandled_exception)

    for module in (health, webhooks_stripe, stripe_checkout, request_access, providers):
        application.include_router(module.router)

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("ENV") == "development",
    )
