"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from medicaidready.api.dependencies.access import (
    SubscriberAccessDenied,
    install_access_error_handler,
    get_submission_repository,
    get_audit_logger,
    require_subscriber_access,
)
from medicaidready.api.dependencies.billing import get_billing_client

__all__ = [
    "SubscriberAccessDenied",
    "install_access_error_handler",
    "get_submission_repository",
    "get_audit_logger",
    "require_subscriber_access",
    "get_billing_client",
]
