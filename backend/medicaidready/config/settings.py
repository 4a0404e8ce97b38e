"""
Environment-driven settings.

Values are read on every call so tests (and operators flipping kill
switches) can change the environment without restarting the process.
"""

import os
from typing import Optional


GOOD_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})
ALLOWED_INTAKE_STATES = ("MD", "VA", "DC")
CHECKOUT_PRODUCT_CODE = "medicaidready_dmv_plan"
SUBMISSION_COOKIE_NAME = "submission_id"
SUBMISSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


def _flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() == "true"


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_database_url() -> Optional[str]:
    """
    Get and normalize the database URL from environment.

    Handles the postgres:// URL format by converting to postgresql://.
    """
    database_url = _optional("DATABASE_URL")
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def get_db_pool_settings() -> tuple[int, int]:
    """(pool_size, max_overflow) from DB_POOL_SIZE / DB_MAX_OVERFLOW."""
    try:
        pool_size = max(1, int(os.getenv("DB_POOL_SIZE", "5")))
        max_overflow = max(0, int(os.getenv("DB_MAX_OVERFLOW", "10")))
    except ValueError:
        return 5, 10
    return pool_size, max_overflow


def get_stripe_secret_key() -> Optional[str]:
    return _optional("STRIPE_SECRET_KEY")


def get_stripe_webhook_secret() -> Optional[str]:
    return _optional("STRIPE_WEBHOOK_SECRET")


def get_stripe_price_id() -> Optional[str]:
    return _optional("STRIPE_PRICE_ID")


def access_control_enabled() -> bool:
    """When disabled every caller is treated as an admin (local dev)."""
    return _flag("ACCESS_CONTROL_ENABLED")


def read_only_mode() -> bool:
    return _flag("READ_ONLY_MODE")


def get_basic_auth_credentials() -> Optional[tuple[str, str]]:
    """Return (user, password) when the Basic auth perimeter is configured."""
    user = os.getenv("BASIC_AUTH_USER")
    password = os.getenv("BASIC_AUTH_PASS")
    if not user or not password:
        return None
    return user, password


def is_production() -> bool:
    return os.getenv("ENV", "development").strip().lower() == "production"


def get_audit_queue_size() -> int:
    try:
        return max(1, int(os.getenv("ACCESS_AUDIT_QUEUE_SIZE", "10000")))
    except ValueError:
        return 10000


def get_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
