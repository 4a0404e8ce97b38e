"""
Health and configuration checks.

Both endpoints bypass the access gate and only report whether switches
are configured, never their values.
"""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from medicaidready.config.settings import (
    access_control_enabled,
    get_basic_auth_credentials,
    read_only_mode,
)

router = APIRouter(prefix="/api", tags=["health"])

SERVICE_NAME = "medicaidready-api"

REQUIRED_ENV_SWITCHES = (
    "BASIC_AUTH_USER",
    "BASIC_AUTH_PASS",
    "READ_ONLY_MODE",
    "ACCESS_CONTROL_ENABLED",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health():
    return {
        "ok": True,
        "service": SERVICE_NAME,
        "authEnabled": get_basic_auth_credentials() is not None,
        "accessControlEnabled": access_control_enabled(),
        "readOnlyMode": read_only_mode(),
        "timestamp": _now_iso(),
    }


@router.get("/env-check")
async def env_check():
    """200 when every perimeter switch is set, 500 otherwise."""
    checks = {name: bool((os.getenv(name) or "").strip()) for name in REQUIRED_ENV_SWITCHES}
    ok = all(checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ok else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": ok, "checks": checks, "timestamp": _now_iso()},
    )
