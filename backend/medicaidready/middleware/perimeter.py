"""
Perimeter middleware for provider paths.

Applies to /providers and /api/providers:
- READ_ONLY_MODE=true blocks provider API writes with 403 read_only_mode
- when BASIC_AUTH_USER and BASIC_AUTH_PASS are set, HTTP Basic
  credentials are required (401 with a WWW-Authenticate challenge)

Both switches are read per request so they can be flipped without a
redeploy.
"""

import base64
import binascii
import hmac
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from medicaidready.config.settings import get_basic_auth_credentials, read_only_mode

logger = logging.getLogger(__name__)

PROTECTED_PREFIXES = ("/providers", "/api/providers")
PROVIDERS_API_PREFIX = "/api/providers"
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
BASIC_REALM = 'Basic realm="MedicaidReady"'


def _credentials_match(header: str, user: str, password: str) -> bool:
    if not header.startswith("Basic "):
        return False
    try:
        decoded = base64.b64decode(header[len("Basic "):], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    supplied_user, _, supplied_password = decoded.partition(":")
    return hmac.compare_digest(supplied_user.encode(), user.encode()) and hmac.compare_digest(
        supplied_password.encode(), password.encode()
    )


class PerimeterMiddleware(BaseHTTPMiddleware):
    """Read-only kill switch and optional Basic auth in front of provider paths."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if (
            read_only_mode()
            and path.startswith(PROVIDERS_API_PREFIX)
            and request.method.upper() in WRITE_METHODS
        ):
            logger.info("Provider write blocked by read-only mode", extra={"path": path})
            return JSONResponse(
                status_code=403,
                content={
                    "ok": False,
                    "error": "read_only_mode",
                    "message": "Writes are disabled (READ_ONLY_MODE=true).",
                },
            )

        if not path.startswith(PROTECTED_PREFIXES):
            return await call_next(request)

        credentials = get_basic_auth_credentials()
        if credentials is None:
            return await call_next(request)

        user, password = credentials
        if not _credentials_match(request.headers.get("authorization", ""), user, password):
            logger.warning("Basic auth rejected", extra={"path": path})
            return Response(
                content="Authentication required",
                status_code=401,
                headers={"WWW-Authenticate": BASIC_REALM},
            )

        return await call_next(request)
