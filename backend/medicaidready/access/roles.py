"""
Caller roles.

With ACCESS_CONTROL_ENABLED unset every caller is an admin so local
development is never locked out. Once enabled the role comes from the
x-medicaidready-role header until a real identity provider is wired in.
"""

from enum import Enum

from starlette.requests import Request

from medicaidready.config.settings import access_control_enabled

ROLE_HEADER = "x-medicaidready-role"


class Role(str, Enum):
    VIEWER = "viewer"
    ANALYST = "analyst"
    ADMIN = "admin"


def get_role(request: Request) -> Role:
    if not access_control_enabled():
        return Role.ADMIN

    header = (request.headers.get(ROLE_HEADER) or "").strip().lower()
    if header == Role.ADMIN.value:
        return Role.ADMIN
    if header == Role.ANALYST.value:
        return Role.ANALYST
    return Role.VIEWER
