"""
Subscriber access dependencies.

require_subscriber_access runs the access gate for the current request.
Admins skip the gate and produce no audit row. Denials are raised as
SubscriberAccessDenied and rendered by the handler installed with
install_access_error_handler as:

    {"ok": false, "error": <reason>, "message": <text>}
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from medicaidready.access.audit import AccessAuditLogger, get_access_audit_logger
from medicaidready.access.gate import AccessContext, AccessDecision, AccessGate
from medicaidready.access.identity import resolve_client_ip, resolve_submission_id
from medicaidready.access.roles import Role, get_role
from medicaidready.database.session import get_db_session
from medicaidready.repositories.submission_repository import SubmissionRepository

logger = logging.getLogger(__name__)


class SubscriberAccessDenied(Exception):
    """Raised by require_subscriber_access when the gate denies."""

    def __init__(self, decision: AccessDecision):
        super().__init__(decision.deny_reason)
        self.decision = decision


async def _access_denied_handler(request: Request, exc: SubscriberAccessDenied) -> JSONResponse:
    decision = exc.decision
    return JSONResponse(
        status_code=decision.http_status,
        content={"ok": False, "error": decision.deny_reason, "message": decision.message},
    )


def install_access_error_handler(app: FastAPI) -> None:
    app.add_exception_handler(SubscriberAccessDenied, _access_denied_handler)


def get_submission_repository(db: Session = Depends(get_db_session)) -> SubmissionRepository:
    return SubmissionRepository(db)


def get_audit_logger() -> AccessAuditLogger:
    return get_access_audit_logger()


def build_access_context(request: Request) -> AccessContext:
    return AccessContext(
        submission_id=resolve_submission_id(request),
        route=request.url.path,
        method=request.method,
        ip=resolve_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def require_subscriber_access(
    request: Request,
    repository: SubmissionRepository = Depends(get_submission_repository),
    audit: AccessAuditLogger = Depends(get_audit_logger),
) -> AccessDecision:
    """
    Dependency enforcing an approved, active, unexpired subscription.

    Raises:
        SubscriberAccessDenied: the gate denied access
    """
    if get_role(request) == Role.ADMIN:
        return AccessDecision(allowed=True)

    gate = AccessGate(repository, audit=audit)
    decision = gate.check_access(build_access_context(request))
    if not decision.allowed:
        raise SubscriberAccessDenied(decision)
    return decision
