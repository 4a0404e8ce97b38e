"""
Subscriber access control.

Identity resolution, role lookup, expiry evaluation, the access gate and
its audit sink.
"""

from medicaidready.access.identity import resolve_submission_id, resolve_client_ip
from medicaidready.access.roles import Role, get_role
from medicaidready.access.expiry import ExpiryEvaluator, ExpiryOutcome, parse_period_end
from medicaidready.access.audit import AccessAuditEvent, AccessAuditLogger
from medicaidready.access.gate import AccessGate, AccessContext, AccessDecision, DenyReason

__all__ = [
    "resolve_submission_id",
    "resolve_client_ip",
    "Role",
    "get_role",
    "ExpiryEvaluator",
    "ExpiryOutcome",
    "parse_period_end",
    "AccessAuditEvent",
    "AccessAuditLogger",
    "AccessGate",
    "AccessContext",
    "AccessDecision",
    "DenyReason",
]
