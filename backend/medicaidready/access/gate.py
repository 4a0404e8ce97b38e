"""
Access gate for protected provider data.

Decides whether the calling submission may read protected data. Checks
run in a fixed order and the first failing check decides the outcome:

1. missing identity                 -> 403 missing_submission_id
2. store error / unknown id         -> 500 access_gate_lookup_failed / 403 submission_not_found
3. revoked                          -> 403 access_revoked
4. not approved                     -> 403 not_approved
5. paid period elapsed (auto-revoke)-> 403 subscription_period_ended / 500 access_auto_revoke_failed
6. subscription not active/trialing -> 403 subscription_inactive

Every evaluation with a resolved submission id is sent to the audit sink.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import status

from medicaidready.access.audit import AccessAuditEvent, AccessAuditLogger
from medicaidready.access.expiry import (
    ExpiryEvaluator,
    ExpiryOutcome,
    has_good_subscription_status,
)
from medicaidready.models.submission import SubmissionStatus
from medicaidready.repositories.submission_repository import (
    SubmissionRepository,
    SubmissionStoreError,
)

logger = logging.getLogger(__name__)


class DenyReason:
    MISSING_SUBMISSION_ID = "missing_submission_id"
    LOOKUP_FAILED = "access_gate_lookup_failed"
    SUBMISSION_NOT_FOUND = "submission_not_found"
    ACCESS_REVOKED = "access_revoked"
    NOT_APPROVED = "not_approved"
    PERIOD_ENDED = "subscription_period_ended"
    AUTO_REVOKE_FAILED = "access_auto_revoke_failed"
    SUBSCRIPTION_INACTIVE = "subscription_inactive"


ALLOWED_AUDIT_REASON = "allowed"

DENY_MESSAGES = {
    DenyReason.MISSING_SUBMISSION_ID: "A valid submission_id is required for provider access.",
    DenyReason.LOOKUP_FAILED: "Access state could not be loaded.",
    DenyReason.SUBMISSION_NOT_FOUND: "submission_id not found.",
    DenyReason.ACCESS_REVOKED: "Access is revoked.",
    DenyReason.NOT_APPROVED: "Access is not approved.",
    DenyReason.PERIOD_ENDED: "Subscription period ended. Access revoked.",
    DenyReason.AUTO_REVOKE_FAILED: "Failed to auto-revoke expired access.",
    DenyReason.SUBSCRIPTION_INACTIVE: "Subscription must be active or trialing.",
}


@dataclass
class AccessContext:
    """Request metadata the gate needs; built by the route dependency."""

    submission_id: Optional[str]
    route: str
    method: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class AccessDecision:
    """Outcome of an access check."""

    allowed: bool
    submission_id: Optional[str] = None
    deny_reason: Optional[str] = None
    http_status: int = status.HTTP_200_OK

    @property
    def message(self) -> Optional[str]:
        if self.deny_reason is None:
            return None
        return DENY_MESSAGES.get(self.deny_reason)

    @classmethod
    def allow(cls, submission_id: str) -> "AccessDecision":
        return cls(allowed=True, submission_id=submission_id)

    @classmethod
    def deny(
        cls,
        reason: str,
        submission_id: Optional[str] = None,
        http_status: int = status.HTTP_403_FORBIDDEN,
    ) -> "AccessDecision":
        return cls(
            allowed=False,
            submission_id=submission_id,
            deny_reason=reason,
            http_status=http_status,
        )


class AccessGate:
    """
    Subscriber access gate.

    The only writer on the expiry path: auto-revocation happens through
    the ExpiryEvaluator this gate owns.
    """

    def __init__(
        self,
        repository: SubmissionRepository,
        audit: Optional[AccessAuditLogger] = None,
        expiry: Optional[ExpiryEvaluator] = None,
    ):
        self.repository = repository
        self.audit = audit
        self.expiry = expiry or ExpiryEvaluator(repository)

    def check_access(self, context: AccessContext) -> AccessDecision:
        decision = self._evaluate(context.submission_id)

        if decision.submission_id:
            self._record(context, decision)

        if not decision.allowed:
            logger.warning(
                "Provider access denied",
                extra={
                    "submission_id": decision.submission_id,
                    "deny_reason": decision.deny_reason,
                    "route": context.route,
                },
            )
        return decision

    def _evaluate(self, submission_id: Optional[str]) -> AccessDecision:
        if not submission_id:
            return AccessDecision.deny(DenyReason.MISSING_SUBMISSION_ID)

        try:
            submission = self.repository.find_by_id(submission_id)
        except SubmissionStoreError:
            return AccessDecision.deny(
                DenyReason.LOOKUP_FAILED,
                submission_id,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if submission is None:
            return AccessDecision.deny(DenyReason.SUBMISSION_NOT_FOUND, submission_id)

        if submission.access_revoked_at is not None:
            return AccessDecision.deny(DenyReason.ACCESS_REVOKED, submission_id)

        if (submission.status or "").strip().lower() != SubmissionStatus.APPROVED:
            return AccessDecision.deny(DenyReason.NOT_APPROVED, submission_id)

        outcome = self.expiry.evaluate(submission)
        if outcome == ExpiryOutcome.REVOKED:
            return AccessDecision.deny(DenyReason.PERIOD_ENDED, submission_id)
        if outcome == ExpiryOutcome.REVOKE_FAILED:
            return AccessDecision.deny(
                DenyReason.AUTO_REVOKE_FAILED,
                submission_id,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if not has_good_subscription_status(submission):
            return AccessDecision.deny(DenyReason.SUBSCRIPTION_INACTIVE, submission_id)

        return AccessDecision.allow(submission_id)

    def _record(self, context: AccessContext, decision: AccessDecision) -> None:
        if self.audit is None:
            return
        self.audit.record(
            AccessAuditEvent(
                submission_id=decision.submission_id,
                route=context.route,
                method=context.method,
                allowed=decision.allowed,
                reason=ALLOWED_AUDIT_REASON if decision.allowed else decision.deny_reason,
                ip=context.ip,
                user_agent=context.user_agent,
            )
        )
