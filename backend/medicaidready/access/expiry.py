"""
Subscription expiry evaluation.

Webhooks can arrive late or not at all, so every gated read checks the
mirrored period end itself. A submission whose subscription still looks
good (active/trialing) but whose paid period has already ended is
revoked on the spot with reason "period_end_elapsed".

Period-end values are accepted in several shapes:
- datetime (naive values are treated as UTC)
- Unix milliseconds (> 1e12) or seconds (> 1e9), as numbers or digit strings
- ISO-8601 strings ("Z" suffix allowed)

Anything else parses to None, which means "no expiry constraint".
"""

import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from medicaidready.config.settings import GOOD_SUBSCRIPTION_STATUSES
from medicaidready.models.base import ensure_utc, utcnow
from medicaidready.models.submission import Submission
from medicaidready.repositories.submission_repository import (
    SubmissionRepository,
    SubmissionStoreError,
)

logger = logging.getLogger(__name__)

PERIOD_END_ELAPSED_REASON = "period_end_elapsed"

_MILLIS_THRESHOLD = 1e12
_SECONDS_THRESHOLD = 1e9


def _from_epoch(value: float) -> Optional[datetime]:
    if not math.isfinite(value):
        return None
    if value > _MILLIS_THRESHOLD:
        seconds = value / 1000.0
    elif value > _SECONDS_THRESHOLD:
        seconds = value
    else:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_period_end(value) -> Optional[datetime]:
    """Normalize a period-end value to an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            return _from_epoch(float(text))
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return None


def has_good_subscription_status(submission: Submission) -> bool:
    status = (submission.stripe_subscription_status or "").strip().lower()
    return status in GOOD_SUBSCRIPTION_STATUSES


def is_period_elapsed(submission: Submission, now: datetime) -> bool:
    if not has_good_subscription_status(submission):
        return False
    period_end = parse_period_end(submission.stripe_current_period_end)
    if period_end is None:
        return False
    return period_end < now


class ExpiryOutcome(str, Enum):
    NOT_EXPIRED = "not_expired"
    REVOKED = "revoked"
    REVOKE_FAILED = "revoke_failed"


class ExpiryEvaluator:
    """Auto-revokes submissions whose paid period has elapsed."""

    def __init__(
        self,
        repository: SubmissionRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self._clock = clock

    def evaluate(self, submission: Submission) -> ExpiryOutcome:
        now = self._clock()
        if not is_period_elapsed(submission, now):
            return ExpiryOutcome.NOT_EXPIRED

        try:
            self.repository.revoke_by_id(submission.id, PERIOD_END_ELAPSED_REASON)
        except SubmissionStoreError as e:
            logger.error(
                "Auto-revoke of expired submission failed",
                extra={"submission_id": submission.id, "error": str(e)},
            )
            return ExpiryOutcome.REVOKE_FAILED

        logger.info(
            "Submission auto-revoked after period end",
            extra={
                "submission_id": submission.id,
                "period_end": str(submission.stripe_current_period_end),
            },
        )
        return ExpiryOutcome.REVOKED
