"""
Submission repository: the only writer of access state.

Encapsulates all database operations for submissions with:
- Single-statement approve/revoke updates (per-row atomicity)
- Revocation that never overwrites an earlier revocation
- Email lookups that pick the most recently created row

Storage failures are raised as SubmissionStoreError so callers can
tell "not found" (None / 0 rows) apart from "could not ask".
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medicaidready.models.base import utcnow
from medicaidready.models.submission import Submission, SubmissionStatus

logger = logging.getLogger(__name__)


class SubmissionStoreError(Exception):
    """Raised when the submission store cannot be read or written."""

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation


class MirrorPatch(BaseModel):
    """
    Stripe mirror fields to merge into a submission row.

    Only fields that were explicitly set are written, so an unset field
    leaves the column alone while an explicit None clears it.
    """

    model_config = ConfigDict(extra="forbid")

    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_subscription_status: Optional[str] = None
    stripe_current_period_end: Optional[datetime] = None

    def to_values(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class SubmissionRepository:
    """Repository for submission data access."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, submission_id: str) -> Optional[Submission]:
        try:
            return self.db.query(Submission).filter(
                Submission.id == submission_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(
                "Submission lookup failed",
                extra={"submission_id": submission_id, "error": str(e)},
            )
            raise SubmissionStoreError(str(e), operation="find_by_id") from e

    def find_latest_by_email(self, email: str) -> Optional[Submission]:
        """Most recently created row for the normalized email, if any."""
        normalized = normalize_email(email)
        if not normalized:
            return None
        try:
            return self.db.query(Submission).filter(
                Submission.email == normalized
            ).order_by(Submission.created_at.desc()).first()
        except SQLAlchemyError as e:
            logger.error(
                "Submission lookup by email failed",
                extra={"error": str(e)},
            )
            raise SubmissionStoreError(str(e), operation="find_latest_by_email") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        email: str,
        name: Optional[str] = None,
        organization: Optional[str] = None,
        state: Optional[str] = None,
        provider_type: Optional[str] = None,
    ) -> Submission:
        """Insert a pending submission row."""
        submission = Submission(
            email=normalize_email(email),
            name=name,
            organization=organization,
            state=state,
            provider_type=provider_type,
            status=SubmissionStatus.PENDING,
        )
        try:
            self.db.add(submission)
            self.db.commit()
            self.db.refresh(submission)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Submission insert failed", extra={"error": str(e)})
            raise SubmissionStoreError(str(e), operation="create") from e

        logger.info("Submission created", extra={"submission_id": submission.id})
        return submission

    def approve(self, submission_id: str, patch: Optional[MirrorPatch] = None) -> int:
        """
        Approve a single row and clear any revocation.

        Returns:
            Number of rows updated (0 when the id is unknown)
        """
        return self._approve_where(
            Submission.id == submission_id,
            patch,
            context={"submission_id": submission_id},
        )

    def approve_by_subscription_id(
        self, subscription_id: str, patch: Optional[MirrorPatch] = None
    ) -> int:
        """Approve every row carrying the Stripe subscription id."""
        return self._approve_where(
            Submission.stripe_subscription_id == subscription_id,
            patch,
            context={"stripe_subscription_id": subscription_id},
        )

    def approve_latest_by_email(
        self, email: str, patch: Optional[MirrorPatch] = None
    ) -> Optional[str]:
        """
        Approve only the most recently created row for the email.

        Returns:
            The approved submission id, or None when no row matched
        """
        latest = self.find_latest_by_email(email)
        if latest is None:
            return None
        updated = self.approve(latest.id, patch)
        return latest.id if updated else None

    def revoke_by_id(
        self,
        submission_id: str,
        reason: str,
        patch: Optional[MirrorPatch] = None,
    ) -> int:
        """Revoke a single row. An existing revocation keeps its time and reason."""
        return self._revoke_where(
            Submission.id == submission_id,
            reason,
            patch,
            context={"submission_id": submission_id},
        )

    def revoke_by_subscription_id(
        self,
        subscription_id: str,
        reason: str,
        patch: Optional[MirrorPatch] = None,
    ) -> int:
        """Revoke every row carrying the Stripe subscription id."""
        return self._revoke_where(
            Submission.stripe_subscription_id == subscription_id,
            reason,
            patch,
            context={"stripe_subscription_id": subscription_id},
        )

    def revoke_latest_by_email(
        self,
        email: str,
        reason: str,
        patch: Optional[MirrorPatch] = None,
    ) -> Optional[str]:
        """Revoke only the most recently created row for the email."""
        latest = self.find_latest_by_email(email)
        if latest is None:
            return None
        updated = self.revoke_by_id(latest.id, reason, patch)
        return latest.id if updated else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _approve_where(self, criterion, patch: Optional[MirrorPatch], context: dict) -> int:
        values = {
            Submission.status: SubmissionStatus.APPROVED,
            Submission.access_revoked_at: None,
            Submission.access_revoked_reason: None,
        }
        values.update(self._patch_values(patch))
        return self._execute_update(criterion, values, "approve", context)

    def _revoke_where(
        self, criterion, reason: str, patch: Optional[MirrorPatch], context: dict
    ) -> int:
        now = utcnow()
        values = {
            Submission.status: SubmissionStatus.REVOKED,
            Submission.access_revoked_at: func.coalesce(Submission.access_revoked_at, now),
            Submission.access_revoked_reason: case(
                (Submission.access_revoked_at.is_(None), reason),
                else_=Submission.access_revoked_reason,
            ),
        }
        values.update(self._patch_values(patch))
        return self._execute_update(criterion, values, "revoke", {**context, "reason": reason})

    @staticmethod
    def _patch_values(patch: Optional[MirrorPatch]) -> dict:
        if patch is None:
            return {}
        return {getattr(Submission, key): value for key, value in patch.to_values().items()}

    def _execute_update(self, criterion, values: dict, operation: str, context: dict) -> int:
        try:
            updated = self.db.query(Submission).filter(criterion).update(
                values, synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Submission {operation} failed",
                extra={**context, "error": str(e)},
            )
            raise SubmissionStoreError(str(e), operation=operation) from e

        if updated == 0:
            logger.warning(f"Submission {operation} matched no rows", extra=context)
        else:
            logger.info(
                f"Submission {operation} applied",
                extra={**context, "rows": updated},
            )
        return updated
