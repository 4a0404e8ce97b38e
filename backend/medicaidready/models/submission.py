"""
Submission model: one row per access request / subscription signup.

A submission is the unit of access. The Stripe columns mirror billing
state and are only written through SubmissionRepository.

CRITICAL: access_revoked_at set means access is denied regardless of
status or the mirrored subscription status.
"""

from sqlalchemy import Column, String, DateTime, Enum, Index

from medicaidready.models.base import Base, TimestampMixin, generate_uuid


class SubmissionStatus(str):
    """Submission status values."""
    PENDING = "pending"
    APPROVED = "approved"
    REVOKED = "revoked"


class Submission(Base, TimestampMixin):
    """
    Access request and subscription mirror for a single account.

    Email is not unique: the same address can appear on several rows, and
    email-based lookups always pick the most recently created row.
    """

    __tablename__ = "request_access_submissions"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # Intake fields
    name = Column(String(255), nullable=True)
    organization = Column(String(255), nullable=True)
    email = Column(
        String(320),
        nullable=False,
        index=True,
        comment="Normalized (trimmed, lower-cased) contact email"
    )
    state = Column(String(2), nullable=True)
    provider_type = Column(String(100), nullable=True)

    status = Column(
        Enum(
            SubmissionStatus.PENDING,
            SubmissionStatus.APPROVED,
            SubmissionStatus.REVOKED,
            name="submission_status",
        ),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )

    # Stripe mirror fields
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(
        String(255),
        nullable=True,
        index=True,
        comment="Stripe subscription id; stable once set"
    )
    stripe_subscription_status = Column(
        String(50),
        nullable=True,
        comment="Mirrors Stripe lifecycle status (active, trialing, past_due, ...)"
    )
    stripe_current_period_end = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of the currently paid interval"
    )

    # Revocation
    access_revoked_at = Column(DateTime(timezone=True), nullable=True)
    access_revoked_reason = Column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_request_access_submissions_email_created", "email", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Submission(id={self.id}, status={self.status}, "
            f"subscription_status={self.stripe_subscription_status})>"
        )
