"""
Provider access audit model.

Append-only: one row per gate evaluation for a non-admin caller whose
submission id resolved. Rows are never updated or deleted by the app.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Text

from medicaidready.models.base import Base, generate_uuid, utcnow


class ProviderAccessAudit(Base):
    """Outcome of a single access-gate evaluation."""

    __tablename__ = "provider_access_audit"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    submission_id = Column(String(36), nullable=False, index=True)
    route = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False)
    allowed = Column(Boolean, nullable=False)
    reason = Column(String(100), nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<ProviderAccessAudit(submission_id={self.submission_id}, "
            f"allowed={self.allowed}, reason={self.reason})>"
        )
