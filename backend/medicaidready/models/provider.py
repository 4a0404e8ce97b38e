"""
Provider model for the compliance checklist surface.

Checklist items are stored as JSON: {key, title, status, updatedAt}.
"""

from sqlalchemy import Column, String, JSON

from medicaidready.models.base import Base, TimestampMixin


class ChecklistItemStatus(str):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class Provider(Base, TimestampMixin):
    """A provider organization tracked through Medicaid onboarding."""

    __tablename__ = "providers"

    id = Column(String(255), primary_key=True, comment="Slug or caller-supplied id")
    name = Column(String(255), nullable=False, default="Unknown Provider")
    meta = Column(JSON, nullable=False, default=dict)
    onboard = Column(JSON, nullable=False, default=dict)
    checklist = Column(JSON, nullable=False, default=list)

    @property
    def onboard_status(self) -> str:
        return (self.onboard or {}).get("status") or ChecklistItemStatus.NOT_STARTED

    def __repr__(self) -> str:
        return f"<Provider(id={self.id}, name={self.name})>"
