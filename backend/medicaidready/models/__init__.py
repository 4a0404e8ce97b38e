"""
Database models for submissions, access audit and providers.

Importing this package registers every table on Base.metadata.
"""

from medicaidready.models.base import Base, TimestampMixin
from medicaidready.models.submission import Submission, SubmissionStatus
from medicaidready.models.access_audit import ProviderAccessAudit
from medicaidready.models.provider import Provider, ChecklistItemStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "Submission",
    "SubmissionStatus",
    "ProviderAccessAudit",
    "Provider",
    "ChecklistItemStatus",
]
