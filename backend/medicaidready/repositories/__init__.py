"""Repository layer for submissions and providers."""

from medicaidready.repositories.submission_repository import (
    SubmissionRepository,
    SubmissionStoreError,
    MirrorPatch,
    normalize_email,
)
from medicaidready.repositories.provider_repository import (
    ProviderRepository,
    ProviderRepositoryError,
)

__all__ = [
    "SubmissionRepository",
    "SubmissionStoreError",
    "MirrorPatch",
    "normalize_email",
    "ProviderRepository",
    "ProviderRepositoryError",
]
