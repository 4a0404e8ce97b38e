"""
Provider list and creation.

Progress is computed from the stored checklist on every read rather
than persisted.
"""

import re
import time
from dataclasses import dataclass
from typing import Optional, List, Dict, Any

from medicaidready.models.base import utcnow
from medicaidready.models.provider import Provider, ChecklistItemStatus
from medicaidready.repositories.provider_repository import ProviderRepository

DEFAULT_CHECKLIST = (
    ("provider_profile", "Provider profile completed"),
    ("credentialing", "Credentialing verified"),
    ("enrollment", "Enrollment documents submitted"),
    ("compliance_training", "Compliance training completed"),
    ("attestation", "Attestation signed"),
)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return slug.strip("-")


def build_default_checklist() -> List[Dict[str, Any]]:
    updated_at = utcnow().isoformat()
    return [
        {
            "key": key,
            "title": title,
            "status": ChecklistItemStatus.NOT_STARTED,
            "updatedAt": updated_at,
        }
        for key, title in DEFAULT_CHECKLIST
    ]


def compute_progress(checklist) -> Dict[str, int]:
    items = checklist if isinstance(checklist, list) else []
    statuses = [item.get("status") for item in items if isinstance(item, dict)]
    total = len(items)
    complete = statuses.count(ChecklistItemStatus.COMPLETE)
    return {
        "total": total,
        "complete": complete,
        "inProgress": statuses.count(ChecklistItemStatus.IN_PROGRESS),
        "notStarted": statuses.count(ChecklistItemStatus.NOT_STARTED),
        "percentComplete": 0 if total == 0 else round(complete / total * 100),
    }


def serialize_provider(provider: Provider) -> Dict[str, Any]:
    return {
        "id": provider.id,
        "createdAt": provider.created_at.isoformat() if provider.created_at else None,
        "updatedAt": provider.updated_at.isoformat() if provider.updated_at else None,
        "meta": provider.meta or {},
        "onboardStatus": provider.onboard_status,
        "progress": compute_progress(provider.checklist),
    }


@dataclass
class ProviderCreateResult:
    provider: Provider
    created: bool


class ProviderService:
    """Provider reads and idempotent creation."""

    def __init__(self, repository: ProviderRepository):
        self.repository = repository

    def list_providers(self) -> List[Dict[str, Any]]:
        return [serialize_provider(p) for p in self.repository.list_recent_first()]

    def create_provider(
        self,
        provider_id: Optional[str] = None,
        name: Optional[str] = None,
        provider_type_code: Optional[str] = None,
        jurisdiction_code: Optional[str] = None,
    ) -> ProviderCreateResult:
        """Create a provider, or return the existing one with the same id."""
        if not provider_id:
            suffix = str(int(time.time() * 1000))[-6:]
            provider_id = f"{slugify(name or 'provider')}-{suffix}"

        existing = self.repository.get_by_id(provider_id)
        if existing is not None:
            return ProviderCreateResult(provider=existing, created=False)

        provider = self.repository.create(
            provider_id=provider_id,
            name=name or "Unknown Provider",
            meta={
                "name": name,
                "provider_type_code": provider_type_code,
                "jurisdiction_code": jurisdiction_code,
            },
            onboard={"status": ChecklistItemStatus.NOT_STARTED},
            checklist=build_default_checklist(),
        )
        return ProviderCreateResult(provider=provider, created=True)
