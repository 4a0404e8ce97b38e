"""
Provider list routes.

GET requires an approved, active, unexpired subscription (or the admin
role). POST is admin-only and idempotent on the provider id.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from medicaidready.access.gate import AccessDecision
from medicaidready.access.roles import Role, get_role
from medicaidready.api.dependencies.access import require_subscriber_access
from medicaidready.config.settings import read_only_mode
from medicaidready.database.session import get_db_session
from medicaidready.repositories.provider_repository import (
    ProviderRepository,
    ProviderRepositoryError,
)
from medicaidready.services.provider_service import ProviderService, serialize_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/providers", tags=["providers"])


class CreateProviderRequest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    provider_type_code: Optional[str] = None
    jurisdiction_code: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def get_provider_service(db: Session = Depends(get_db_session)) -> ProviderService:
    return ProviderService(ProviderRepository(db))


@router.get("")
async def list_providers(
    decision: AccessDecision = Depends(require_subscriber_access),
    service: ProviderService = Depends(get_provider_service),
):
    try:
        providers = service.list_providers()
    except ProviderRepositoryError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": "providers_fetch_failed", "message": str(e)},
        )
    return {"ok": True, "providers": providers}


@router.post("")
async def create_provider(
    body: CreateProviderRequest,
    request: Request,
    service: ProviderService = Depends(get_provider_service),
):
    if read_only_mode():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "error": "read_only_mode_enabled"},
        )

    role = get_role(request)
    if role != Role.ADMIN:
        logger.warning("Provider create forbidden", extra={"role": role.value})
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"ok": False, "error": "forbidden", "role": role.value},
        )

    try:
        result = service.create_provider(
            provider_id=_clean(body.id),
            name=_clean(body.name),
            provider_type_code=_clean(body.provider_type_code),
            jurisdiction_code=_clean(body.jurisdiction_code),
        )
    except ProviderRepositoryError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": "providers_insert_failed", "message": str(e)},
        )

    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        content={
            "ok": True,
            "provider": serialize_provider(result.provider),
            "created": result.created,
        },
    )
