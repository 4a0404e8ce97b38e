"""
Access request intake.

Stores a pending submission for manual follow-up. Approval happens later,
either through checkout or by an operator.
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from medicaidready.api.dependencies.access import get_submission_repository
from medicaidready.config.settings import ALLOWED_INTAKE_STATES, read_only_mode
from medicaidready.repositories.submission_repository import (
    SubmissionRepository,
    SubmissionStoreError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["request-access"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class RequestAccessBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    organization: Optional[str] = None
    email: Optional[str] = None
    state: Optional[str] = None
    provider_type: Optional[str] = Field(default=None, alias="providerType")


def _reject(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": error, "message": message},
    )


@router.post("/request-access")
async def request_access(
    body: RequestAccessBody,
    repository: SubmissionRepository = Depends(get_submission_repository),
):
    if read_only_mode():
        return _reject(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "read_only_mode_enabled",
            "READ_ONLY_MODE is enabled",
        )

    name = (body.name or "").strip()
    organization = (body.organization or "").strip()
    email = (body.email or "").strip().lower()
    state = (body.state or "").strip().upper()
    provider_type = (body.provider_type or "").strip()

    if not all((name, organization, email, state, provider_type)):
        return _reject(status.HTTP_400_BAD_REQUEST, "missing_fields", "All fields are required")

    if not EMAIL_PATTERN.match(email):
        return _reject(status.HTTP_400_BAD_REQUEST, "invalid_email", "Invalid email address")

    if state not in ALLOWED_INTAKE_STATES:
        return _reject(status.HTTP_400_BAD_REQUEST, "invalid_state", "Invalid state selection")

    try:
        repository.create(
            email=email,
            name=name,
            organization=organization,
            state=state,
            provider_type=provider_type,
        )
    except SubmissionStoreError:
        return _reject(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "request_access_insert_failed",
            "Unable to submit request",
        )

    return {"ok": True}
