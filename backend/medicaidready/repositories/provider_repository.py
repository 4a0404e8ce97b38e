"""Provider repository for the gated provider list."""

import logging
from typing import Optional, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medicaidready.models.provider import Provider

logger = logging.getLogger(__name__)


class ProviderRepositoryError(Exception):
    """Raised when providers cannot be read or written."""


class ProviderRepository:
    """Repository for provider data access."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def list_recent_first(self) -> List[Provider]:
        try:
            return self.db.query(Provider).order_by(Provider.updated_at.desc()).all()
        except SQLAlchemyError as e:
            logger.error("Provider list failed", extra={"error": str(e)})
            raise ProviderRepositoryError(str(e)) from e

    def get_by_id(self, provider_id: str) -> Optional[Provider]:
        try:
            return self.db.query(Provider).filter(Provider.id == provider_id).first()
        except SQLAlchemyError as e:
            logger.error(
                "Provider lookup failed",
                extra={"provider_id": provider_id, "error": str(e)},
            )
            raise ProviderRepositoryError(str(e)) from e

    def create(
        self,
        provider_id: str,
        name: str,
        meta: dict,
        onboard: dict,
        checklist: list,
    ) -> Provider:
        provider = Provider(
            id=provider_id,
            name=name,
            meta=meta,
            onboard=onboard,
            checklist=checklist,
        )
        try:
            self.db.add(provider)
            self.db.commit()
            self.db.refresh(provider)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Provider insert failed",
                extra={"provider_id": provider_id, "error": str(e)},
            )
            raise ProviderRepositoryError(str(e)) from e
        return provider
