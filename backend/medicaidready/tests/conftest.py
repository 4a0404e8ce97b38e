"""
Root test configuration and fixtures.

Every test gets a fresh in-memory SQLite database with all tables, so
repository commits never leak between tests.

Shared fixtures:
- db_engine / db_session / session_factory: database access
- submission_repository / audit_logger: wired the way routes wire them
- make_submission: factory for submission rows in a given state
- mock_billing_client: StripeBillingClient mock
- client: TestClient over an app with every router and dependency overrides
"""

import os
import uuid
import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

from medicaidready.models import Base, Submission, SubmissionStatus  # noqa: E402
from medicaidready.access.audit import AccessAuditLogger, DatabaseAuditWriter  # noqa: E402
from medicaidready.integrations.stripe.billing_client import StripeBillingClient  # noqa: E402
from medicaidready.repositories.submission_repository import SubmissionRepository  # noqa: E402

TEST_WEBHOOK_SECRET = "whsec_test_secret"

_MANAGED_ENV_VARS = (
    "ACCESS_CONTROL_ENABLED",
    "READ_ONLY_MODE",
    "BASIC_AUTH_USER",
    "BASIC_AUTH_PASS",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRICE_ID",
)


@pytest.fixture(autouse=True)
def _access_env(monkeypatch):
    """
    Known environment for every test: access control on, perimeter off,
    webhook secret set. Tests flip individual switches with monkeypatch.
    """
    for name in _MANAGED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ACCESS_CONTROL_ENABLED", "true")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
    yield


@pytest.fixture
def db_engine():
    """SQLite in-memory engine shared across threads via StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def submission_repository(db_session) -> SubmissionRepository:
    return SubmissionRepository(db_session)


@pytest.fixture
def audit_logger(session_factory) -> AccessAuditLogger:
    """Synchronous audit logger so rows are visible as soon as the gate returns."""
    return AccessAuditLogger(writer=DatabaseAuditWriter(session_factory), async_mode=False)


@pytest.fixture
def make_submission(db_session):
    """
    Factory fixture for submission rows.

    Usage:
        submission = make_submission(status="approved", subscription_status="active")
    """
    def _make(
        email: str = None,
        status: str = SubmissionStatus.APPROVED,
        subscription_status: str = "active",
        subscription_id: str = None,
        period_end: datetime = None,
        revoked_at: datetime = None,
        revoked_reason: str = None,
        created_at: datetime = None,
    ) -> Submission:
        submission = Submission(
            id=str(uuid.uuid4()),
            email=email or f"user_{uuid.uuid4().hex[:6]}@example.com",
            name="Test User",
            organization="Test Org",
            state="MD",
            provider_type="home_health",
            status=status,
            stripe_subscription_id=subscription_id,
            stripe_subscription_status=subscription_status,
            stripe_current_period_end=period_end,
            access_revoked_at=revoked_at,
            access_revoked_reason=revoked_reason,
        )
        if created_at is not None:
            submission.created_at = created_at
        db_session.add(submission)
        db_session.commit()
        return submission
    return _make


@pytest.fixture
def future_period_end() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=20)


@pytest.fixture
def past_period_end() -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture
def mock_billing_client() -> MagicMock:
    return MagicMock(spec=StripeBillingClient)


@pytest.fixture
def app(db_session, audit_logger, mock_billing_client) -> FastAPI:
    """The production app with the database, audit sink and Stripe client swapped out."""
    from main import create_app
    from medicaidready.api.dependencies.access import get_audit_logger
    from medicaidready.api.dependencies.billing import get_billing_client
    from medicaidready.database.session import get_db_session

    test_app = create_app()

    def _override_db():
        yield db_session

    test_app.dependency_overrides[get_db_session] = _override_db
    test_app.dependency_overrides[get_audit_logger] = lambda: audit_logger
    test_app.dependency_overrides[get_billing_client] = lambda: mock_billing_client
    return test_app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: HTTP-level tests through the FastAPI app")
    config.addinivalue_line("markers", "security: mark test as security-focused")
