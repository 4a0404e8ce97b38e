"""
HTTP tests for /api/providers: the subscriber gate, admin writes,
and the perimeter switches in front of provider paths.
"""

import base64
import pytest
from datetime import datetime, timezone

from medicaidready.models.access_audit import ProviderAccessAudit
from medicaidready.models.submission import SubmissionStatus

PROVIDERS_URL = "/api/providers"
ADMIN_HEADERS = {"x-medicaidready-role": "admin"}

pytestmark = pytest.mark.integration


def _basic(user, password):
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


def _audit_rows(db_session):
    db_session.expire_all()
    return db_session.query(ProviderAccessAudit).all()


class TestSubscriberGate:
    def test_allowed_subscriber_gets_provider_list(self, client, make_submission, future_period_end):
        submission = make_submission(period_end=future_period_end)

        response = client.get(PROVIDERS_URL, params={"submission_id": submission.id})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "providers": []}

    def test_missing_identity_is_403(self, client):
        response = client.get(PROVIDERS_URL)

        assert response.status_code == 403
        assert response.json() == {
            "ok": False,
            "error": "missing_submission_id",
            "message": "A valid submission_id is required for provider access.",
        }

    def test_identity_from_cookie(self, client, make_submission):
        submission = make_submission()
        client.cookies.set("mr_submission_id", submission.id)

        assert client.get(PROVIDERS_URL).status_code == 200

    def test_identity_from_header(self, client, make_submission):
        submission = make_submission()
        response = client.get(PROVIDERS_URL, headers={"x-submission-id": submission.id})
        assert response.status_code == 200

    def test_revoked_subscriber_is_403(self, client, make_submission):
        submission = make_submission(
            status=SubmissionStatus.REVOKED,
            revoked_at=datetime.now(timezone.utc),
            revoked_reason="subscription_deleted",
        )

        response = client.get(PROVIDERS_URL, params={"submission_id": submission.id})

        assert response.status_code == 403
        assert response.json()["error"] == "access_revoked"

    def test_elapsed_period_revokes_then_reports_revoked(
        self, client, make_submission, past_period_end, db_session
    ):
        submission = make_submission(period_end=past_period_end)

        first = client.get(PROVIDERS_URL, params={"submission_id": submission.id})
        second = client.get(PROVIDERS_URL, params={"submission_id": submission.id})

        assert first.status_code == 403
        assert first.json()["error"] == "subscription_period_ended"
        assert second.json()["error"] == "access_revoked"

    def test_every_resolved_request_is_audited(self, client, make_submission, db_session):
        submission = make_submission(status=SubmissionStatus.PENDING)

        client.get(
            PROVIDERS_URL,
            params={"submission_id": submission.id},
            headers={"user-agent": "audit-test", "x-forwarded-for": "198.51.100.1, 10.0.0.1"},
        )

        [row] = _audit_rows(db_session)
        assert row.submission_id == submission.id
        assert row.allowed is False
        assert row.reason == "not_approved"
        assert row.route == PROVIDERS_URL
        assert row.method == "GET"
        assert row.ip == "198.51.100.1"
        assert row.user_agent == "audit-test"

    def test_admin_bypasses_gate_without_audit(self, client, db_session):
        response = client.get(PROVIDERS_URL, headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert _audit_rows(db_session) == []

    def test_access_control_disabled_makes_everyone_admin(self, client, monkeypatch):
        monkeypatch.setenv("ACCESS_CONTROL_ENABLED", "false")
        assert client.get(PROVIDERS_URL).status_code == 200


class TestProviderCreate:
    def test_admin_create_then_idempotent_repeat(self, client):
        body = {"id": "acme", "name": "Acme Care", "jurisdiction_code": "MD"}

        created = client.post(PROVIDERS_URL, json=body, headers=ADMIN_HEADERS)
        repeated = client.post(PROVIDERS_URL, json=body, headers=ADMIN_HEADERS)

        assert created.status_code == 201
        assert created.json()["created"] is True
        assert created.json()["provider"]["progress"]["total"] == 5
        assert repeated.status_code == 200
        assert repeated.json()["created"] is False

    def test_created_provider_is_listed(self, client):
        client.post(PROVIDERS_URL, json={"id": "acme", "name": "Acme Care"}, headers=ADMIN_HEADERS)

        providers = client.get(PROVIDERS_URL, headers=ADMIN_HEADERS).json()["providers"]

        assert [p["id"] for p in providers] == ["acme"]

    @pytest.mark.security
    def test_non_admin_is_forbidden(self, client):
        response = client.post(
            PROVIDERS_URL, json={"name": "Acme"}, headers={"x-medicaidready-role": "analyst"}
        )

        assert response.status_code == 403
        assert response.json() == {"ok": False, "error": "forbidden", "role": "analyst"}


class TestPerimeter:
    @pytest.mark.security
    def test_read_only_mode_blocks_provider_writes(self, client, monkeypatch):
        monkeypatch.setenv("READ_ONLY_MODE", "true")

        response = client.post(PROVIDERS_URL, json={"name": "Acme"}, headers=ADMIN_HEADERS)

        assert response.status_code == 403
        assert response.json()["error"] == "read_only_mode"

    def test_read_only_mode_allows_reads(self, client, monkeypatch):
        monkeypatch.setenv("READ_ONLY_MODE", "true")
        assert client.get(PROVIDERS_URL, headers=ADMIN_HEADERS).status_code == 200

    @pytest.mark.security
    def test_basic_auth_challenge(self, client, monkeypatch):
        monkeypatch.setenv("BASIC_AUTH_USER", "ops")
        monkeypatch.setenv("BASIC_AUTH_PASS", "s3cret")

        response = client.get(PROVIDERS_URL, headers=ADMIN_HEADERS)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="MedicaidReady"'

    @pytest.mark.security
    def test_basic_auth_wrong_password(self, client, monkeypatch):
        monkeypatch.setenv("BASIC_AUTH_USER", "ops")
        monkeypatch.setenv("BASIC_AUTH_PASS", "s3cret")

        response = client.get(PROVIDERS_URL, headers={**ADMIN_HEADERS, **_basic("ops", "nope")})

        assert response.status_code == 401

    def test_basic_auth_success_reaches_gate(self, client, monkeypatch):
        monkeypatch.setenv("BASIC_AUTH_USER", "ops")
        monkeypatch.setenv("BASIC_AUTH_PASS", "s3cret")

        response = client.get(PROVIDERS_URL, headers=_basic("ops", "s3cret"))

        # Perimeter passed; the subscriber gate still applies
        assert response.status_code == 403
        assert response.json()["error"] == "missing_submission_id"

    def test_basic_auth_does_not_cover_other_paths(self, client, monkeypatch):
        monkeypatch.setenv("BASIC_AUTH_USER", "ops")
        monkeypatch.setenv("BASIC_AUTH_PASS", "s3cret")
        assert client.get("/api/health").status_code == 200
