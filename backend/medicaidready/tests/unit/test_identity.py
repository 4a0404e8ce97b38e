"""
Tests for caller identity and role resolution.

Test classes:
- TestResolveSubmissionId: carrier precedence and blank handling
- TestResolveClientIp: forwarded headers before the socket peer
- TestRoles: open dev mode and header-driven roles
"""

import pytest
from starlette.requests import Request

from medicaidready.access.identity import resolve_client_ip, resolve_submission_id
from medicaidready.access.roles import Role, get_role


def _request(query: str = "", headers: dict = None, client=("10.0.0.9", 5000)) -> Request:
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/providers",
        "query_string": query.encode("latin-1"),
        "headers": raw_headers,
        "client": client,
    }
    return Request(scope)


class TestResolveSubmissionId:
    def test_query_param_wins_over_everything(self):
        request = _request(
            query="submission_id=from-query",
            headers={
                "x-submission-id": "from-header",
                "cookie": "submission_id=from-cookie",
            },
        )
        assert resolve_submission_id(request) == "from-query"

    def test_header_wins_over_cookies(self):
        request = _request(
            headers={
                "x-submission-id": "from-header",
                "cookie": "submission_id=from-cookie",
            },
        )
        assert resolve_submission_id(request) == "from-header"

    def test_cookie_order(self):
        request = _request(
            headers={
                "cookie": "medicaidready_submission_id=third; mr_submission_id=second",
            },
        )
        assert resolve_submission_id(request) == "second"

    def test_last_cookie_alias(self):
        request = _request(headers={"cookie": "medicaidready_submission_id=third"})
        assert resolve_submission_id(request) == "third"

    def test_blank_values_fall_through(self):
        request = _request(
            query="submission_id=%20%20",
            headers={"x-submission-id": "   ", "cookie": "submission_id=cookie-id"},
        )
        assert resolve_submission_id(request) == "cookie-id"

    def test_values_are_trimmed(self):
        request = _request(headers={"x-submission-id": "  abc-123  "})
        assert resolve_submission_id(request) == "abc-123"

    def test_absent_returns_none(self):
        assert resolve_submission_id(_request()) is None


class TestResolveClientIp:
    def test_first_forwarded_hop(self):
        request = _request(headers={"x-forwarded-for": "203.0.113.5, 10.0.0.1"})
        assert resolve_client_ip(request) == "203.0.113.5"

    def test_real_ip_when_no_forwarded(self):
        request = _request(headers={"x-real-ip": "198.51.100.7"})
        assert resolve_client_ip(request) == "198.51.100.7"

    def test_socket_peer_fallback(self):
        assert resolve_client_ip(_request()) == "10.0.0.9"

    def test_none_without_any_source(self):
        assert resolve_client_ip(_request(client=None)) is None


class TestRoles:
    def test_everyone_is_admin_when_access_control_disabled(self, monkeypatch):
        monkeypatch.setenv("ACCESS_CONTROL_ENABLED", "false")
        assert get_role(_request()) == Role.ADMIN

    @pytest.mark.parametrize(
        "header,expected",
        [("admin", Role.ADMIN), ("ANALYST", Role.ANALYST), ("", Role.VIEWER), ("root", Role.VIEWER)],
    )
    def test_role_from_header(self, header, expected):
        request = _request(headers={"x-medicaidready-role": header} if header else None)
        assert get_role(request) == expected
