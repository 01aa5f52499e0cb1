"""
Integration tests for the target client, health check and authentication.

These run against the live Flask stub target started once per session.

Key SDET Concepts Demonstrated:
- Real HTTP round trips against a controllable stub
- Transport failures turned into values, never exceptions
- Fail-fast pre-run health check
"""

import pytest
import requests

from loadcheck import metrics
from loadcheck.client import TargetClient, check_target_health, resolve_auth_headers, sso_login
from loadcheck.exceptions import SetupError
from loadcheck.metrics import MetricRegistry
from tests.stub_target import SSO_CREDENTIALS

pytestmark = pytest.mark.integration

UNREACHABLE = "http://127.0.0.1:9"


class TestTargetClient:
    """Tests for request outcomes."""

    def test_json_envelope(self, stub, http_session):
        # Arrange
        client = TargetClient(http_session, stub.url)

        # Act
        outcome = client.get("/api/posts")

        # Assert
        assert outcome.ok
        assert outcome.envelope_ok
        assert isinstance(outcome.data, list)
        assert outcome.latency_ms > 0

    def test_html_body_parses_to_empty_dict(self, stub, http_session):
        """Test that a non-JSON body never raises."""
        outcome = TargetClient(http_session, stub.url).get("/")
        assert outcome.status == 200
        assert outcome.body == {}
        assert "Stub blog" in outcome.text

    def test_connection_error_becomes_status_zero(self, http_session):
        """Test that an unreachable target yields an outcome, not an exception."""
        outcome = TargetClient(http_session, UNREACHABLE, timeout=1).get("/api/posts")
        assert outcome.status == 0
        assert outcome.error
        assert not outcome.ok

    def test_injected_failure(self, stub, http_session):
        stub.controls.failure_rate = 1.0
        outcome = TargetClient(http_session, stub.url).get("/api/posts")
        assert outcome.status == 500
        assert outcome.envelope_ok is False


class TestHealthCheck:
    """Tests for the pre-run health check."""

    def test_healthy_target(self, stub):
        assert check_target_health(stub.url)["status"] == "healthy"

    def test_unhealthy_target_raises_setup_error(self, stub):
        # Arrange
        stub.controls.healthy = False

        # Act & Assert
        with pytest.raises(SetupError, match="503"):
            check_target_health(stub.url)

    def test_unreachable_target_raises_setup_error(self):
        with pytest.raises(SetupError) as exc_info:
            check_target_health(UNREACHABLE, timeout=1)
        assert exc_info.value.base_url == UNREACHABLE


class TestAuthentication:
    """Tests for auth header resolution."""

    def test_cookie_and_token(self):
        headers = resolve_auth_headers(cookie="sid=abc", token="t0k3n")
        assert headers == {"Cookie": "sid=abc", "Authorization": "Bearer t0k3n"}

    def test_no_material_no_headers(self):
        assert resolve_auth_headers() == {}

    def test_sso_login_collects_cookies(self, stub):
        """Test that SSO auto-login yields a cookie header and records its timing."""
        # Arrange
        registry = MetricRegistry()
        username, password = SSO_CREDENTIALS

        # Act
        headers = resolve_auth_headers(
            login_url=f"{stub.url}/sso/login",
            username=username,
            password=password,
            registry=registry,
        )

        # Assert
        assert headers == {"Cookie": "sso_session=stub-session-token"}
        assert registry.trend(metrics.SSO_AUTH_TIME).summary()["count"] == 1

    def test_failed_sso_login_returns_empty_cookie(self, stub):
        with requests.Session() as session:
            cookie, elapsed_ms = sso_login(f"{stub.url}/sso/login", "loadtest", "wrong", session=session)
        assert cookie == ""
        assert elapsed_ms >= 0
