"""
Request Middleware Tests
========================

Tests for middleware components and health endpoints including:
- AuthMiddleware request ids and timing
- SecurityHeadersMiddleware
- RateLimitMiddleware window bookkeeping
- Health and readiness checks
"""

import time

import pytest
from fastapi.testclient import TestClient

from cloudportal.middleware.auth_middleware import RateLimitMiddleware


pytestmark = pytest.mark.middleware


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    def test_request_id_generated(self, client: TestClient):
        # Act
        response = client.get("/")

        # Assert
        assert len(response.headers["X-Request-ID"]) > 0
        assert "X-Process-Time" in response.headers

    def test_request_id_propagated(self, client: TestClient):
        response = client.get("/health", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    def test_malformed_auth_header_returns_401(self, client: TestClient):
        response = client.get("/auth/me", headers={"Authorization": "InvalidFormat"})
        assert response.status_code == 401

    def test_unknown_route_uses_error_envelope(self, client: TestClient):
        # Act
        response = client.get("/api/does-not-exist")

        # Assert
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestSecurityHeadersMiddleware:
    def test_security_headers_present(self, client: TestClient):
        # Act
        response = client.get("/")

        # Assert
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


class TestHealthEndpoints:
    """Tests for /, /health and /ready."""

    def test_basic_health(self, client: TestClient):
        # Act
        response = client.get("/")

        # Assert
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health_reports_database(self, client: TestClient):
        body = client.get("/health").json()
        assert body["checks"]["database"] == "healthy"

    def test_ready(self, client: TestClient):
        assert client.get("/ready").json() == {"status": "ready"}


class TestRateLimitMiddleware:
    """Tests for the login rate limiter's window bookkeeping."""

    def test_limit_reached_within_window(self):
        limiter = RateLimitMiddleware(app=None)
        results = [limiter._is_rate_limited("10.0.0.1", 2, 60) for _ in range(3)]
        assert results == [False, False, True]

    def test_idle_clients_are_forgotten(self):
        # Arrange
        limiter = RateLimitMiddleware(app=None)
        limiter._requests["10.0.0.1"] = [time.time() - 120]

        # Act
        limiter._is_rate_limited("10.0.0.2", 5, 60)

        # Assert
        assert "10.0.0.1" not in limiter._requests
        assert list(limiter._requests) == ["10.0.0.2"]
