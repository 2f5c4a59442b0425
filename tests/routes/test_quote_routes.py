"""
Quote Routes Integration Tests
==============================

Integration tests for VM pricing endpoints including:
- POST /api/quotes
- GET /api/quotes/recommended
- POST /api/quotes/upgrade
"""

import pytest
from fastapi.testclient import TestClient


pytestmark = pytest.mark.integration


class TestCreateQuote:
    """Integration tests for POST /api/quotes."""

    def test_single_vm_quote(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.post(
            "/api/quotes",
            json={"vms": [{"cpu": 2, "memory": 4, "storage": 100}]},
            headers=customer_auth_headers,
        )

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["vmCount"] == 1
        assert body["data"]["totalMonthlyCost"] == 657
        assert body["data"]["hourlyRate"] == 0.6411
        assert body["warnings"] == []

    def test_warnings_are_labelled_by_vm_name(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.post(
            "/api/quotes",
            json={"vms": [{"name": "db-01", "cpu": 4, "memory": 4, "storage": 100}]},
            headers=customer_auth_headers,
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["warnings"] == ["db-01: Low memory-to-CPU ratio may impact performance"]

    def test_invalid_vm_rejects_whole_quote(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.post(
            "/api/quotes",
            json={"vms": [
                {"cpu": 2, "memory": 4, "storage": 100},
                {"cpu": 128, "memory": 4, "storage": 100},
            ]},
            headers=customer_auth_headers,
        )

        # Assert
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Invalid VM specification"
        assert body["details"]["errors"] == [
            {"field": "vms[1]", "message": "VM 2: CPU count must be between 1 and 64"},
        ]

    def test_unknown_operating_system_is_schema_error(self, client: TestClient, customer_auth_headers: dict):
        response = client.post(
            "/api/quotes",
            json={"vms": [{"cpu": 2, "memory": 4, "storage": 100, "os": "BeOS"}]},
            headers=customer_auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"

    def test_quote_requires_authentication(self, client: TestClient):
        response = client.post("/api/quotes", json={"vms": [{"cpu": 2, "memory": 4, "storage": 100}]})
        assert response.status_code == 401


class TestRecommendedConfigs:
    def test_presets_are_priced(self, client: TestClient, read_only_auth_headers: dict):
        # Act
        response = client.get("/api/quotes/recommended", headers=read_only_auth_headers)

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 4
        assert all(entry["pricing"]["totalMonthlyCost"] > 0 for entry in data)
        assert all("cpu" in entry["specification"] for entry in data)


class TestUpgradeCost:
    """Integration tests for POST /api/quotes/upgrade."""

    def test_upgrade_difference(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.post(
            "/api/quotes/upgrade",
            json={
                "current": {"cpu": 2, "memory": 4, "storage": 100},
                "new": {"cpu": 4, "memory": 8, "storage": 200},
            },
            headers=customer_auth_headers,
        )

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["costDifference"] == 642
        assert data["monthlyDifference"] == 462

    def test_invalid_target_specification(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.post(
            "/api/quotes/upgrade",
            json={
                "current": {"cpu": 2, "memory": 4, "storage": 100},
                "new": {"cpu": 2, "memory": 4, "storage": 5},
            },
            headers=customer_auth_headers,
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["details"]["errors"] == [
            {"field": "new", "message": "Storage must be between 20 GB and 10 TB"},
        ]
