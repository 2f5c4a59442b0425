"""
Reseller Estate Isolation Integration Tests
===========================================

Integration tests for organisation scope filtering including:
- Reseller customer listings contain only direct children
- Customer-scoped requests see only their own organisation
- Cross-reseller access is rejected with 403
"""

import pytest
from fastapi.testclient import TestClient

from conftest import CLOUDTECH_ID, DISCOVERY_ID, MTN_ID, TECHPRO_ID, VODACOM_ID


pytestmark = pytest.mark.integration

EXPECTED_CUSTOMERS = {
    "cloudtech-reseller-demo-001": ["MTN", "Vodacom"],
    "techpro-reseller-001": ["Capitec Bank", "Discovery Health"],
    "africatech-partners-001": ["FNB Corporate", "Old Mutual", "Pick n Pay"],
    "cape-digital-001": ["Shoprite Holdings", "Woolworths SA"],
    "joburg-cloud-001": ["ABSA Corporate", "Nedbank Business", "Standard Bank"],
    "kzn-tech-001": ["Mr Price Group", "Tongaat Hulett"],
}

CUSTOMERS_URL = "/api/organisation/reseller/customers"


class TestResellerCustomerListing:
    """Every listed customer belongs to the requested reseller."""

    @pytest.mark.parametrize("reseller_id,names", EXPECTED_CUSTOMERS.items())
    def test_customers_are_direct_children(
        self,
        client: TestClient,
        global_auth_headers: dict,
        reseller_id: str,
        names: list,
    ):
        # Act
        response = client.get(CUSTOMERS_URL, params={"resellerId": reseller_id}, headers=global_auth_headers)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["resellerId"] == reseller_id
        assert [customer["name"] for customer in body["data"]] == names
        assert all(customer["parent_id"] == reseller_id for customer in body["data"])
        assert all(customer["type"] == "customer" for customer in body["data"])

    def test_reseller_defaults_to_own_estate(self, client: TestClient, cloudtech_auth_headers: dict):
        # Act
        response = client.get(CUSTOMERS_URL, headers=cloudtech_auth_headers)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["resellerId"] == CLOUDTECH_ID
        assert body["message"] == "Retrieved 2 customers for reseller"
        assert {customer["id"] for customer in body["data"]} == {VODACOM_ID, MTN_ID}

    def test_reseller_may_name_itself_explicitly(self, client: TestClient, techpro_auth_headers: dict):
        response = client.get(CUSTOMERS_URL, params={"resellerId": TECHPRO_ID}, headers=techpro_auth_headers)
        assert response.status_code == 200
        assert [customer["name"] for customer in response.json()["data"]] == ["Capitec Bank", "Discovery Health"]

    def test_global_requester_must_name_a_reseller(self, client: TestClient, global_auth_headers: dict):
        response = client.get(CUSTOMERS_URL, headers=global_auth_headers)
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_unknown_reseller_is_not_found(self, client: TestClient, global_auth_headers: dict):
        response = client.get(CUSTOMERS_URL, params={"resellerId": "no-such-reseller"}, headers=global_auth_headers)
        assert response.status_code == 404


class TestCrossResellerAccess:
    """Cross-reseller requests are rejected."""

    def test_reseller_cannot_list_another_resellers_customers(
        self, client: TestClient, cloudtech_auth_headers: dict
    ):
        # Act
        response = client.get(CUSTOMERS_URL, params={"resellerId": TECHPRO_ID}, headers=cloudtech_auth_headers)

        # Assert
        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Unauthorized access"
        assert body["message"] == "You can only access your own customers"

    def test_customer_cannot_list_reseller_customers(self, client: TestClient, customer_auth_headers: dict):
        response = client.get(CUSTOMERS_URL, headers=customer_auth_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Unauthorized access"

    def test_customer_cannot_use_parent_reseller_id(self, client: TestClient, customer_auth_headers: dict):
        response = client.get(CUSTOMERS_URL, params={"resellerId": CLOUDTECH_ID}, headers=customer_auth_headers)
        assert response.status_code == 403

    def test_reseller_cannot_view_foreign_customer_details(
        self, client: TestClient, cloudtech_auth_headers: dict
    ):
        response = client.get(f"/api/organisation/{DISCOVERY_ID}/details", headers=cloudtech_auth_headers)
        assert response.status_code == 403

    def test_reseller_cannot_read_foreign_wallet(self, client: TestClient, cloudtech_auth_headers: dict):
        response = client.get(f"/api/wallet/{DISCOVERY_ID}", headers=cloudtech_auth_headers)
        assert response.status_code == 403

    def test_reseller_cannot_onboard_into_another_estate(
        self, client: TestClient, cloudtech_auth_headers: dict
    ):
        # Act
        response = client.post(
            "/api/organisation/reseller/onboard-customer",
            json={
                "organisation_name": "Sneaky Corp",
                "email": "admin@sneaky.co.za",
                "firstName": "Sneaky",
                "lastName": "Admin",
                "resellerId": TECHPRO_ID,
            },
            headers=cloudtech_auth_headers,
        )

        # Assert
        assert response.status_code == 403
        assert response.json()["message"] == "You can only access your own customers"


class TestCustomerScope:
    """Customer-scoped requests only ever see the customer's organisation."""

    def test_organisations_list_is_own_organisation(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.get("/api/organisations", headers=customer_auth_headers)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert [org["id"] for org in body["data"]] == [VODACOM_ID]
        assert body["scope"] == {"type": "organisation", "organisationId": VODACOM_ID}

    def test_customer_cannot_view_sibling_details(self, client: TestClient, customer_auth_headers: dict):
        response = client.get(f"/api/organisation/{MTN_ID}/details", headers=customer_auth_headers)
        assert response.status_code == 403

    def test_customer_users_list_is_own_organisation(self, client: TestClient, customer_auth_headers: dict):
        # Act
        response = client.get("/api/users", headers=customer_auth_headers)

        # Assert
        assert response.status_code == 200
        assert {user["organizationId"] for user in response.json()["data"]} == {VODACOM_ID}
