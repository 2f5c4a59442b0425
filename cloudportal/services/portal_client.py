"""
Portal API Client
=================

HTTP client for the portal REST API, used by integrations and scripts.

Features:
- Bearer token injection
- Transparent refresh on 401, retried up to MAX_RETRY_ATTEMPTS times
- Errors normalised into ApiError (status 0 for connection failures)
- Expiry checks on access tokens without verifying the signature

Usage:
    with PortalApiClient("http://localhost:8003") as client:
        client.login("john.demo@vodacom.co.za", "...")
        organisations = client.get_organisations()
"""

import time
from typing import Any, Optional

import httpx
from jose import jwt, JWTError

from cloudportal.core.config import settings
from cloudportal.core.logging import get_logger

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3
REQUEST_TIMEOUT = 10.0
TOKEN_EXPIRY_THRESHOLD_SECONDS = 300


# ==========================
# Errors
# ==========================

class ApiError(Exception):
    """Normalised API failure."""

    def __init__(
        self,
        status: int,
        message: str,
        errors: Optional[list] = None,
        retryable: bool = False,
        error_type: Optional[str] = None,
    ):
        self.status = status
        self.message = message
        self.errors = errors or []
        self.retryable = retryable
        self.error_type = error_type
        super().__init__(message)

    def __repr__(self) -> str:
        return f"<ApiError(status={self.status}, message={self.message!r})>"


class SessionExpiredError(ApiError):
    """Tokens can no longer be refreshed; the user must log in again."""

    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(status=401, message=message, retryable=False, error_type="SessionExpired")


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    details = data.get("details") or {}
    errors = data.get("errors") or (details.get("errors") if isinstance(details, dict) else None)

    return ApiError(
        status=response.status_code,
        message=data.get("message") or "An error occurred",
        errors=errors,
        retryable=response.status_code >= 500,
        error_type=data.get("error"),
    )


# ==========================
# Token helpers
# ==========================

def _token_expiry(token: str) -> Optional[int]:
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    return int(exp) if isinstance(exp, (int, float)) else None


def is_token_expiring(token: str, threshold: int = TOKEN_EXPIRY_THRESHOLD_SECONDS) -> bool:
    """True when the token expires within ``threshold`` seconds or cannot be read."""
    exp = _token_expiry(token)
    if exp is None:
        return True
    return exp - time.time() <= threshold


def is_token_expired(token: str) -> bool:
    return is_token_expiring(token, threshold=0)


# ==========================
# Client
# ==========================

class PortalApiClient:
    """Synchronous client over ``httpx.Client``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url or settings.PORTAL_API_URL
        self.access_token = access_token
        self.refresh_token = refresh_token
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "PortalApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # --------------------------
    # Authentication state
    # --------------------------

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self.access_token = access_token
        if refresh_token is not None:
            self.refresh_token = refresh_token

    def clear_auth(self) -> None:
        self.access_token = None
        self.refresh_token = None

    def _auth_headers(self) -> dict:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    # --------------------------
    # Transport
    # --------------------------

    def _send(self, method: str, path: str, headers: dict, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("portal_api_timeout", method=method, path=path, error=str(e))
            raise ApiError(
                status=0,
                message="Request timed out. Please try again.",
                retryable=True,
                error_type="NetworkError",
            ) from e
        except httpx.TransportError as e:
            logger.warning("portal_api_unreachable", method=method, path=path, error=str(e))
            raise ApiError(
                status=0,
                message="Unable to connect to server. Please check your connection.",
                retryable=True,
                error_type="NetworkError",
            ) from e

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.warning("portal_api_invalid_json", status=response.status_code, error=str(e))
            raise ApiError(
                status=response.status_code,
                message="Invalid response from server",
                error_type="ParseError",
            ) from e

    def _refresh(self) -> None:
        if not self.refresh_token:
            self.clear_auth()
            raise SessionExpiredError()

        response = self._send("POST", "/auth/refresh", headers={}, json={"refresh_token": self.refresh_token})
        if response.is_error:
            logger.info("portal_api_refresh_rejected", status=response.status_code)
            self.clear_auth()
            raise SessionExpiredError()

        data = self._decode(response)
        self.set_tokens(data["access_token"], data.get("refresh_token"))
        logger.info("portal_api_token_refreshed")

    def request(self, method: str, path: str, authenticated: bool = True, **kwargs: Any) -> Any:
        """
        Send a request and return the decoded JSON body.

        On 401 the access token is refreshed and the request retried, at most
        MAX_RETRY_ATTEMPTS times.

        Raises:
            SessionExpiredError: If refreshing fails or retries are exhausted
            ApiError: For any other failure
        """
        attempts = 0
        while True:
            headers = self._auth_headers() if authenticated else {}
            response = self._send(method, path, headers=headers, **kwargs)

            if response.status_code == 401 and authenticated:
                if attempts >= MAX_RETRY_ATTEMPTS:
                    logger.warning("portal_api_retries_exhausted", path=path, attempts=attempts)
                    self.clear_auth()
                    raise SessionExpiredError()
                attempts += 1
                logger.info("portal_api_unauthorized", path=path, attempt=attempts)
                self._refresh()
                continue

            if response.is_error:
                raise _error_from_response(response)

            if not response.content:
                return None
            return self._decode(response)

    # --------------------------
    # Endpoints
    # --------------------------

    def login(self, email: str, password: str) -> dict:
        tokens = self.request(
            "POST",
            "/auth/login",
            authenticated=False,
            json={"email": email, "password": password},
        )
        self.set_tokens(tokens["access_token"], tokens.get("refresh_token"))
        return tokens

    def get_organisations(self) -> dict:
        return self.request("GET", "/api/organisations")

    def get_reseller_customers(self, reseller_id: Optional[str] = None) -> dict:
        params = {"resellerId": reseller_id} if reseller_id else None
        return self.request("GET", "/api/organisation/reseller/customers", params=params)

    def get_customer_details(self, org_id: str) -> dict:
        return self.request("GET", f"/api/organisation/{org_id}/details")

    def onboard_customer(self, customer: dict) -> dict:
        return self.request("POST", "/api/organisation/reseller/onboard-customer", json=customer)

    def test_connection(self) -> dict:
        """Call the health endpoint. Never raises."""
        try:
            data = self.request("GET", "/health", authenticated=False)
        except ApiError as e:
            logger.info("portal_api_connection_failed", status=e.status, message=e.message)
            return {"connected": False}

        return {
            "connected": True,
            "apiVersion": data.get("version") if isinstance(data, dict) else None,
            "endpoints": [
                "/api/organisation/reseller/customers",
                "/api/organisation/reseller/onboard-customer",
                "/api/organisations",
            ],
        }
