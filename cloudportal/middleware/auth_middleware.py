"""
Request Middleware Module
=========================

Starlette middleware for request processing.

Features:
- Request ID generation for tracing
- Organisation context extraction for log correlation
- Request timing and access logging
- Security response headers
- Login rate limiting

Note:
    Token claims read here are only used for logging. Authentication is
    enforced in the dependency layer.
"""

import time
import uuid
from typing import Callable

from fastapi.responses import JSONResponse
from jose import jwt, JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from cloudportal.core.config import settings
from cloudportal.core.exceptions import RateLimitError
from cloudportal.core.logging import get_logger, org_id_context, request_id_context, security_logger

logger = get_logger(__name__)

PUBLIC_PATHS = {"/", "/docs", "/redoc", "/openapi.json", "/health", "/ready"}


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Request context middleware.

    Responsibilities:
    - Generate unique request ID for tracing
    - Read user and organisation ids from a bearer token into request.state
    - Add X-Request-ID and X-Process-Time response headers
    - Log completed requests
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)
        org_id_context.set(None)

        request.state.request_id = request_id
        request.state.user_id = None
        request.state.org_id = None

        if request.url.path not in PUBLIC_PATHS:
            self._read_token_claims(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_processing_error",
                error=str(e),
                path=request.url.path,
                method=request.method,
            )
            raise

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        self._log_request(request, response, process_time)
        return response

    def _read_token_claims(self, request: Request) -> None:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return

        token = auth_header.split(" ", 1)[1]
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            logger.debug("token_claims_unreadable", error=str(e), path=request.url.path)
            return

        request.state.user_id = claims.get("sub")
        request.state.org_id = claims.get("org_id")
        if request.state.org_id:
            org_id_context.set(request.state.org_id)

    def _log_request(self, request: Request, response: Response, process_time: float) -> None:
        if request.url.path in ("/", "/health", "/ready"):
            return

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(process_time * 1000, 2),
            "user_id": getattr(request.state, "user_id", None),
            "ip_address": request.client.host if request.client else None,
        }

        if response.status_code >= 500:
            logger.error("request_completed_with_error", **log_data)
        elif response.status_code >= 400:
            logger.warning("request_completed_with_client_error", **log_data)
        else:
            logger.info("request_completed", **log_data)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - Referrer-Policy
    - Content-Security-Policy
    - Strict-Transport-Security (in production)
    """

    _DOCS_PATHS = {"/docs", "/redoc", "/openapi.json"}

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Swagger UI and ReDoc pull assets from cdn.jsdelivr.net
        if settings.DEBUG and request.url.path in self._DOCS_PATHS:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "img-src 'self' data: https://cdn.jsdelivr.net https://fastapi.tiangolo.com; "
                "frame-ancestors 'none';"
            )
        else:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self'; "
                "style-src 'self' 'unsafe-inline'; "
                "img-src 'self' data:; "
                "frame-ancestors 'none';"
            )

        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window limit on POST /auth/login per client IP.

    Note:
        State is per process. Multi-worker deployments need a shared store.
    """

    WINDOW_SECONDS = 60

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self._requests: dict[str, list[float]] = {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.RATE_LIMIT_ENABLED:
            return await call_next(request)

        if request.url.path == "/auth/login" and request.method == "POST":
            client_ip = request.client.host if request.client else "unknown"
            if self._is_rate_limited(client_ip, settings.LOGIN_RATE_LIMIT, self.WINDOW_SECONDS):
                security_logger.log_rate_limit_exceeded(ip_address=client_ip, endpoint=request.url.path)
                error = RateLimitError(retry_after=self.WINDOW_SECONDS)
                return JSONResponse(
                    status_code=error.status_code,
                    content={
                        "success": False,
                        "error": error.error,
                        "message": "Too many login attempts. Please try again later.",
                        "details": error.details,
                    },
                    headers={"Retry-After": str(self.WINDOW_SECONDS)},
                )

        return await call_next(request)

    def _prune(self, window_start: float) -> None:
        """Forget clients with no request inside the window."""
        stale = [key for key, stamps in self._requests.items() if not stamps or stamps[-1] <= window_start]
        for key in stale:
            del self._requests[key]

    def _is_rate_limited(self, key: str, max_requests: int, window_seconds: int) -> bool:
        current_time = time.time()
        window_start = current_time - window_seconds
        self._prune(window_start)

        recent = [ts for ts in self._requests.get(key, []) if ts > window_start]
        if len(recent) >= max_requests:
            self._requests[key] = recent
            return True

        recent.append(current_time)
        self._requests[key] = recent
        return False
