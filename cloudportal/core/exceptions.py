"""
Centralized Exception Handling Module
=====================================

Defines custom exception classes for the application.

Every exception carries an HTTP status code, a short ``error`` label and a
human readable ``message``. The application exception handler renders them
into the standard response envelope:

    {"success": false, "error": "...", "message": "...", "details": {...}}

Usage:
    raise CrossResellerAccessError()
    raise OrganizationNotFoundError("vodacom-id")
"""

from typing import Any, Dict, Optional
from fastapi import status


class PortalException(Exception):
    """
    Base exception class for the portal application.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error: str = "Request failed",
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error = error
        super().__init__(self.message)


# ==========================
# Authentication Exceptions
# ==========================

class AuthenticationError(PortalException):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Could not validate credentials",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
            error="Authentication failed",
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self):
        super().__init__(message="Invalid email or password")


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    def __init__(self, token_type: str = "access"):
        super().__init__(
            message=f"{token_type.capitalize()} token has expired",
            details={"token_type": token_type}
        )


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT token is invalid."""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(
            message="Invalid token",
            details={"reason": reason}
        )


class TokenVersionMismatchError(AuthenticationError):
    """Raised when token version doesn't match user's current version."""

    def __init__(self):
        super().__init__(
            message="Token has been invalidated. Please log in again."
        )


# ==========================
# Authorization Exceptions
# ==========================

class AuthorizationError(PortalException):
    """Raised when user lacks required permissions."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        details: Optional[Dict[str, Any]] = None,
        error: str = "Forbidden",
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
            error=error,
        )


class RoleNotAuthorizedError(AuthorizationError):
    """Raised when none of the user's roles grants the required permission."""

    def __init__(self, required_permission: str):
        super().__init__(
            message="Your role is not authorized for this action",
            details={"required_permission": required_permission}
        )


class TenantIsolationError(AuthorizationError):
    """Raised when a resource lies outside the requester's organisation scope."""

    def __init__(self, org_id: Optional[str] = None):
        details = {"organization_id": org_id} if org_id else None
        super().__init__(
            message="Access denied: resource belongs to different organization",
            details=details,
        )


class CrossResellerAccessError(AuthorizationError):
    """Raised when a reseller asks for another reseller's customers."""

    def __init__(self, reseller_id: Optional[str] = None):
        details = {"reseller_id": reseller_id} if reseller_id else None
        super().__init__(
            message="You can only access your own customers",
            details=details,
            error="Unauthorized access",
        )


class NoRolesAssignedError(AuthorizationError):
    """Raised when a user has no role assignment and therefore no scope."""

    def __init__(self, user_id: Optional[str] = None):
        details = {"user_id": user_id} if user_id else None
        super().__init__(message="User has no assigned roles", details=details)


# ==========================
# Account Status Exceptions
# ==========================

class AccountError(PortalException):
    """Base exception for account-related issues."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_403_FORBIDDEN,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            details=details,
            error="Account unavailable",
        )


class AccountLockedError(AccountError):
    """Raised when account is locked due to failed attempts."""

    def __init__(self):
        super().__init__(
            message="Account is locked due to multiple failed login attempts. "
                    "Please contact your administrator or try again later."
        )


class AccountDisabledError(AccountError):
    """Raised when account is disabled."""

    def __init__(self):
        super().__init__(
            message="Account has been disabled. Please contact your administrator."
        )


# ==========================
# Resource Exceptions
# ==========================

class NotFoundError(PortalException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None):
        message = f"{resource} not found"
        details = {"resource": resource}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error="Not found",
        )


class UserNotFoundError(NotFoundError):
    """Raised when a user is not found."""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="User", identifier=identifier)


class OrganizationNotFoundError(NotFoundError):
    """Raised when an organization is not found."""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="Organization", identifier=identifier)


class WalletNotFoundError(NotFoundError):
    """Raised when an organization has no wallet."""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="Wallet", identifier=identifier)
        self.message = "Organisation does not have a wallet. Please set up wallet first."


# ==========================
# Validation Exceptions
# ==========================

class ValidationError(PortalException):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            error="Validation error",
        )


class EmailAlreadyExistsError(ValidationError):
    """Raised when attempting to create a user with an existing email."""

    def __init__(self):
        super().__init__(
            message="An account with this email already exists"
        )


class OrganizationNameExistsError(ValidationError):
    """Raised when organization name is already taken."""

    def __init__(self):
        super().__init__(
            message="An organization with this name already exists"
        )


# ==========================
# Billing Exceptions
# ==========================

class InsufficientFundsError(PortalException):
    """Raised when the wallet cannot cover a provisioning request."""

    def __init__(self, message: str, shortfall: Optional[str] = None):
        details = {"shortfall": shortfall} if shortfall is not None else None
        super().__init__(
            message=message,
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details=details,
            error="Insufficient funds",
        )


# ==========================
# Rate Limiting Exceptions
# ==========================

class RateLimitError(PortalException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            message="Too many requests. Please try again later.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"retry_after_seconds": retry_after},
            error="Rate limited",
        )
