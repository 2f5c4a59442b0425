"""
Authentication Routes Module
============================

Handles:
- User login with account lockout protection
- Token refresh
- Logout (token invalidation)
- Current user profile with resolved scope

Errors raised by the auth service propagate as ``PortalException`` and are
rendered by the application exception handler.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cloudportal.core.dependencies.auth import get_current_user
from cloudportal.core.dependencies.scope import get_requester
from cloudportal.core.logging import get_logger
from cloudportal.core.tenant.scope_query import Requester
from cloudportal.db.session import get_db
from cloudportal.models.user import User
from cloudportal.schemas import (
    CurrentUserResponse,
    ErrorResponse,
    LoginRequest,
    LogoutResponse,
    RefreshTokenRequest,
    RoleSummary,
    TokenResponse,
    envelope,
)
from cloudportal.services.auth_service import AuthService

logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"model": ErrorResponse, "description": "Authentication failed"},
        403: {"model": ErrorResponse, "description": "Access forbidden"},
    },
)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User Login",
    description="""
    Authenticate user with email and password.

    Security features:
    - Account locks after MAX_LOGIN_ATTEMPTS failed attempts
    - Rate limited per IP
    - All attempts are logged
    """,
    responses={429: {"model": ErrorResponse, "description": "Too many requests"}},
)
def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db),
) -> dict:
    client_ip = request.client.host if request.client else "unknown"
    user, tokens = AuthService(db).authenticate_user(
        email=login_data.email,
        password=login_data.password,
        ip_address=client_ip,
    )
    logger.info("user_logged_in", user_id=user.id, org_id=user.organization_id)
    return tokens


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh Access Token",
)
def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db),
) -> dict:
    """Exchange a refresh token for a new token pair."""
    return AuthService(db).refresh_tokens(refresh_data.refresh_token)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Logout",
)
def logout(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LogoutResponse:
    """Invalidate all of the user's tokens by bumping the token version."""
    AuthService(db).logout(current_user)
    return LogoutResponse()


@router.get(
    "/me",
    summary="Current User",
)
def me(requester: Requester = Depends(get_requester)) -> dict:
    """
    Authenticated user with scope and role assignments.

    Returns:
        Envelope with CurrentUserResponse data
    """
    user = requester.user
    roles = [
        RoleSummary(
            id=assignment.role.id,
            name=assignment.role.name,
            org_id=assignment.org_id,
            scope=getattr(assignment.scope_type, "value", assignment.scope_type),
            permissions=sorted(assignment.role.permission_ids),
        )
        for assignment in user.role_assignments
    ]
    profile = CurrentUserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        user_type=getattr(user.user_type, "value", user.user_type),
        organization_id=user.organization_id,
        organization_name=user.organization.name if user.organization else None,
        scope=requester.scope.value,
        roles=roles,
    )
    return envelope(
        data=profile.model_dump(by_alias=True),
        message="Current user retrieved successfully",
    )
