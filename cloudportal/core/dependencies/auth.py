"""
Authentication Dependencies Module
==================================

FastAPI dependencies for authentication and user extraction.

Features:
- JWT token validation
- User extraction from token
- Account status verification

Authentication failures propagate as ``PortalException`` subclasses and are
rendered by the application exception handler.

Usage:
    @router.get("/protected")
    def protected_route(user: User = Depends(get_current_user)):
        return {"user": user.email}
"""

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from cloudportal.core.exceptions import TokenInvalidError, TokenVersionMismatchError
from cloudportal.core.logging import get_logger, org_id_context, security_logger
from cloudportal.db.session import get_db
from cloudportal.models.user import User
from cloudportal.services.auth_service import AuthService

logger = get_logger(__name__)


# =====================================
# OAuth2 Scheme
# =====================================

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/login",
    auto_error=True,
    description="OAuth2 token for authentication",
)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# =====================================
# Get Current User
# =====================================

def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Validate JWT and return current user from database.

    Security checks performed:
    - Token signature validation
    - Token expiration check
    - Token type validation (must be access token)
    - Token version validation (for revocation)
    - Account status check (locked/disabled)

    Raises:
        AuthenticationError: If the token is unusable (401)
        AccountError: If the account is locked or disabled (403)
    """
    auth_service = AuthService(db)

    try:
        user = auth_service.validate_access_token(token)
    except TokenVersionMismatchError:
        security_logger.log_token_invalid(reason="token_version_mismatch", ip_address=_client_ip(request))
        raise
    except TokenInvalidError as e:
        security_logger.log_token_invalid(reason=e.details.get("reason", "invalid"), ip_address=_client_ip(request))
        raise

    request.state.user_id = user.id
    request.state.org_id = user.organization_id
    org_id_context.set(user.organization_id)

    return user

