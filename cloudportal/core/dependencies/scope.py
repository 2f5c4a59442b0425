"""
Scope & Permission Dependencies Module
======================================

FastAPI dependencies resolving the requester's organisation scope and
enforcing role permissions.

Usage:
    @router.get("/billing")
    def billing(
        requester: Requester = Depends(get_requester),
        _: None = Depends(require_permission(PermissionId.BILLING_VIEW)),
    ):
        ...
"""

from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cloudportal.core.exceptions import AuthorizationError, RoleNotAuthorizedError
from cloudportal.core.dependencies.auth import get_current_user
from cloudportal.core.logging import get_logger, security_logger
from cloudportal.core.tenant.scope_query import Requester
from cloudportal.db.session import get_db
from cloudportal.models.user import User
from cloudportal.services.organization_access import OrganizationAccessService
from cloudportal.services.permission_service import PermissionService

logger = get_logger(__name__)


def get_requester(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Requester:
    """
    Resolve the authenticated user's scope.

    Raises:
        NoRolesAssignedError: If the user has no role assignment (403)
    """
    return OrganizationAccessService(db).resolve_requester(current_user)


def require_global_scope(
    request: Request,
    requester: Requester = Depends(get_requester),
) -> Requester:
    """Allow only platform staff with global scope."""
    if not requester.is_global:
        security_logger.log_unauthorized_access(
            user_id=requester.user_id,
            resource=request.url.path,
            action=request.method,
        )
        raise AuthorizationError(
            message="Global access required",
            details={"scope": requester.scope.value},
        )
    return requester


def require_permission(permission: str) -> Callable:
    """
    Create a dependency that requires a role permission.

    Args:
        permission: Permission id, e.g. ``billing-view``

    Returns:
        Dependency function returning the requester
    """
    def permission_checker(
        request: Request,
        requester: Requester = Depends(get_requester),
        db: Session = Depends(get_db),
    ) -> Requester:
        if not PermissionService(db).has_permission(requester.user_id, permission):
            security_logger.log_unauthorized_access(
                user_id=requester.user_id,
                resource=request.url.path,
                action=request.method,
            )
            logger.warning(
                "permission_denied",
                required_permission=permission,
                path=request.url.path,
            )
            raise RoleNotAuthorizedError(permission)
        return requester

    return permission_checker
