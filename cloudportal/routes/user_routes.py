"""
User Routes Module
==================

Users within the requester's visible organisations and effective
permission flags.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cloudportal.core.dependencies.scope import get_requester
from cloudportal.core.tenant.scope_query import Requester, ScopedOrganizationQuery
from cloudportal.db.session import get_db
from cloudportal.models.user import User
from cloudportal.schemas import ERROR_RESPONSES, envelope
from cloudportal.services.permission_service import PermissionService

router = APIRouter(
    prefix="/api/users",
    tags=["Users"],
    responses=ERROR_RESPONSES,
)


@router.get("", summary="List Users")
def list_users(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    """Users belonging to organisations visible to the requester."""
    visible_ids = ScopedOrganizationQuery.for_requester(db, requester).id_select()
    users = (
        db.query(User)
        .filter(User.organization_id.in_(visible_ids))
        .order_by(User.email)
        .all()
    )
    return envelope(
        data=[user.to_dict() for user in users],
        message=f"Retrieved {len(users)} users",
    )


@router.get("/me/permissions", summary="Effective Permissions")
def my_permissions(
    org_id: Optional[str] = Query(default=None, alias="orgId"),
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    """
    Permission flags for the requester at ``orgId``.

    Defaults to the requester's anchor organisation. Every flag is false for
    an organisation outside the requester's scope.
    """
    target = org_id or requester.org_id
    permissions = PermissionService(db).get_user_permissions(requester.user_id, target)
    return envelope(
        data=permissions.model_dump(),
        message="Permissions retrieved successfully",
        organisationId=target,
    )
