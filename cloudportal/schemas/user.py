"""
User Schemas Module
===================

Pydantic models for user and permission responses.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class RoleSummary(BaseModel):
    """Role assignment as seen by the client."""

    id: str
    name: str
    org_id: str = Field(..., alias="orgId")
    scope: str
    permissions: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class UserPermissions(BaseModel):
    """Effective permission flags for a user at an organisation."""

    can_create_vm: bool = False
    can_delete_vm: bool = False
    can_view_billing: bool = False
    can_manage_users: bool = False
    can_view_reports: bool = False
    can_manage_organization: bool = False
    can_access_global_data: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "can_create_vm": False,
                "can_delete_vm": False,
                "can_view_billing": True,
                "can_manage_users": True,
                "can_view_reports": True,
                "can_manage_organization": True,
                "can_access_global_data": False
            }
        }
    )


class CurrentUserResponse(BaseModel):
    """Authenticated user with resolved scope."""

    id: str
    email: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    user_type: str = Field(..., alias="userType")
    organization_id: str = Field(..., alias="organizationId")
    organization_name: Optional[str] = Field(default=None, alias="organizationName")
    scope: str
    roles: list[RoleSummary] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)
