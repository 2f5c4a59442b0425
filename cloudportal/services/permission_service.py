"""
Permission Service
==================

Role-based permissions with organisation-scoped access.

- Roles bundle permissions (Root, Engineer, Organization Admin,
  Reseller Admin, Read Only User)
- A user's permissions are the union over all their roles
- Permissions apply only at organisations the user can access
"""

from typing import Optional

from sqlalchemy.orm import Session

from cloudportal.core.exceptions import UserNotFoundError
from cloudportal.models.role import Role, UserRole
from cloudportal.models.user import User
from cloudportal.schemas.user import UserPermissions
from cloudportal.services.organization_access import OrganizationAccessService


# ==========================
# Catalogue
# ==========================

class PermissionId:
    """Permission identifiers."""
    VM_CREATE = "vm-create"
    VM_DELETE = "vm-delete"
    BILLING_VIEW = "billing-view"
    USER_MANAGE = "user-manage"
    REPORT_VIEW = "report-view"
    ORG_MANAGE = "org-manage"
    GLOBAL_ACCESS = "global-access"


# (id, name, resource, action)
PERMISSIONS = [
    (PermissionId.VM_CREATE, "Create VM", "vm", "create"),
    (PermissionId.VM_DELETE, "Delete VM", "vm", "delete"),
    (PermissionId.BILLING_VIEW, "View Billing", "billing", "view"),
    (PermissionId.USER_MANAGE, "Manage Users", "user", "manage"),
    (PermissionId.REPORT_VIEW, "View Reports", "report", "view"),
    (PermissionId.ORG_MANAGE, "Manage Organization", "organization", "manage"),
    (PermissionId.GLOBAL_ACCESS, "Global Access", "global", "access"),
]

_ADMIN_PERMISSIONS = [
    PermissionId.BILLING_VIEW,
    PermissionId.USER_MANAGE,
    PermissionId.REPORT_VIEW,
    PermissionId.ORG_MANAGE,
]


class RoleId:
    ROOT = "root-role"
    ENGINEER = "engineer-role"
    ORG_ADMIN = "org-admin-role"
    RESELLER_ADMIN = "reseller-admin-role"
    READ_ONLY = "readonly-role"


# role id -> (name, permission ids)
ROLE_DEFINITIONS = {
    RoleId.ROOT: ("Root", [permission[0] for permission in PERMISSIONS]),
    RoleId.ENGINEER: ("Engineer", [PermissionId.VM_CREATE, PermissionId.VM_DELETE]),
    RoleId.ORG_ADMIN: ("Organization Admin", list(_ADMIN_PERMISSIONS)),
    RoleId.RESELLER_ADMIN: ("Reseller Admin", list(_ADMIN_PERMISSIONS)),
    RoleId.READ_ONLY: ("Read Only User", [PermissionId.REPORT_VIEW]),
}

# permission id -> UserPermissions flag
PERMISSION_FLAGS = {
    PermissionId.VM_CREATE: "can_create_vm",
    PermissionId.VM_DELETE: "can_delete_vm",
    PermissionId.BILLING_VIEW: "can_view_billing",
    PermissionId.USER_MANAGE: "can_manage_users",
    PermissionId.REPORT_VIEW: "can_view_reports",
    PermissionId.ORG_MANAGE: "can_manage_organization",
    PermissionId.GLOBAL_ACCESS: "can_access_global_data",
}


class PermissionService:
    """
    Usage:
        permissions = PermissionService(db).get_user_permissions(user_id, org_id)
        if permissions.can_view_billing:
            ...
    """

    def __init__(self, db: Session):
        self.db = db
        self.access = OrganizationAccessService(db)

    def get_user_roles(self, user_id: str) -> list[Role]:
        """
        Roles assigned to the user, without duplicates.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        if self.db.get(User, user_id) is None:
            raise UserNotFoundError(user_id)

        return (
            self.db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id)
            .distinct()
            .order_by(Role.name)
            .all()
        )

    def _permission_ids(self, user_id: str) -> set[str]:
        granted: set[str] = set()
        for role in self.get_user_roles(user_id):
            granted |= role.permission_ids
        return granted

    def get_user_permissions(self, user_id: str, org_id: str) -> UserPermissions:
        """
        Effective permissions of the user at ``org_id``.

        Every flag is False when the organisation is outside the user's
        scope.
        """
        if not self.access.can_access_organization(user_id, org_id):
            return UserPermissions()

        granted = self._permission_ids(user_id)
        return UserPermissions(**{
            flag: permission in granted
            for permission, flag in PERMISSION_FLAGS.items()
        })

    def has_permission(self, user_id: str, permission: str, org_id: Optional[str] = None) -> bool:
        """Whether any role grants ``permission`` (at ``org_id`` if given)."""
        if org_id is not None and not self.access.can_access_organization(user_id, org_id):
            return False
        return permission in self._permission_ids(user_id)
