"""
Permission Service Unit Tests
=============================

Tests for role permissions applied at organisations in scope.
"""

import pytest
from sqlalchemy.orm import Session

from cloudportal.core.exceptions import UserNotFoundError
from cloudportal.models.role import Role
from cloudportal.services.permission_service import (
    PERMISSIONS,
    PermissionId,
    PermissionService,
    RoleId,
)

from conftest import (
    CLOUDTECH_ADMIN_ID,
    CUSTOMER_ADMIN_ID,
    DISCOVERY_ID,
    ENGINEER_ID,
    MTN_ID,
    PLATFORM_ADMIN_ID,
    READ_ONLY_ID,
    VODACOM_ID,
)


pytestmark = pytest.mark.rbac


class TestRoleCatalogue:
    """Tests for the seeded roles."""

    def test_root_role_holds_every_permission(self, db_session: Session):
        root = db_session.get(Role, RoleId.ROOT)
        assert root.permission_ids == {permission[0] for permission in PERMISSIONS}

    def test_read_only_role_name(self, db_session: Session):
        assert db_session.get(Role, RoleId.READ_ONLY).name == "Read Only User"


class TestGetUserRoles:
    """Tests for PermissionService.get_user_roles."""

    def test_customer_admin_has_org_admin_role(self, db_session: Session):
        roles = PermissionService(db_session).get_user_roles(CUSTOMER_ADMIN_ID)
        assert [role.id for role in roles] == [RoleId.ORG_ADMIN]

    def test_unknown_user_raises(self, db_session: Session):
        with pytest.raises(UserNotFoundError):
            PermissionService(db_session).get_user_roles("ghost-user")


class TestGetUserPermissions:
    """Tests for PermissionService.get_user_permissions."""

    def test_platform_admin_has_everything_everywhere(self, db_session: Session):
        # Act
        permissions = PermissionService(db_session).get_user_permissions(PLATFORM_ADMIN_ID, DISCOVERY_ID)

        # Assert
        assert all(permissions.model_dump().values())

    def test_customer_admin_at_own_organisation(self, db_session: Session):
        # Act
        permissions = PermissionService(db_session).get_user_permissions(CUSTOMER_ADMIN_ID, VODACOM_ID)

        # Assert
        assert permissions.can_view_billing is True
        assert permissions.can_manage_users is True
        assert permissions.can_manage_organization is True
        assert permissions.can_create_vm is False
        assert permissions.can_access_global_data is False

    def test_no_permissions_outside_scope(self, db_session: Session):
        # Act
        permissions = PermissionService(db_session).get_user_permissions(CUSTOMER_ADMIN_ID, MTN_ID)

        # Assert
        assert not any(permissions.model_dump().values())

    def test_read_only_user_can_only_view_reports(self, db_session: Session):
        # Act
        permissions = PermissionService(db_session).get_user_permissions(READ_ONLY_ID, MTN_ID)

        # Assert
        flags = permissions.model_dump()
        assert flags.pop("can_view_reports") is True
        assert not any(flags.values())

    def test_engineer_manages_vms_but_not_billing(self, db_session: Session):
        # Act
        permissions = PermissionService(db_session).get_user_permissions(ENGINEER_ID, VODACOM_ID)

        # Assert
        assert permissions.can_create_vm is True
        assert permissions.can_delete_vm is True
        assert permissions.can_view_billing is False


class TestHasPermission:
    """Tests for PermissionService.has_permission."""

    def test_reseller_admin_can_manage_organisations(self, db_session: Session):
        assert PermissionService(db_session).has_permission(CLOUDTECH_ADMIN_ID, PermissionId.ORG_MANAGE)

    def test_permission_denied_at_foreign_organisation(self, db_session: Session):
        assert not PermissionService(db_session).has_permission(
            CLOUDTECH_ADMIN_ID, PermissionId.BILLING_VIEW, org_id=DISCOVERY_ID
        )

    def test_missing_permission(self, db_session: Session):
        assert not PermissionService(db_session).has_permission(READ_ONLY_ID, PermissionId.BILLING_VIEW)
