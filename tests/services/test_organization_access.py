"""
Organization Access Service Unit Tests
======================================

Tests for scope resolution from role assignments:
- get_user_scope
- get_accessible_organizations
- can_access_organization
- resolve_requester
"""

import pytest
from sqlalchemy.orm import Session

from cloudportal.core.enums import AccessScope
from cloudportal.core.exceptions import NoRolesAssignedError, UserNotFoundError
from cloudportal.models.role import UserRole
from cloudportal.models.user import User
from cloudportal.services.organization_access import OrganizationAccessService
from cloudportal.services.permission_service import RoleId

from conftest import (
    CLOUDTECH_ADMIN_ID,
    CLOUDTECH_ID,
    CUSTOMER_ADMIN_ID,
    DEMO_PASSWORD_HASH,
    DISCOVERY_ID,
    MTN_ID,
    PLATFORM_ADMIN_ID,
    ROOT_ORG_ID,
    VODACOM_ID,
)


pytestmark = pytest.mark.scope


def _user_without_roles(db_session: Session) -> User:
    user = User(
        id="no-roles-user",
        email="nobody@vodacom.co.za",
        first_name="No",
        last_name="Roles",
        organization_id=VODACOM_ID,
        hashed_password=DEMO_PASSWORD_HASH,
    )
    db_session.add(user)
    db_session.commit()
    return user


class TestGetUserScope:
    """Tests for OrganizationAccessService.get_user_scope."""

    @pytest.mark.parametrize(
        "user_id,expected",
        [
            (PLATFORM_ADMIN_ID, AccessScope.GLOBAL),
            (CLOUDTECH_ADMIN_ID, AccessScope.RESELLER_ESTATE),
            (CUSTOMER_ADMIN_ID, AccessScope.ORGANISATION),
        ],
    )
    def test_scope_per_demo_user(self, db_session: Session, user_id: str, expected: AccessScope):
        assert OrganizationAccessService(db_session).get_user_scope(user_id) == expected

    def test_broadest_scope_wins(self, db_session: Session):
        # Arrange
        db_session.add(UserRole(
            user_id=CUSTOMER_ADMIN_ID,
            role_id=RoleId.RESELLER_ADMIN,
            org_id=CLOUDTECH_ID,
            scope_type=AccessScope.RESELLER_ESTATE.value,
        ))
        db_session.commit()

        # Act
        scope = OrganizationAccessService(db_session).get_user_scope(CUSTOMER_ADMIN_ID)

        # Assert
        assert scope == AccessScope.RESELLER_ESTATE

    def test_unknown_user_raises(self, db_session: Session):
        with pytest.raises(UserNotFoundError):
            OrganizationAccessService(db_session).get_user_scope("ghost-user")

    def test_user_without_roles_raises(self, db_session: Session):
        # Arrange
        user = _user_without_roles(db_session)

        # Act & Assert
        with pytest.raises(NoRolesAssignedError) as exc_info:
            OrganizationAccessService(db_session).get_user_scope(user.id)

        assert exc_info.value.status_code == 403


class TestGetAccessibleOrganizations:
    """Tests for OrganizationAccessService.get_accessible_organizations."""

    def test_reseller_admin_sees_estate(self, db_session: Session):
        # Act
        organisations = OrganizationAccessService(db_session).get_accessible_organizations(CLOUDTECH_ADMIN_ID)

        # Assert
        assert {org.id for org in organisations} == {CLOUDTECH_ID, VODACOM_ID, MTN_ID}

    def test_customer_sees_only_own_organisation(self, db_session: Session):
        # Act
        organisations = OrganizationAccessService(db_session).get_accessible_organizations(CUSTOMER_ADMIN_ID)

        # Assert
        assert [org.id for org in organisations] == [VODACOM_ID]

    def test_multiple_assignments_are_unioned(self, db_session: Session):
        # Arrange
        db_session.add(UserRole(
            user_id=CUSTOMER_ADMIN_ID,
            role_id=RoleId.READ_ONLY,
            org_id=DISCOVERY_ID,
            scope_type=AccessScope.ORGANISATION.value,
        ))
        db_session.commit()

        # Act
        organisations = OrganizationAccessService(db_session).get_accessible_organizations(CUSTOMER_ADMIN_ID)

        # Assert
        assert {org.id for org in organisations} == {VODACOM_ID, DISCOVERY_ID}

    def test_global_user_sees_root(self, db_session: Session):
        # Act
        organisations = OrganizationAccessService(db_session).get_accessible_organizations(PLATFORM_ADMIN_ID)

        # Assert
        assert organisations[0].id == ROOT_ORG_ID


class TestCanAccessOrganization:
    """Tests for OrganizationAccessService.can_access_organization."""

    def test_reseller_can_access_own_customer(self, db_session: Session):
        assert OrganizationAccessService(db_session).can_access_organization(CLOUDTECH_ADMIN_ID, VODACOM_ID)

    def test_reseller_cannot_access_other_estate(self, db_session: Session):
        assert not OrganizationAccessService(db_session).can_access_organization(CLOUDTECH_ADMIN_ID, DISCOVERY_ID)

    def test_customer_cannot_access_sibling(self, db_session: Session):
        assert not OrganizationAccessService(db_session).can_access_organization(CUSTOMER_ADMIN_ID, MTN_ID)

    def test_unknown_user_gets_false(self, db_session: Session):
        assert OrganizationAccessService(db_session).can_access_organization("ghost-user", VODACOM_ID) is False

    def test_user_without_roles_gets_false(self, db_session: Session):
        user = _user_without_roles(db_session)
        assert OrganizationAccessService(db_session).can_access_organization(user.id, VODACOM_ID) is False


class TestResolveRequester:
    """Tests for OrganizationAccessService.resolve_requester."""

    def test_reseller_requester_is_anchored_at_reseller(self, db_session: Session, cloudtech_admin: User):
        # Act
        requester = OrganizationAccessService(db_session).resolve_requester(cloudtech_admin)

        # Assert
        assert requester.scope == AccessScope.RESELLER_ESTATE
        assert requester.org_id == CLOUDTECH_ID
        assert requester.user_id == CLOUDTECH_ADMIN_ID
        assert requester.is_global is False

    def test_global_requester(self, db_session: Session, platform_admin: User):
        requester = OrganizationAccessService(db_session).resolve_requester(platform_admin)
        assert requester.is_global is True

    def test_requester_carries_every_assignment(self, db_session: Session, cloudtech_admin: User):
        # Arrange
        db_session.add(UserRole(
            user_id=CLOUDTECH_ADMIN_ID,
            role_id=RoleId.READ_ONLY,
            org_id=DISCOVERY_ID,
            scope_type=AccessScope.ORGANISATION.value,
        ))
        db_session.commit()
        service = OrganizationAccessService(db_session)

        # Act
        requester = service.resolve_requester(cloudtech_admin)

        # Assert
        assert requester.scope == AccessScope.RESELLER_ESTATE
        assert set(requester.grants) == {
            (AccessScope.RESELLER_ESTATE, CLOUDTECH_ID),
            (AccessScope.ORGANISATION, DISCOVERY_ID),
        }
        assert service.can_access_organization(CLOUDTECH_ADMIN_ID, DISCOVERY_ID) is True
