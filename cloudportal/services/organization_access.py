"""
Organization Access Service
===========================

Resolves which organisations a user may see from their role assignments.

Each ``UserRole`` row carries a scope anchored at an organisation:

    global           -> every organisation
    reseller_estate  -> the reseller and its direct children
    organisation     -> the organisation itself

A user holding several assignments sees the union of what each reveals,
and is reported with the broadest of their scopes.
"""

from sqlalchemy.orm import Session

from cloudportal.core.enums import AccessScope, SCOPE_PRECEDENCE
from cloudportal.core.exceptions import NoRolesAssignedError, UserNotFoundError
from cloudportal.core.logging import get_logger
from cloudportal.core.tenant.scope_query import Requester, ScopedOrganizationQuery
from cloudportal.models.organization import Organization
from cloudportal.models.role import UserRole
from cloudportal.models.user import User

logger = get_logger(__name__)


class OrganizationAccessService:
    """
    Usage:
        access = OrganizationAccessService(db)
        if access.can_access_organization(user_id, "vodacom-id"):
            ...
    """

    def __init__(self, db: Session):
        self.db = db

    def _assignments(self, user_id: str) -> list[UserRole]:
        if self.db.get(User, user_id) is None:
            raise UserNotFoundError(user_id)

        assignments = (
            self.db.query(UserRole)
            .filter(UserRole.user_id == user_id)
            .order_by(UserRole.org_id, UserRole.role_id)
            .all()
        )
        if not assignments:
            raise NoRolesAssignedError(user_id)
        return assignments

    @staticmethod
    def _broadest(assignments: list[UserRole]) -> UserRole:
        return min(
            assignments,
            key=lambda assignment: SCOPE_PRECEDENCE.index(AccessScope(assignment.scope_type)),
        )

    def _scoped_query(self, user_id: str, assignments: list[UserRole]) -> ScopedOrganizationQuery:
        broadest = self._broadest(assignments)
        return ScopedOrganizationQuery(
            self.db,
            broadest.scope_type,
            broadest.org_id,
            user_id,
            grants=[(assignment.scope_type, assignment.org_id) for assignment in assignments],
        )

    def get_user_scope(self, user_id: str) -> AccessScope:
        """
        Broadest scope across the user's role assignments.

        Raises:
            UserNotFoundError: If the user does not exist
            NoRolesAssignedError: If the user has no role assignment
        """
        return AccessScope(self._broadest(self._assignments(user_id)).scope_type)

    def get_accessible_organizations(self, user_id: str) -> list[Organization]:
        """
        Organisations the user may see.

        Raises:
            UserNotFoundError: If the user does not exist
            NoRolesAssignedError: If the user has no role assignment
        """
        return self._scoped_query(user_id, self._assignments(user_id)).all()

    def can_access_organization(self, user_id: str, org_id: str) -> bool:
        """
        Whether ``org_id`` is visible to the user.

        Unknown users and users without roles get False.
        """
        try:
            assignments = self._assignments(user_id)
        except (UserNotFoundError, NoRolesAssignedError):
            return False

        return self._scoped_query(user_id, assignments).is_visible(org_id)

    def resolve_requester(self, user: User) -> Requester:
        """
        Build the requester for an authenticated user.

        The requester is reported with the broadest scope but sees the union
        of every assignment.

        Raises:
            NoRolesAssignedError: If the user has no role assignment
        """
        assignments = self._assignments(user.id)
        broadest = self._broadest(assignments)
        requester = Requester(
            user=user,
            scope=broadest.scope_type,
            org_id=broadest.org_id,
            grants=[(assignment.scope_type, assignment.org_id) for assignment in assignments],
        )
        logger.debug(
            "requester_resolved",
            user_id=user.id,
            scope=requester.scope.value,
            org_id=requester.org_id,
        )
        return requester

