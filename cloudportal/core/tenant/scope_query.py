"""
Scoped Organisation Query Module
================================

Visibility of organisations in the reseller hierarchy.

Scopes:
- GLOBAL: every organisation
- RESELLER_ESTATE: the reseller and its direct children
- ORGANISATION: the organisation itself

Security:
- Filtering happens in SQL, never after loading the full table
- Out-of-scope lookups are logged as tenant isolation violations
"""

from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import Select, case, func, or_, select
from sqlalchemy.orm import Query, Session, aliased

from cloudportal.core.enums import AccessScope, OrganizationType
from cloudportal.core.exceptions import OrganizationNotFoundError, TenantIsolationError
from cloudportal.core.logging import get_logger, security_logger
from cloudportal.models.organization import Organization
from cloudportal.models.user import User
from cloudportal.schemas.organization import EstateSummary

logger = get_logger(__name__)


Grant = tuple[AccessScope, str]


def _normalise_grants(grants: Optional[Iterable[Grant]], scope: AccessScope, org_id: str) -> list[Grant]:
    if not grants:
        return [(AccessScope(scope), org_id)]
    return [(AccessScope(grant_scope), grant_org_id) for grant_scope, grant_org_id in grants]


class Requester:
    """
    Authenticated caller with the scope resolved from their role assignments.

    ``org_id`` is the organisation the scope is anchored at: the reseller for
    RESELLER_ESTATE, the customer for ORGANISATION, the root for GLOBAL.
    ``grants`` holds every ``(scope, org_id)`` assignment; visibility is the
    union over them. It defaults to the single anchored scope.
    """

    def __init__(
        self,
        user: User,
        scope: AccessScope,
        org_id: str,
        grants: Optional[Iterable[Grant]] = None,
    ):
        self.user = user
        self.scope = AccessScope(scope)
        self.org_id = org_id
        self.grants = _normalise_grants(grants, self.scope, org_id)

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def is_global(self) -> bool:
        return self.scope == AccessScope.GLOBAL

    def __repr__(self) -> str:
        return f"<Requester(user_id={self.user_id}, scope={self.scope.value}, org_id={self.org_id})>"


class ScopedOrganizationQuery:
    """
    Helper class for scope-filtered organisation queries.

    Usage:
        query = ScopedOrganizationQuery(db, AccessScope.RESELLER_ESTATE, "techpro-reseller-001")
        organisations = query.all()
    """

    def __init__(
        self,
        db: Session,
        scope: AccessScope,
        org_id: str,
        user_id: Optional[str] = None,
        grants: Optional[Iterable[Grant]] = None,
    ):
        """
        Args:
            db: Database session
            scope: Access scope to apply
            org_id: Organisation the scope is anchored at
            user_id: Acting user, for security logging only
            grants: Every ``(scope, org_id)`` assignment to union over;
                defaults to ``(scope, org_id)`` alone
        """
        self.db = db
        self.scope = AccessScope(scope)
        self.org_id = org_id
        self.user_id = user_id
        self.grants = _normalise_grants(grants, self.scope, org_id)

    @classmethod
    def for_requester(cls, db: Session, requester: Requester) -> "ScopedOrganizationQuery":
        return cls(
            db,
            requester.scope,
            requester.org_id,
            user_id=requester.user_id,
            grants=requester.grants,
        )

    @staticmethod
    def _grant_criterion(scope: AccessScope, org_id: str):
        if scope == AccessScope.RESELLER_ESTATE:
            return or_(
                Organization.id == org_id,
                Organization.parent_id == org_id,
            )
        return Organization.id == org_id

    def _scope_criterion(self):
        if any(scope == AccessScope.GLOBAL for scope, _ in self.grants):
            return None
        criteria = [self._grant_criterion(scope, org_id) for scope, org_id in self.grants]
        if len(criteria) == 1:
            return criteria[0]
        return or_(*criteria)

    def filter_by_scope(self) -> Query:
        """
        Get organisations visible in this scope.

        The anchor organisation comes first, the rest ordered by name.
        A reseller scope anchored at an unknown id matches nothing.

        Returns:
            Filtered SQLAlchemy query
        """
        query = self.db.query(Organization)
        criterion = self._scope_criterion()
        if criterion is not None:
            query = query.filter(criterion)
        return query.order_by(
            case((Organization.id == self.org_id, 0), else_=1),
            Organization.name,
        )

    def all(self) -> list[Organization]:
        return self.filter_by_scope().all()

    def id_select(self) -> Select:
        """Ids of visible organisations, for use in IN clauses."""
        statement = select(Organization.id)
        criterion = self._scope_criterion()
        if criterion is not None:
            statement = statement.where(criterion)
        return statement

    def is_visible(self, org_id: str) -> bool:
        criterion = self._scope_criterion()
        query = self.db.query(Organization.id).filter(Organization.id == org_id)
        if criterion is not None:
            query = query.filter(criterion)
        return query.first() is not None

    def get_by_id(self, org_id: str) -> Organization:
        """
        Get an organisation by ID with scope validation.

        Raises:
            OrganizationNotFoundError: If no such organisation exists
            TenantIsolationError: If it exists outside the scope
        """
        organization = self.db.get(Organization, org_id)
        if organization is None:
            raise OrganizationNotFoundError(org_id)

        if not self.is_visible(org_id):
            security_logger.log_tenant_isolation_violation(
                user_id=str(self.user_id),
                user_org=self.org_id,
                target_org=org_id,
                resource=Organization.__tablename__,
            )
            raise TenantIsolationError(org_id)

        return organization


# =====================================
# Hierarchy
# =====================================

def build_hierarchy(
    organizations: Iterable[Organization],
    parent_id: Optional[str] = None,
) -> list[dict]:
    """
    Nest organisations under their parents.

    Starts at the records whose ``parent_id`` equals ``parent_id``. Records
    whose parent is not part of ``organizations`` are left out.

    Args:
        organizations: Flat list of organisations
        parent_id: Parent of the top level nodes (None for the root)

    Returns:
        List of organisation dicts, each with a ``children`` list
    """
    by_parent: dict[Optional[str], list[Organization]] = {}
    for organization in organizations:
        by_parent.setdefault(organization.parent_id, []).append(organization)

    def _branch(key: Optional[str], seen: frozenset) -> list[dict]:
        nodes = []
        for organization in by_parent.get(key, []):
            if organization.id in seen:
                continue
            node = organization.to_dict()
            node["children"] = _branch(organization.id, seen | {organization.id})
            nodes.append(node)
        return nodes

    return _branch(parent_id, frozenset())


# =====================================
# Dashboard Summary
# =====================================

def estate_summary(db: Session, requester: Requester) -> EstateSummary:
    """
    Dashboard figures for the requester's estate.

    Global: reseller count, customers under resellers, customers attached to
    the root directly, summed reseller revenue and commission.
    Reseller: own revenue, commission and customer count.
    Customer: own organisation only.
    """
    anchor = db.get(Organization, requester.org_id)
    if anchor is None:
        raise OrganizationNotFoundError(requester.org_id)

    summary = EstateSummary(
        scope=requester.scope.value,
        organisation_id=anchor.id,
        organisation_name=anchor.name,
    )

    if requester.scope == AccessScope.GLOBAL:
        parent = aliased(Organization)
        reseller_count, revenue, commission = (
            db.query(
                func.count(Organization.id),
                func.coalesce(func.sum(Organization.total_revenue), 0),
                func.coalesce(func.sum(Organization.monthly_commission), 0),
            )
            .filter(Organization.type == OrganizationType.RESELLER.value)
            .one()
        )
        total_customers = (
            db.query(func.count(Organization.id))
            .join(parent, Organization.parent_id == parent.id)
            .filter(
                Organization.type == OrganizationType.CUSTOMER.value,
                parent.type == OrganizationType.RESELLER.value,
            )
            .scalar()
        )
        direct_customers = (
            db.query(func.count(Organization.id))
            .join(parent, Organization.parent_id == parent.id)
            .filter(
                Organization.type == OrganizationType.CUSTOMER.value,
                parent.type == OrganizationType.INTERNAL.value,
            )
            .scalar()
        )
        summary.reseller_count = reseller_count
        summary.total_customers = total_customers or 0
        summary.direct_customers = direct_customers or 0
        summary.total_revenue = float(Decimal(str(revenue)))
        summary.total_monthly_commission = float(Decimal(str(commission)))

    elif requester.scope == AccessScope.RESELLER_ESTATE:
        summary.total_customers = anchor.customer_count
        summary.total_revenue = float(anchor.total_revenue or 0)
        summary.total_monthly_commission = float(anchor.monthly_commission or 0)

    logger.debug("estate_summary_built", scope=requester.scope.value, org_id=anchor.id)
    return summary


__all__ = [
    "Grant",
    "Requester",
    "ScopedOrganizationQuery",
    "build_hierarchy",
    "estate_summary",
]
