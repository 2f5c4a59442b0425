"""
Reseller Service Module
=======================

Reseller estate operations:
- List resellers (platform staff)
- List a reseller's customers
- Customer details (organisation, users, wallet status)
- Onboard a new customer under a reseller

Security:
- A requester without global scope may only act on the reseller they
  administer; anything else is a cross-reseller access attempt (403)
"""

from typing import Optional

from sqlalchemy.orm import Session

from cloudportal.core.config import settings
from cloudportal.core.enums import AccessScope, OrganizationType, UserType
from cloudportal.core.exceptions import (
    CrossResellerAccessError,
    EmailAlreadyExistsError,
    OrganizationNameExistsError,
    OrganizationNotFoundError,
)
from cloudportal.core.logging import audit_logger, get_logger, log_execution_time, security_logger
from cloudportal.core.tenant.scope_query import Requester, ScopedOrganizationQuery
from cloudportal.models.organization import Organization
from cloudportal.models.role import UserRole
from cloudportal.models.user import User
from cloudportal.models.wallet import Wallet
from cloudportal.schemas.organization import OnboardCustomerRequest, OnboardedOrganisation
from cloudportal.services.auth_service import AuthService
from cloudportal.services.permission_service import RoleId

logger = get_logger(__name__)


class ResellerService:
    """
    Usage:
        service = ResellerService(db)
        customers = service.get_reseller_customers("techpro-reseller-001", requester)
    """

    def __init__(self, db: Session):
        self.db = db

    # --------------------------
    # Guards
    # --------------------------

    def _check_reseller_access(self, reseller_id: str, requester: Requester, action: str) -> None:
        if requester.is_global:
            return
        if (AccessScope.RESELLER_ESTATE, reseller_id) in requester.grants:
            return

        security_logger.log_tenant_isolation_violation(
            user_id=requester.user_id,
            user_org=requester.org_id,
            target_org=reseller_id,
            resource=action,
        )
        raise CrossResellerAccessError(reseller_id)

    def _get_reseller(self, reseller_id: str) -> Organization:
        reseller = self.db.get(Organization, reseller_id)
        if reseller is None or reseller.type != OrganizationType.RESELLER:
            raise OrganizationNotFoundError(reseller_id)
        return reseller

    # --------------------------
    # Queries
    # --------------------------

    def list_resellers(self) -> list[Organization]:
        return (
            self.db.query(Organization)
            .filter(Organization.type == OrganizationType.RESELLER.value)
            .order_by(Organization.created_at, Organization.name)
            .all()
        )

    def get_reseller_customers(self, reseller_id: str, requester: Requester) -> list[Organization]:
        """
        Customers directly under ``reseller_id``.

        Raises:
            CrossResellerAccessError: If the requester does not administer the reseller
            OrganizationNotFoundError: If no such reseller exists
        """
        self._check_reseller_access(reseller_id, requester, "reseller_customers")
        self._get_reseller(reseller_id)

        customers = (
            self.db.query(Organization)
            .filter(
                Organization.parent_id == reseller_id,
                Organization.type == OrganizationType.CUSTOMER.value,
            )
            .order_by(Organization.name)
            .all()
        )
        logger.info("reseller_customers_listed", reseller_id=reseller_id, count=len(customers))
        return customers

    def get_organization_details(self, org_id: str, requester: Requester) -> dict:
        """
        Organisation with its users and wallet status.

        Raises:
            OrganizationNotFoundError: If no such organisation exists
            TenantIsolationError: If it lies outside the requester's scope
        """
        organization = ScopedOrganizationQuery.for_requester(self.db, requester).get_by_id(org_id)

        users = (
            self.db.query(User)
            .filter(User.organization_id == org_id)
            .order_by(User.email)
            .all()
        )

        wallet = organization.wallet
        wallet_status = {"hasWallet": wallet is not None}
        if wallet is not None:
            wallet_status.update({
                "balance": wallet.balance,
                "balanceInCurrency": wallet.balance / settings.TO_CENTS_FACTOR,
                "currency": wallet.currency,
                "autoTopupEnabled": wallet.auto_topup_enabled,
            })

        details = organization.to_dict()
        details["billingStatus"] = _billing_status(wallet)

        return {
            "organisation": details,
            "users": [_user_summary(user) for user in users],
            "wallet": wallet_status,
        }

    # --------------------------
    # Onboarding
    # --------------------------

    @log_execution_time(logger, "customer_onboarding")
    def onboard_customer(
        self,
        reseller_id: str,
        data: OnboardCustomerRequest,
        requester: Requester,
    ) -> dict:
        """
        Create a customer organisation under a reseller.

        Creates the organisation, its first administrator (with a temporary
        password, flagged for change on first login) and an empty wallet.

        Raises:
            CrossResellerAccessError: If the requester does not administer the reseller
            OrganizationNotFoundError: If no such reseller exists
            OrganizationNameExistsError: If the name is taken
            EmailAlreadyExistsError: If the email is taken
        """
        self._check_reseller_access(reseller_id, requester, "onboard_customer")
        reseller = self._get_reseller(reseller_id)

        name = data.organisation_name.strip()
        email = data.email.lower()

        if self.db.query(Organization).filter(Organization.name == name).first():
            raise OrganizationNameExistsError()
        if self.db.query(User).filter(User.email == email).first():
            raise EmailAlreadyExistsError()

        temporary_password = AuthService.generate_temporary_password()
        hashed_password = AuthService.hash_password(temporary_password)

        try:
            organization = Organization(
                name=name,
                type=OrganizationType.CUSTOMER.value,
                is_reseller=False,
                parent=reseller,
            )
            self.db.add(organization)
            self.db.flush()

            user = User(
                email=email,
                first_name=data.first_name,
                last_name=data.last_name,
                user_type=UserType.EXTERNAL.value,
                organization_id=organization.id,
                hashed_password=hashed_password,
                is_first_login=True,
            )
            self.db.add(user)
            self.db.flush()

            self.db.add(UserRole(
                user_id=user.id,
                role_id=RoleId.ORG_ADMIN,
                org_id=organization.id,
                scope_type=AccessScope.ORGANISATION.value,
            ))
            self.db.add(Wallet(organization_id=organization.id, balance=0, currency=settings.DEFAULT_CURRENCY))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        audit_logger.log_customer_onboarded(
            actor_id=requester.user_id,
            reseller_id=reseller.id,
            org_id=organization.id,
        )

        return {
            "user": user.to_dict(),
            "organisation": OnboardedOrganisation(
                id=organization.id,
                organisation_name=organization.name,
                organisation_type=OrganizationType.CUSTOMER.value,
                parent_id=reseller.id,
            ).model_dump(),
            "password": temporary_password,
        }


def _billing_status(wallet: Optional[Wallet]) -> str:
    if wallet is None:
        return "no_wallet"
    if wallet.balance < 0:
        return "overdue"
    return "active"


def _user_summary(user: User) -> dict:
    summary = user.to_dict()
    roles = sorted({assignment.role.name for assignment in user.role_assignments})
    summary["role"] = roles[0] if roles else None
    summary["roles"] = roles
    return summary
