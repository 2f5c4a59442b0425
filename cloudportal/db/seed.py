"""
Demo Data Seeding
=================

Bootstraps the permission catalogue, the five portal roles and the demo
reseller hierarchy:

    Datacentrix Cloud (internal)
    ├── six resellers, each with its customers
    └── two direct customers

plus one user per access scope and a wallet for every customer.

Seeding is idempotent: existing rows (matched by id) are left untouched.

Usage:
    python -m cloudportal.db.seed
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from cloudportal.core.config import settings
from cloudportal.core.enums import AccessScope, OrganizationType, UserType
from cloudportal.core.logging import configure_logging, get_logger
from cloudportal.models import Organization, Permission, Role, User, UserRole, Wallet
from cloudportal.services.auth_service import AuthService
from cloudportal.services.permission_service import PERMISSIONS, ROLE_DEFINITIONS, RoleId

logger = get_logger(__name__)

DEMO_PASSWORD = "Demo@Portal2024"

ROOT_ORG_ID = "datacentrix-root"

# (id, name, total revenue, monthly commission, admin email)
RESELLERS = [
    ("cloudtech-reseller-demo-001", "CloudTech Resellers Demo", "450000", "45000", "admin@cloudtech.co.za"),
    ("techpro-reseller-001", "TechPro Solutions", "380000", "38000", "admin@techpro.co.za"),
    ("africatech-partners-001", "AfricaTech Partners", "520000", "52000", "admin@africatech.co.za"),
    ("cape-digital-001", "Cape Digital Solutions", "350000", "35000", "admin@capedigital.co.za"),
    ("joburg-cloud-001", "Joburg Cloud Services", "470000", "47000", "admin@joburgcloud.co.za"),
    ("kzn-tech-001", "KZN Technology Hub", "330000", "33000", "admin@kzntech.co.za"),
]

# parent id -> [(id, name)]
CUSTOMERS = {
    "cloudtech-reseller-demo-001": [("vodacom-id", "Vodacom"), ("mtn-id", "MTN")],
    "techpro-reseller-001": [("discovery-id", "Discovery Health"), ("capitec-id", "Capitec Bank")],
    "africatech-partners-001": [
        ("fnb-corporate-id", "FNB Corporate"),
        ("old-mutual-id", "Old Mutual"),
        ("pick-n-pay-id", "Pick n Pay"),
    ],
    "cape-digital-001": [("shoprite-id", "Shoprite Holdings"), ("woolworths-id", "Woolworths SA")],
    "joburg-cloud-001": [
        ("standard-bank-id", "Standard Bank"),
        ("absa-corporate-id", "ABSA Corporate"),
        ("nedbank-business-id", "Nedbank Business"),
    ],
    "kzn-tech-001": [("mr-price-id", "Mr Price Group"), ("tongaat-hulett-id", "Tongaat Hulett")],
    ROOT_ORG_ID: [("sasol-direct-id", "Sasol (Direct)"), ("eskom-direct-id", "Eskom (Direct)")],
}

# (id, email, first name, last name, user type, org id, role id, scope)
USERS = [
    (
        "platform-admin-001", "admin@datacentrix.co.za", "Platform", "Admin",
        UserType.INTERNAL, ROOT_ORG_ID, RoleId.ROOT, AccessScope.GLOBAL,
    ),
    (
        "engineer-demo-001", "engineer@datacentrix.co.za", "Cloud", "Engineer",
        UserType.INTERNAL, ROOT_ORG_ID, RoleId.ENGINEER, AccessScope.GLOBAL,
    ),
    (
        "customer-admin-demo-001", "john.demo@vodacom.co.za", "John", "Customer",
        UserType.EXTERNAL, "vodacom-id", RoleId.ORG_ADMIN, AccessScope.ORGANISATION,
    ),
    (
        "readonly-demo-001", "viewer@mtn.co.za", "Mary", "Viewer",
        UserType.EXTERNAL, "mtn-id", RoleId.READ_ONLY, AccessScope.ORGANISATION,
    ),
]

# Opening wallet balances in cents; customers not listed start empty
OPENING_BALANCES = {
    "vodacom-id": 500000,
    "mtn-id": 150000,
}


def _reseller_admin_id(reseller_id: str) -> str:
    return f"reseller-admin-{reseller_id}"


def seed_permissions(db: Session) -> None:
    for permission_id, name, resource, action in PERMISSIONS:
        if db.get(Permission, permission_id) is None:
            db.add(Permission(id=permission_id, name=name, resource=resource, action=action))
    db.flush()

    for role_id, (name, permission_ids) in ROLE_DEFINITIONS.items():
        if db.get(Role, role_id) is not None:
            continue
        role = Role(id=role_id, name=name)
        role.permissions = [db.get(Permission, permission_id) for permission_id in permission_ids]
        db.add(role)
    db.flush()


def seed_hierarchy(db: Session) -> None:
    """Root, resellers and customers. Parents are always created first."""
    if db.get(Organization, ROOT_ORG_ID) is None:
        db.add(Organization(
            id=ROOT_ORG_ID,
            name="Datacentrix Cloud",
            type=OrganizationType.INTERNAL.value,
            is_reseller=False,
        ))
        db.flush()

    for reseller_id, name, revenue, commission, _ in RESELLERS:
        if db.get(Organization, reseller_id) is None:
            db.add(Organization(
                id=reseller_id,
                name=name,
                type=OrganizationType.RESELLER.value,
                is_reseller=True,
                parent_id=ROOT_ORG_ID,
                total_revenue=Decimal(revenue),
                monthly_commission=Decimal(commission),
            ))
    db.flush()

    for parent_id, customers in CUSTOMERS.items():
        if db.get(Organization, parent_id) is None:
            raise ValueError(f"Parent organisation {parent_id} does not exist")
        for customer_id, name in customers:
            if db.get(Organization, customer_id) is None:
                db.add(Organization(
                    id=customer_id,
                    name=name,
                    type=OrganizationType.CUSTOMER.value,
                    is_reseller=False,
                    parent_id=parent_id,
                ))
    db.flush()


def _ensure_user(
    db: Session,
    password_hash: str,
    user_id: str,
    email: str,
    first_name: str,
    last_name: str,
    user_type: UserType,
    org_id: str,
    role_id: str,
    scope: AccessScope,
) -> None:
    if db.get(User, user_id) is not None:
        return

    db.add(User(
        id=user_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        user_type=user_type.value,
        organization_id=org_id,
        hashed_password=password_hash,
    ))
    db.flush()
    db.add(UserRole(user_id=user_id, role_id=role_id, org_id=org_id, scope_type=scope.value))


def seed_users(db: Session, password_hash: str) -> None:
    """One user per scope, plus an administrator for every reseller."""
    for user_id, email, first_name, last_name, user_type, org_id, role_id, scope in USERS:
        _ensure_user(db, password_hash, user_id, email, first_name, last_name, user_type, org_id, role_id, scope)

    for reseller_id, name, _, _, email in RESELLERS:
        _ensure_user(
            db,
            password_hash,
            _reseller_admin_id(reseller_id),
            email,
            name.split()[0],
            "Admin",
            UserType.EXTERNAL,
            reseller_id,
            RoleId.RESELLER_ADMIN,
            AccessScope.RESELLER_ESTATE,
        )
    db.flush()


def seed_wallets(db: Session) -> None:
    for customers in CUSTOMERS.values():
        for customer_id, _ in customers:
            exists = db.query(Wallet).filter(Wallet.organization_id == customer_id).first()
            if exists is None:
                db.add(Wallet(
                    organization_id=customer_id,
                    balance=OPENING_BALANCES.get(customer_id, 0),
                    currency=settings.DEFAULT_CURRENCY,
                ))
    db.flush()


def seed_demo_data(db: Session, password_hash: Optional[str] = None) -> None:
    """
    Seed everything and commit.

    Args:
        db: Database session
        password_hash: Pre-computed hash for every demo user; hashes
            ``DEMO_PASSWORD`` when omitted
    """
    password_hash = password_hash or AuthService.hash_password(DEMO_PASSWORD)

    try:
        seed_permissions(db)
        seed_hierarchy(db)
        seed_users(db, password_hash)
        seed_wallets(db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "demo_data_seeded",
        resellers=len(RESELLERS),
        customers=sum(len(customers) for customers in CUSTOMERS.values()),
    )


def main() -> None:
    from cloudportal.db.session import SessionLocal

    configure_logging()
    db = SessionLocal()
    try:
        seed_demo_data(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
