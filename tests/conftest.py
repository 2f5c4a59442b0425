"""
Test Configuration and Fixtures
================================

Central configuration for pytest with all shared fixtures.

Features:
- SQLite in-memory database seeded with the demo reseller hierarchy
- TestClient setup with the database dependency overridden
- Auth headers for one user per access scope
"""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set testing environment before importing app modules
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"  # Disable rate limiting in tests
os.environ["SIMULATE_PAYMENTS"] = "true"

from cloudportal.core.enums import AccessScope
from cloudportal.core.tenant.scope_query import Requester
from cloudportal.db.base import Base
from cloudportal.db.seed import DEMO_PASSWORD, seed_demo_data
from cloudportal.db.session import get_db
from cloudportal.models.user import User
from cloudportal.services.auth_service import AuthService
from cloudportal.main import app as main_app


# =====================================
# Database Configuration
# =====================================

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# argon2 is deliberately slow; hash the demo password once per run
DEMO_PASSWORD_HASH = AuthService.hash_password(DEMO_PASSWORD)


# =====================================
# Demo Identities
# =====================================

PLATFORM_ADMIN_ID = "platform-admin-001"
ENGINEER_ID = "engineer-demo-001"
CUSTOMER_ADMIN_ID = "customer-admin-demo-001"
READ_ONLY_ID = "readonly-demo-001"
CLOUDTECH_ADMIN_ID = "reseller-admin-cloudtech-reseller-demo-001"
TECHPRO_ADMIN_ID = "reseller-admin-techpro-reseller-001"

ROOT_ORG_ID = "datacentrix-root"
CLOUDTECH_ID = "cloudtech-reseller-demo-001"
TECHPRO_ID = "techpro-reseller-001"
VODACOM_ID = "vodacom-id"
MTN_ID = "mtn-id"
DISCOVERY_ID = "discovery-id"


# =====================================
# Database Fixtures
# =====================================

@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a fresh, seeded database session for each test.

    Yields:
        SQLAlchemy Session object
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    seed_demo_data(session, password_hash=DEMO_PASSWORD_HASH)

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    Create a TestClient with database dependency override.

    Yields:
        TestClient instance
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    main_app.dependency_overrides[get_db] = override_get_db

    with TestClient(main_app) as test_client:
        yield test_client

    main_app.dependency_overrides.clear()


# =====================================
# User & Requester Fixtures
# =====================================

def _headers_for(db_session: Session, user_id: str) -> dict:
    user = db_session.get(User, user_id)
    token = AuthService.create_access_token(
        user_id=user.id,
        org_id=user.organization_id,
        token_version=user.token_version,
        user_type=user.user_type,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def platform_admin(db_session: Session) -> User:
    return db_session.get(User, PLATFORM_ADMIN_ID)


@pytest.fixture
def customer_admin(db_session: Session) -> User:
    return db_session.get(User, CUSTOMER_ADMIN_ID)


@pytest.fixture
def cloudtech_admin(db_session: Session) -> User:
    return db_session.get(User, CLOUDTECH_ADMIN_ID)


@pytest.fixture
def global_requester(platform_admin: User) -> Requester:
    return Requester(user=platform_admin, scope=AccessScope.GLOBAL, org_id=ROOT_ORG_ID)


@pytest.fixture
def cloudtech_requester(cloudtech_admin: User) -> Requester:
    return Requester(user=cloudtech_admin, scope=AccessScope.RESELLER_ESTATE, org_id=CLOUDTECH_ID)


@pytest.fixture
def vodacom_requester(customer_admin: User) -> Requester:
    return Requester(user=customer_admin, scope=AccessScope.ORGANISATION, org_id=VODACOM_ID)


# =====================================
# Authentication Fixtures
# =====================================

@pytest.fixture
def global_auth_headers(db_session: Session) -> dict:
    """Bearer headers for the platform administrator (global scope)."""
    return _headers_for(db_session, PLATFORM_ADMIN_ID)


@pytest.fixture
def engineer_auth_headers(db_session: Session) -> dict:
    return _headers_for(db_session, ENGINEER_ID)


@pytest.fixture
def cloudtech_auth_headers(db_session: Session) -> dict:
    """Bearer headers for the CloudTech reseller administrator."""
    return _headers_for(db_session, CLOUDTECH_ADMIN_ID)


@pytest.fixture
def techpro_auth_headers(db_session: Session) -> dict:
    return _headers_for(db_session, TECHPRO_ADMIN_ID)


@pytest.fixture
def customer_auth_headers(db_session: Session) -> dict:
    """Bearer headers for the Vodacom organisation administrator."""
    return _headers_for(db_session, CUSTOMER_ADMIN_ID)


@pytest.fixture
def read_only_auth_headers(db_session: Session) -> dict:
    return _headers_for(db_session, READ_ONLY_ID)
