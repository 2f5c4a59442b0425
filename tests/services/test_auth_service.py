"""
Authentication Service Unit Tests
=================================

Tests for the AuthService class covering:
- Password hashing and temporary passwords
- Token creation, decoding and type discrimination
- Login flow with lockout
- Token refresh and logout via token version
"""

import string
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from cloudportal.core.config import settings
from cloudportal.core.exceptions import (
    AccountDisabledError,
    AccountLockedError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
)
from cloudportal.db.seed import DEMO_PASSWORD
from cloudportal.models.user import User
from cloudportal.services.auth_service import AuthService, TokenType

from conftest import CUSTOMER_ADMIN_ID, DEMO_PASSWORD_HASH, VODACOM_ID


pytestmark = pytest.mark.unit

CUSTOMER_EMAIL = "john.demo@vodacom.co.za"


class TestPasswords:
    """Tests for hashing, verification and temporary passwords."""

    def test_verify_seeded_hash(self):
        assert AuthService.verify_password(DEMO_PASSWORD, DEMO_PASSWORD_HASH) is True
        assert AuthService.verify_password("nope", DEMO_PASSWORD_HASH) is False

    def test_garbage_hash_does_not_verify(self):
        assert AuthService.verify_password(DEMO_PASSWORD, "not-an-argon2-hash") is False

    def test_temporary_password_has_every_character_class(self):
        # Act
        password = AuthService.generate_temporary_password()

        # Assert
        assert len(password) == 14
        assert any(char in string.ascii_uppercase for char in password)
        assert any(char in string.ascii_lowercase for char in password)
        assert any(char in string.digits for char in password)
        assert any(char in "!@#$%^&*" for char in password)


class TestTokens:
    """Tests for token creation and decoding."""

    def test_access_token_claims(self):
        # Act
        token = AuthService.create_access_token(user_id="u-1", org_id=VODACOM_ID, token_version=3)
        payload = AuthService.decode_token(token, expected_type=TokenType.ACCESS)

        # Assert
        assert payload["sub"] == "u-1"
        assert payload["org_id"] == VODACOM_ID
        assert payload["token_version"] == 3
        assert payload["type"] == TokenType.ACCESS
        assert payload["iss"] == settings.ISSUER

    def test_refresh_token_rejected_as_access_token(self):
        token = AuthService.create_refresh_token(user_id="u-1", org_id=VODACOM_ID, token_version=1)
        with pytest.raises(TokenInvalidError):
            AuthService.decode_token(token, expected_type=TokenType.ACCESS)

    def test_expired_token(self):
        token = AuthService.create_access_token(
            user_id="u-1", org_id=VODACOM_ID, token_version=1, expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(TokenExpiredError):
            AuthService.decode_token(token, expected_type=TokenType.ACCESS)

    def test_tampered_token(self):
        token = AuthService.create_access_token(user_id="u-1", org_id=VODACOM_ID, token_version=1)
        with pytest.raises(TokenInvalidError):
            AuthService.decode_token(token[:-4] + "abcd")


class TestAuthenticateUser:
    """Tests for AuthService.authenticate_user."""

    def test_successful_login_resets_counter(self, db_session: Session):
        # Arrange
        user = db_session.get(User, CUSTOMER_ADMIN_ID)
        user.failed_attempts = 2
        db_session.commit()

        # Act
        authenticated, tokens = AuthService(db_session).authenticate_user(CUSTOMER_EMAIL, DEMO_PASSWORD)

        # Assert
        assert authenticated.id == CUSTOMER_ADMIN_ID
        assert authenticated.failed_attempts == 0
        assert tokens["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_wrong_password_counts_attempt(self, db_session: Session):
        # Act
        with pytest.raises(InvalidCredentialsError):
            AuthService(db_session).authenticate_user(CUSTOMER_EMAIL, "wrong")

        # Assert
        assert db_session.get(User, CUSTOMER_ADMIN_ID).failed_attempts == 1

    def test_lockout_after_max_attempts(self, db_session: Session):
        # Arrange
        service = AuthService(db_session)
        for _ in range(settings.MAX_LOGIN_ATTEMPTS):
            with pytest.raises(InvalidCredentialsError):
                service.authenticate_user(CUSTOMER_EMAIL, "wrong")

        # Act & Assert
        assert db_session.get(User, CUSTOMER_ADMIN_ID).is_locked is True
        with pytest.raises(AccountLockedError):
            service.authenticate_user(CUSTOMER_EMAIL, DEMO_PASSWORD)

    def test_malformed_stored_hash_is_a_failed_login(self, db_session: Session):
        # Arrange
        db_session.get(User, CUSTOMER_ADMIN_ID).hashed_password = "$argon2id$corrupted"
        db_session.commit()

        # Act & Assert
        with pytest.raises(InvalidCredentialsError):
            AuthService(db_session).authenticate_user(CUSTOMER_EMAIL, DEMO_PASSWORD)

    def test_disabled_account(self, db_session: Session):
        # Arrange
        db_session.get(User, CUSTOMER_ADMIN_ID).is_active = False
        db_session.commit()

        # Act & Assert
        with pytest.raises(AccountDisabledError):
            AuthService(db_session).authenticate_user(CUSTOMER_EMAIL, DEMO_PASSWORD)


class TestRefreshAndLogout:
    """Tests for token refresh and version based revocation."""

    def test_refresh_returns_new_pair(self, db_session: Session):
        # Arrange
        service = AuthService(db_session)
        _, tokens = service.authenticate_user(CUSTOMER_EMAIL, DEMO_PASSWORD)

        # Act
        refreshed = service.refresh_tokens(tokens["refresh_token"])

        # Assert
        payload = AuthService.decode_token(refreshed["access_token"], expected_type=TokenType.ACCESS)
        assert payload["sub"] == CUSTOMER_ADMIN_ID

    def test_logout_revokes_existing_tokens(self, db_session: Session):
        # Arrange
        service = AuthService(db_session)
        user, tokens = service.authenticate_user(CUSTOMER_EMAIL, DEMO_PASSWORD)

        # Act
        service.logout(user)

        # Assert
        with pytest.raises(TokenVersionMismatchError):
            service.validate_access_token(tokens["access_token"])
        with pytest.raises(TokenVersionMismatchError):
            service.refresh_tokens(tokens["refresh_token"])
