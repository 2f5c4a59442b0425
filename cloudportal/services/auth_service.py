"""
Authentication Service Module
=============================

Portal sign-in and token lifecycle:
- Argon2id password hashes and temporary passwords for onboarded users
- Access and refresh JWTs carrying the home organisation id
- Lockout after MAX_LOGIN_ATTEMPTS consecutive failures
- Logout and forced sign-out by bumping the user's token_version

Tokens are checked for signature, expiry, issuer, audience and type.
"""

import secrets
import string
from datetime import datetime, timedelta, UTC
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, Argon2Error, InvalidHashError

from cloudportal.models.user import User
from cloudportal.core.config import settings
from cloudportal.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
    AccountLockedError,
    AccountDisabledError,
    InvalidCredentialsError,
)
from cloudportal.core.logging import get_logger, security_logger

logger = get_logger(__name__)


# ==========================
# Argon2id Parameters
# ==========================

ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,  # KiB
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


# ==========================
# Token Types
# ==========================

class TokenType:
    """Value of the ``type`` claim."""
    ACCESS = "access"
    REFRESH = "refresh"


# ==========================
# Auth Service Class
# ==========================

class AuthService:
    """
    Login, refresh and logout against the portal user table.

    Usage:
        auth_service = AuthService(db)
        user, tokens = auth_service.authenticate_user(email, password)
    """

    def __init__(self, db: Session):
        self.db = db

    # --------------------------
    # Password Utilities
    # --------------------------

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using Argon2id."""
        return ph.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise
        """
        try:
            ph.verify(hashed_password, plain_password)
            return True
        except VerifyMismatchError:
            return False
        except (Argon2Error, InvalidHashError) as e:
            logger.warning("password_verification_error", error=str(e))
            return False

    @staticmethod
    def generate_temporary_password(length: int = 14) -> str:
        """
        Random password for invited users.

        Always contains an upper case letter, a lower case letter, a digit
        and a symbol.
        """
        symbols = "!@#$%^&*"
        alphabet = string.ascii_letters + string.digits + symbols
        required = [
            secrets.choice(string.ascii_uppercase),
            secrets.choice(string.ascii_lowercase),
            secrets.choice(string.digits),
            secrets.choice(symbols),
        ]
        rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
        chars = required + rest
        secrets.SystemRandom().shuffle(chars)
        return "".join(chars)

    # --------------------------
    # Token Creation
    # --------------------------

    @staticmethod
    def _create_token(
        token_type: str,
        user_id: str,
        org_id: str,
        user_type: str,
        token_version: int,
        expires_delta: timedelta,
    ) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "org_id": str(org_id),
            "user_type": str(user_type),
            "token_version": token_version,
            "type": token_type,
            "exp": now + expires_delta,
            "iat": now,
            "iss": settings.ISSUER,
            "aud": settings.AUDIENCE,
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_access_token(
        user_id: str,
        org_id: str,
        token_version: int,
        user_type: str = "external",
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            user_id: User's id
            org_id: User's home organisation id
            token_version: Current token version for revocation
            user_type: internal or external
            expires_delta: Custom expiration time

        Returns:
            Encoded JWT access token
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return AuthService._create_token(
            TokenType.ACCESS, user_id, org_id, user_type, token_version, expires_delta
        )

    @staticmethod
    def create_refresh_token(
        user_id: str,
        org_id: str,
        token_version: int,
        user_type: str = "external",
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Create a JWT refresh token."""
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        return AuthService._create_token(
            TokenType.REFRESH, user_id, org_id, user_type, token_version, expires_delta
        )

    # --------------------------
    # Token Decoding & Validation
    # --------------------------

    @staticmethod
    def decode_token(token: str, expected_type: Optional[str] = None) -> dict:
        """
        Decode and validate a JWT token.

        Args:
            token: JWT token string
            expected_type: Expected token type (access/refresh)

        Returns:
            Decoded token payload

        Raises:
            TokenExpiredError: If token has expired
            TokenInvalidError: If token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                issuer=settings.ISSUER,
                audience=settings.AUDIENCE,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError(token_type=expected_type or "unknown")
        except JWTError as e:
            logger.warning("token_decode_error", error=str(e))
            raise TokenInvalidError(reason=str(e))

        if expected_type and payload.get("type") != expected_type:
            raise TokenInvalidError(
                reason=f"Expected {expected_type} token, got {payload.get('type')}"
            )

        return payload

    # --------------------------
    # Token Generator Wrapper
    # --------------------------

    def get_tokens_for_user(self, user: User) -> dict:
        """
        Generate access and refresh tokens for a user.

        Returns:
            Dictionary with access_token, refresh_token, token_type, and expires_in
        """
        user_type = getattr(user.user_type, "value", user.user_type)
        access_token = self.create_access_token(
            user_id=user.id,
            org_id=user.organization_id,
            token_version=user.token_version,
            user_type=user_type,
        )
        refresh_token = self.create_refresh_token(
            user_id=user.id,
            org_id=user.organization_id,
            token_version=user.token_version,
            user_type=user_type,
        )
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    # --------------------------
    # Authentication Methods
    # --------------------------

    def authenticate_user(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, dict]:
        """
        Authenticate a user with email and password.

        Returns:
            Tuple of (User, tokens dict)

        Raises:
            InvalidCredentialsError: If credentials are invalid
            AccountLockedError: If account is locked
            AccountDisabledError: If account is disabled
        """
        ip_address = ip_address or "unknown"
        user = self.db.query(User).filter(User.email == email.lower()).first()

        if not user:
            security_logger.log_login_failure(email=email, ip_address=ip_address, reason="user_not_found")
            raise InvalidCredentialsError()

        if user.is_locked:
            security_logger.log_login_failure(email=email, ip_address=ip_address, reason="account_locked")
            raise AccountLockedError()

        if not user.is_active:
            security_logger.log_login_failure(email=email, ip_address=ip_address, reason="account_disabled")
            raise AccountDisabledError()

        if not self.verify_password(password, user.hashed_password):
            user.failed_attempts += 1

            if user.failed_attempts >= settings.MAX_LOGIN_ATTEMPTS:
                user.is_locked = True
                self.db.commit()
                security_logger.log_account_locked(
                    user_id=user.id,
                    org_id=user.organization_id,
                    ip_address=ip_address,
                )
            else:
                self.db.commit()

            security_logger.log_login_failure(email=email, ip_address=ip_address, reason="invalid_password")
            raise InvalidCredentialsError()

        user.failed_attempts = 0
        self.db.commit()

        tokens = self.get_tokens_for_user(user)
        security_logger.log_login_success(
            user_id=user.id,
            org_id=user.organization_id,
            ip_address=ip_address,
        )
        return user, tokens

    def _load_token_user(self, payload: dict) -> User:
        user_id = payload.get("sub")
        token_version = payload.get("token_version")

        if not user_id or token_version is None:
            raise TokenInvalidError(reason="Invalid token payload")

        user = self.db.get(User, str(user_id))
        if not user:
            raise TokenInvalidError(reason="User not found")

        if user.token_version != token_version:
            security_logger.log_token_invalid(reason="token_version_mismatch", ip_address="unknown")
            raise TokenVersionMismatchError()

        if user.is_locked:
            raise AccountLockedError()

        if not user.is_active:
            raise AccountDisabledError()

        return user

    def refresh_tokens(self, refresh_token: str) -> dict:
        """
        Issue a new token pair from a valid refresh token.

        Raises:
            TokenInvalidError: If token is invalid
            TokenVersionMismatchError: If token version doesn't match
            AccountLockedError: If account is locked
            AccountDisabledError: If account is disabled
        """
        payload = self.decode_token(refresh_token, expected_type=TokenType.REFRESH)
        user = self._load_token_user(payload)

        tokens = self.get_tokens_for_user(user)
        security_logger.log_token_refresh(user_id=user.id, org_id=user.organization_id)
        return tokens

    def logout(self, user: User) -> None:
        """Invalidate every token issued to the user."""
        user.token_version += 1
        self.db.commit()
        security_logger.log_logout(user_id=user.id, org_id=user.organization_id)

    def validate_access_token(self, token: str) -> User:
        """
        Validate an access token and return the user.

        Raises:
            TokenInvalidError: If token is invalid
            TokenVersionMismatchError: If token version doesn't match
            AccountLockedError: If account is locked
            AccountDisabledError: If account is disabled
        """
        payload = self.decode_token(token, expected_type=TokenType.ACCESS)
        return self._load_token_user(payload)
