"""
User Model
==========

Security Features:
- Every user belongs to one organisation (organization_id required)
- Account lock after configurable failed attempts
- Token version for JWT invalidation
- Soft delete support via is_active flag

Database Indexes:
- Primary key: id (string uuid)
- Unique index: email
- Index: organization_id
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import (
    String,
    Boolean,
    Integer,
    DateTime,
    ForeignKey,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from cloudportal.core.enums import UserType
from cloudportal.db.base import Base

if TYPE_CHECKING:
    from cloudportal.models.organization import Organization
    from cloudportal.models.role import UserRole


class User(Base):
    """
    User entity representing authenticated portal users.

    Visibility is not decided by ``user_type`` but by the scopes of the
    user's role assignments (see ``UserRole``).

    Attributes:
        id: String uuid primary key
        organization_id: Foreign key to organization
        email: Unique email address (stored lower-case)
        first_name, last_name: Display name
        user_type: internal or external
        hashed_password: Argon2 hashed password
        is_active: Account active status
        failed_attempts: Failed login counter
        is_locked: Account lock status
        token_version: JWT version for invalidation
        is_first_login: Set for invited users until first password change
    """

    __tablename__ = "users"

    def __init__(self, **kwargs):
        """Initialize User with Python-level defaults."""
        kwargs.setdefault("user_type", UserType.EXTERNAL)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("failed_attempts", 0)
        kwargs.setdefault("is_locked", False)
        kwargs.setdefault("token_version", 1)
        kwargs.setdefault("is_first_login", False)
        super().__init__(**kwargs)

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    organization_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="users",
    )

    # ==========================
    # Identity
    # ==========================
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    user_type: Mapped[UserType] = mapped_column(
        String(20),
        nullable=False,
        default=UserType.EXTERNAL,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # ==========================
    # Account Status
    # ==========================
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_first_login: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # ==========================
    # Timestamps
    # ==========================
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    role_assignments: Mapped[List["UserRole"]] = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    def to_dict(self) -> dict:
        """
        Convert user to dictionary (excludes sensitive data).
        """
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "userType": self.user_type.value if isinstance(self.user_type, UserType) else self.user_type,
            "organizationId": self.organization_id,
            "isActive": self.is_active,
            "isFirstLogin": self.is_first_login,
        }
