"""
Role Models
===========

Role-based permissions with organisation-scoped assignments.

- ``Permission``: a single capability, e.g. ``vm-create``
- ``Role``: a named bundle of permissions
- ``UserRole``: grants a role to a user at an organisation with a scope
"""

from typing import TYPE_CHECKING, List

from sqlalchemy import Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

from cloudportal.core.enums import AccessScope
from cloudportal.db.base import Base

if TYPE_CHECKING:
    from cloudportal.models.organization import Organization
    from cloudportal.models.user import User


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(64), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(64), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(Base):
    """A capability identified by ``<resource>-<action>``."""

    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<Permission(id={self.id})>"


class Role(Base):
    """Named bundle of permissions."""

    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    permissions: Mapped[List[Permission]] = relationship(
        Permission,
        secondary=role_permissions,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name})>"

    @property
    def permission_ids(self) -> set[str]:
        return {permission.id for permission in self.permissions}


class UserRole(Base):
    """
    Role assignment.

    ``scope_type`` decides which organisations the assignment reveals,
    anchored at ``org_id``.
    """

    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    org_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    scope_type: Mapped[AccessScope] = mapped_column(
        String(20),
        nullable=False,
        default=AccessScope.ORGANISATION,
    )

    user: Mapped["User"] = relationship("User", back_populates="role_assignments")
    role: Mapped[Role] = relationship(Role, lazy="selectin")
    organization: Mapped["Organization"] = relationship("Organization")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "org_id", name="uq_user_role_org"),
    )

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role_id={self.role_id}, scope={self.scope_type})>"
