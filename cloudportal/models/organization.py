"""
Organization Model
==================

Represents a tenant in the reseller hierarchy.

Hierarchy:
- One internal root organisation (the platform owner)
- Resellers attached to the root
- Customers attached to a reseller, or directly to the root

Database Indexes:
- Primary key: id (string)
- Unique index: name
- Index: parent_id (for child lookups)
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from cloudportal.core.enums import OrganizationType
from cloudportal.db.base import Base

if TYPE_CHECKING:
    from cloudportal.models.user import User
    from cloudportal.models.wallet import Wallet


def _new_id() -> str:
    return str(uuid.uuid4())


class Organization(Base):
    """
    Organization Entity.

    ``parent_id`` must reference an existing organisation. The foreign key
    enforces it on write and the seed script builds the hierarchy top-down.

    Attributes:
        id: String primary key (slug or uuid4)
        name: Unique organization name
        type: internal, reseller or customer
        is_reseller: Mirrors type == reseller for clients that expect the flag
        parent_id: Owning organisation, null for the root
        status: Lifecycle status (active, suspended)
        total_revenue: Revenue attributed to the organisation
        monthly_commission: Reseller commission per month
    """

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=_new_id,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    type: Mapped[OrganizationType] = mapped_column(
        String(20),
        nullable=False,
        default=OrganizationType.CUSTOMER,
    )

    is_reseller: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    parent_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("organizations.id"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    # ==========================
    # Commercials
    # ==========================
    total_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0"),
    )

    monthly_commission: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0"),
    )

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

    # ==========================
    # Relationships
    # ==========================
    parent: Mapped[Optional["Organization"]] = relationship(
        "Organization",
        remote_side="Organization.id",
        back_populates="children",
    )

    children: Mapped[List["Organization"]] = relationship(
        "Organization",
        back_populates="parent",
        order_by="Organization.name",
    )

    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
        cascade="all, delete-orphan",
    )

    wallet: Mapped[Optional["Wallet"]] = relationship(
        "Wallet",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, type={self.type})>"

    @property
    def customer_count(self) -> int:
        """Number of direct children that are customers."""
        return sum(1 for child in self.children if child.type == OrganizationType.CUSTOMER)

    def to_dict(self) -> dict:
        """
        Convert organization to dictionary.

        Keys follow the portal's JSON contract (camelCase, ``parent_id``).
        """
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value if isinstance(self.type, OrganizationType) else self.type,
            "isReseller": self.is_reseller,
            "parent_id": self.parent_id,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if self.type == OrganizationType.RESELLER:
            data["totalRevenue"] = float(self.total_revenue or 0)
            data["monthlyCommission"] = float(self.monthly_commission or 0)
            data["customerCount"] = self.customer_count
        return data
