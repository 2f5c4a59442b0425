"""
Wallet Models
=============

Prepaid wallet per organisation.

Amounts are stored as integer cents; conversion to currency units uses
``settings.TO_CENTS_FACTOR``. Ledger entries are signed: credits positive,
debits negative.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    String,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from cloudportal.core.enums import TransactionType
from cloudportal.db.base import Base

if TYPE_CHECKING:
    from cloudportal.models.organization import Organization


class Wallet(Base):
    """Organisation wallet with optional auto top-up settings."""

    __tablename__ = "wallets"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    organization_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")

    # Auto top-up
    auto_topup_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    threshold: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    topup_amount: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    organization: Mapped["Organization"] = relationship("Organization", back_populates="wallet")

    transactions: Mapped[List["WalletTransaction"]] = relationship(
        "WalletTransaction",
        back_populates="wallet",
        cascade="all, delete-orphan",
        order_by="WalletTransaction.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Wallet(organization_id={self.organization_id}, balance={self.balance})>"


class WalletTransaction(Base):
    """Signed ledger entry against a wallet."""

    __tablename__ = "wallet_transactions"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    wallet_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)
    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    wallet: Mapped[Wallet] = relationship(Wallet, back_populates="transactions")

    def __repr__(self) -> str:
        return f"<WalletTransaction(reference={self.reference}, amount={self.amount})>"
