"""
VM Billing Models
=================

One record per provisioned VM, tracking its hourly rate, the compute
reservation validated at provisioning and usage charged so far in the
current billing month.

Rates and usage are currency amounts (``Numeric``); the wallet ledger they
feed stays in integer cents.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from cloudportal.core.enums import VMBillingStatus
from cloudportal.db.base import Base

if TYPE_CHECKING:
    from cloudportal.models.organization import Organization


class VMBillingRecord(Base):
    """Hourly billed VM."""

    __tablename__ = "vm_billing_records"

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

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vcenter_instance_uuid: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    specification: Mapped[dict] = mapped_column(JSON, nullable=False)

    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    reserved_monthly_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Current billing month (YYYY-MM) and what it has accrued
    billing_month: Mapped[str] = mapped_column(String(7), nullable=False)
    actual_usage_this_month: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0")
    )
    hours_used_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[VMBillingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=VMBillingStatus.ACTIVE.value,
    )
    powered_on: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    last_billed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    organization: Mapped["Organization"] = relationship("Organization")

    @property
    def is_billable(self) -> bool:
        return self.status == VMBillingStatus.ACTIVE and self.powered_on

    def __repr__(self) -> str:
        return f"<VMBillingRecord(id={self.id}, organization_id={self.organization_id}, status={self.status})>"
