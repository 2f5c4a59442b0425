"""
Wallet Schemas Module
=====================

Request/response models for wallet balance, top-ups, alerts and
provisioning charges. Amounts are in currency units (ZAR); the service
converts to and from stored cents.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field

from cloudportal.core.enums import AlertSeverity, AlertType
from cloudportal.schemas.quote import CamelModel, Money, PricingBreakdown, Quote, VMSpecification


# ==========================
# Balance
# ==========================

class WalletBalance(CamelModel):
    organisation_id: str
    balance: int = Field(..., description="Balance in cents")
    balance_in_currency: Money
    currency: str
    last_updated: Optional[datetime] = None
    auto_topup_enabled: bool = False
    auto_topup_threshold: Optional[Money] = None
    auto_topup_amount: Optional[Money] = None


# ==========================
# Top-up
# ==========================

class TopupRequest(CamelModel):
    amount: Decimal = Field(..., description="Amount in currency units")
    payment_method: Literal["manual", "auto", "card"] = "manual"
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=255)


class TopupResult(CamelModel):
    success: bool
    transaction_id: Optional[str] = None
    new_balance: Money
    charged_amount: Money
    payment_reference: Optional[str] = None
    message: str


class AutoTopupConfig(CamelModel):
    enabled: bool
    threshold: Decimal = Field(default=Decimal("0"))
    topup_amount: Decimal = Field(default=Decimal("0"))


# ==========================
# Alerts
# ==========================

class BalanceAlert(CamelModel):
    organisation_id: str
    alert_type: AlertType
    current_balance: Money
    threshold: Optional[Money] = None
    severity: AlertSeverity
    message: str
    triggered_at: datetime


# ==========================
# Provisioning
# ==========================

class ProvisioningRequest(CamelModel):
    vms: list[VMSpecification] = Field(..., min_length=1)
    vcenter_instance_uuid: Optional[str] = None


class ProvisioningValidation(CamelModel):
    is_valid: bool
    total_cost: PricingBreakdown | Quote
    current_balance: Money
    shortfall: Optional[Money] = None
    immediate_charge: Money
    reserved_amount: Money
    message: str


class ProvisioningTransaction(CamelModel):
    organisation_id: str
    vm_specifications: list[VMSpecification]
    total_cost: PricingBreakdown | Quote
    vcenter_instance_uuid: Optional[str] = None
    transaction_id: str
    new_balance: Money
    billing_record_ids: list[str] = Field(default_factory=list)


# ==========================
# Statement
# ==========================

class StatementEntry(CamelModel):
    id: str
    amount: Money
    type: str
    reference: str
    description: str
    created_at: Optional[datetime] = None
    is_credit: bool
    is_debit: bool


class Statement(CamelModel):
    organisation_id: str
    transactions: list[StatementEntry]
    total: int
    limit: int
    offset: int
    total_credits: Money
    total_debits: Money
