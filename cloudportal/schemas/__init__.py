"""
Schemas Package Initialization
==============================

Exports all Pydantic schemas for the application.

Usage:
    from cloudportal.schemas import LoginRequest, VMSpecification, envelope
"""

# Envelope
from cloudportal.schemas.common import (
    ErrorResponse,
    ERROR_RESPONSES,
    envelope,
)

# Auth schemas
from cloudportal.schemas.auth import (
    LoginRequest,
    TokenResponse,
    RefreshTokenRequest,
    LogoutResponse,
)

# Organization schemas
from cloudportal.schemas.organization import (
    OnboardCustomerRequest,
    OnboardedOrganisation,
    EstateSummary,
)

# User schemas
from cloudportal.schemas.user import (
    RoleSummary,
    UserPermissions,
    CurrentUserResponse,
)

# Pricing schemas
from cloudportal.schemas.quote import (
    VMSpecification,
    QuoteRequest,
    UpgradeRequest,
    PricingBreakdown,
    Quote,
    UpgradeCost,
    SpecificationCheck,
)

# Wallet schemas
from cloudportal.schemas.wallet import (
    WalletBalance,
    TopupRequest,
    TopupResult,
    AutoTopupConfig,
    BalanceAlert,
    ProvisioningRequest,
    ProvisioningValidation,
    ProvisioningTransaction,
    Statement,
    StatementEntry,
)

# Billing schemas
from cloudportal.schemas.billing import (
    VMBillingRecordOut,
    VMStateUpdate,
    HourlyBillingCycle,
    VMReconciliationDetail,
    MonthEndReconciliation,
    BillingSummary,
)

__all__ = [
    # Envelope
    "ErrorResponse",
    "ERROR_RESPONSES",
    "envelope",
    # Auth
    "LoginRequest",
    "TokenResponse",
    "RefreshTokenRequest",
    "LogoutResponse",
    # Organization
    "OnboardCustomerRequest",
    "OnboardedOrganisation",
    "EstateSummary",
    # User
    "RoleSummary",
    "UserPermissions",
    "CurrentUserResponse",
    # Pricing
    "VMSpecification",
    "QuoteRequest",
    "UpgradeRequest",
    "PricingBreakdown",
    "Quote",
    "UpgradeCost",
    "SpecificationCheck",
    # Wallet
    "WalletBalance",
    "TopupRequest",
    "TopupResult",
    "AutoTopupConfig",
    "BalanceAlert",
    "ProvisioningRequest",
    "ProvisioningValidation",
    "ProvisioningTransaction",
    "Statement",
    "StatementEntry",
    # Billing
    "VMBillingRecordOut",
    "VMStateUpdate",
    "HourlyBillingCycle",
    "VMReconciliationDetail",
    "MonthEndReconciliation",
    "BillingSummary",
]
