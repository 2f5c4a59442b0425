"""
Enumeration Module
==================

Defines enumerations used across the application.

Security Purpose:
- Prevents arbitrary scope or type injection
- Enforces strict backend validation of stored values
"""

from enum import Enum


class OrganizationType(str, Enum):
    """Position of an organisation in the reseller hierarchy."""

    INTERNAL = "internal"
    RESELLER = "reseller"
    CUSTOMER = "customer"


class UserType(str, Enum):
    """Whether a user is staff of the platform owner or belongs to a tenant."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class AccessScope(str, Enum):
    """
    Set of organisations a role assignment reveals.

    GLOBAL sees every organisation, RESELLER_ESTATE sees the reseller and its
    direct children, ORGANISATION sees the assigned organisation only.
    """

    GLOBAL = "global"
    RESELLER_ESTATE = "reseller_estate"
    ORGANISATION = "organisation"


# Broadest first
SCOPE_PRECEDENCE: list[AccessScope] = [
    AccessScope.GLOBAL,
    AccessScope.RESELLER_ESTATE,
    AccessScope.ORGANISATION,
]


class TransactionType(str, Enum):
    """Wallet ledger entry kinds."""

    TOPUP = "topup"
    AUTO_TOPUP = "auto_topup"
    DEBIT = "debit"
    USAGE = "usage"
    CREDIT = "credit"


class VMBillingStatus(str, Enum):
    """Lifecycle of a billed VM. Only ACTIVE VMs accrue hourly charges."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class AlertType(str, Enum):
    LOW_BALANCE = "low_balance"
    NEGATIVE_BALANCE = "negative_balance"
    AUTO_TOPUP_TRIGGERED = "auto_topup_triggered"
    AUTO_TOPUP_FAILED = "auto_topup_failed"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
