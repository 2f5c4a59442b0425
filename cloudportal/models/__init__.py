"""
Model Package Initialization
============================

Ensures models are properly registered when imported by the application.

All SQLAlchemy ORM models are exported from this module.

Usage:
    from cloudportal.models import Organization, User, Wallet
"""

from .organization import Organization
from .user import User
from .role import Permission, Role, UserRole, role_permissions
from .wallet import Wallet, WalletTransaction
from .vm_billing import VMBillingRecord

__all__ = [
    "Organization",
    "User",
    "Permission",
    "Role",
    "UserRole",
    "role_permissions",
    "Wallet",
    "WalletTransaction",
    "VMBillingRecord",
]
