"""
Wallet Service Module
=====================

Prepaid wallet operations per organisation:
- Balance lookup and manual top-ups
- Auto top-up configuration and triggering
- Balance monitoring alerts
- VM provisioning validation and immediate disk charges
- Transaction statement

Balances are stored in integer cents. Every public method takes and returns
currency units (``Decimal``); ``settings.TO_CENTS_FACTOR`` converts between
the two.
"""

import math
import uuid
from datetime import datetime, UTC
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from cloudportal.core.config import settings
from cloudportal.core.enums import AlertSeverity, AlertType, TransactionType
from cloudportal.core.exceptions import (
    InsufficientFundsError,
    ValidationError,
    WalletNotFoundError,
)
from cloudportal.core.logging import audit_logger, get_logger
from cloudportal.models.vm_billing import VMBillingRecord
from cloudportal.models.wallet import Wallet, WalletTransaction
from cloudportal.schemas.quote import VMSpecification
from cloudportal.schemas.wallet import (
    BalanceAlert,
    ProvisioningTransaction,
    ProvisioningValidation,
    Statement,
    StatementEntry,
    TopupResult,
    WalletBalance,
)
from cloudportal.services.pricing import calculate_vm_pricing, check_vm_specifications, price_for

logger = get_logger(__name__)

TOPUP_BUFFER = Decimal("1.1")


def to_cents(amount: Decimal) -> int:
    cents = Decimal(str(amount)) * settings.TO_CENTS_FACTOR
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Optional[int]) -> Decimal:
    if cents is None:
        return Decimal("0")
    return Decimal(cents) / settings.TO_CENTS_FACTOR


def _reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def calculate_required_topup(balance: Decimal, vms: list[VMSpecification]) -> int:
    """
    Top-up needed before ``vms`` can be provisioned.

    The shortfall against the full monthly cost plus 10%, rounded up to a
    whole currency unit. Zero when the balance already covers it.
    """
    shortfall = price_for(vms).total_monthly_cost - Decimal(str(balance))
    if shortfall <= 0:
        return 0
    return math.ceil(shortfall * TOPUP_BUFFER)


def _billing_record(
    org_id: str,
    vm: VMSpecification,
    vcenter_instance_uuid: Optional[str],
    month: str,
) -> VMBillingRecord:
    pricing = calculate_vm_pricing(vm)
    return VMBillingRecord(
        id=str(uuid.uuid4()),
        organization_id=org_id,
        name=vm.name,
        vcenter_instance_uuid=vcenter_instance_uuid,
        specification=vm.model_dump(mode="json", by_alias=True),
        hourly_rate=pricing.hourly_rate,
        reserved_monthly_amount=pricing.vcpu_cost + pricing.ram_cost,
        billing_month=month,
        actual_usage_this_month=Decimal("0"),
        hours_used_this_month=0,
    )


class WalletService:
    """
    Usage:
        wallets = WalletService(db, actor_id=requester.user_id)
        result = wallets.top_up("vodacom-id", Decimal("500"))
    """

    def __init__(self, db: Session, actor_id: Optional[str] = None):
        self.db = db
        self.actor_id = actor_id

    # --------------------------
    # Lookup
    # --------------------------

    def get_wallet(self, org_id: str, for_update: bool = False) -> Wallet:
        query = self.db.query(Wallet).filter(Wallet.organization_id == org_id)
        if for_update:
            # SELECT ... FOR UPDATE, refreshing any cached row
            query = query.with_for_update().populate_existing()
        wallet = query.first()
        if wallet is None:
            raise WalletNotFoundError(org_id)
        return wallet

    def get_wallet_balance(self, org_id: str) -> WalletBalance:
        """
        Raises:
            WalletNotFoundError: If the organisation has no wallet
        """
        wallet = self.get_wallet(org_id)
        return WalletBalance(
            organisation_id=wallet.organization_id,
            balance=wallet.balance,
            balance_in_currency=from_cents(wallet.balance),
            currency=wallet.currency,
            last_updated=wallet.updated_at,
            auto_topup_enabled=wallet.auto_topup_enabled,
            auto_topup_threshold=from_cents(wallet.threshold) if wallet.threshold else None,
            auto_topup_amount=from_cents(wallet.topup_amount) if wallet.topup_amount else None,
        )

    # --------------------------
    # Ledger
    # --------------------------

    def record_entry(
        self,
        wallet: Wallet,
        amount_cents: int,
        transaction_type: TransactionType,
        reference: str,
        description: str,
    ) -> WalletTransaction:
        """Apply a signed cents amount and add its ledger row. The caller commits."""
        wallet.balance += amount_cents
        transaction = WalletTransaction(
            wallet_id=wallet.id,
            amount=amount_cents,
            type=transaction_type.value,
            reference=reference,
            description=description,
        )
        self.db.add(transaction)
        return transaction

    def top_up(
        self,
        org_id: str,
        amount: Decimal,
        payment_method: str = "manual",
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TopupResult:
        """
        Credit the wallet.

        Raises:
            ValidationError: If amount is not positive
            WalletNotFoundError: If the organisation has no wallet
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValidationError(
                message="Top-up amount must be greater than 0",
                details={"amount": str(amount)},
            )

        wallet = self.get_wallet(org_id, for_update=True)
        reference = reference or _reference("topup")
        description = f"Wallet top-up - {payment_method} - {reference}"
        if notes:
            description = f"{description} - {notes}"

        transaction_type = TransactionType.AUTO_TOPUP if payment_method == "auto" else TransactionType.TOPUP
        transaction = self.record_entry(wallet, to_cents(amount), transaction_type, reference, description)

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        audit_logger.log_wallet_transaction(
            actor_id=self.actor_id,
            org_id=org_id,
            transaction_type=transaction_type.value,
            amount_cents=transaction.amount,
            reference=reference,
        )

        return TopupResult(
            success=True,
            transaction_id=transaction.id,
            new_balance=from_cents(wallet.balance),
            charged_amount=amount,
            payment_reference=reference,
            message=f"Successfully topped up wallet with {amount:.2f} {wallet.currency}",
        )

    # --------------------------
    # Auto Top-up
    # --------------------------

    def configure_auto_topup(
        self,
        org_id: str,
        enabled: bool,
        threshold: Decimal = Decimal("0"),
        topup_amount: Decimal = Decimal("0"),
    ) -> WalletBalance:
        """
        Enable or disable automatic top-ups.

        Raises:
            ValidationError: If enabled with a non-positive threshold or amount
            WalletNotFoundError: If the organisation has no wallet
        """
        if enabled and (threshold <= 0 or topup_amount <= 0):
            raise ValidationError(
                message="Auto top-up threshold and amount must be greater than 0 when enabled",
                details={"threshold": str(threshold), "topup_amount": str(topup_amount)},
            )

        wallet = self.get_wallet(org_id, for_update=True)
        wallet.auto_topup_enabled = enabled
        wallet.threshold = to_cents(threshold) if enabled else None
        wallet.topup_amount = to_cents(topup_amount) if enabled else None

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        audit_logger.log_auto_topup_configured(actor_id=self.actor_id, org_id=org_id, enabled=enabled)
        return self.get_wallet_balance(org_id)

    def _charge_stored_payment_method(self, org_id: str, amount: Decimal) -> TopupResult:
        if not settings.SIMULATE_PAYMENTS:
            return TopupResult(
                success=False,
                new_balance=Decimal("0"),
                charged_amount=Decimal("0"),
                message="Auto top-up not available - payment gateway integration required",
            )

        return self.top_up(
            org_id,
            amount,
            payment_method="auto",
            reference=_reference("auto-topup"),
            notes="Automatic top-up via stored payment method",
        )

    def check_and_trigger_auto_topup(self, org_id: str) -> Optional[BalanceAlert]:
        """
        Top up automatically when the balance is at or below the threshold.

        Returns:
            An info alert on success, a critical alert on failure, or None
            when auto top-up is off or not needed
        """
        wallet = self.db.query(Wallet).filter(Wallet.organization_id == org_id).first()
        if wallet is None or not wallet.auto_topup_enabled or not wallet.threshold or not wallet.topup_amount:
            return None

        balance = from_cents(wallet.balance)
        threshold = from_cents(wallet.threshold)
        if balance > threshold:
            return None

        amount = from_cents(wallet.topup_amount)
        result = self._charge_stored_payment_method(org_id, amount)

        if result.success:
            logger.info("auto_topup_triggered", org_id=org_id, amount=str(amount))
            return BalanceAlert(
                organisation_id=org_id,
                alert_type=AlertType.AUTO_TOPUP_TRIGGERED,
                current_balance=result.new_balance,
                threshold=threshold,
                severity=AlertSeverity.INFO,
                message=(
                    f"Auto top-up successful: Added {amount:.2f} to wallet. "
                    f"New balance: {result.new_balance:.2f}"
                ),
                triggered_at=datetime.now(UTC),
            )

        logger.warning("auto_topup_failed", org_id=org_id, reason=result.message)
        return BalanceAlert(
            organisation_id=org_id,
            alert_type=AlertType.AUTO_TOPUP_FAILED,
            current_balance=balance,
            threshold=threshold,
            severity=AlertSeverity.CRITICAL,
            message=f"Auto top-up failed: {result.message}",
            triggered_at=datetime.now(UTC),
        )

    def monitor_balance(self, org_id: str) -> list[BalanceAlert]:
        """
        Alerts for the current balance.

        negative_balance (critical) when below zero; low_balance (warning)
        when auto top-up is on and the balance is between zero and the
        threshold; followed by the outcome of any auto top-up.
        """
        status = self.get_wallet_balance(org_id)
        balance = status.balance_in_currency
        now = datetime.now(UTC)
        alerts: list[BalanceAlert] = []

        if balance < 0:
            alerts.append(BalanceAlert(
                organisation_id=org_id,
                alert_type=AlertType.NEGATIVE_BALANCE,
                current_balance=balance,
                severity=AlertSeverity.CRITICAL,
                message=f"CRITICAL: Wallet balance is negative ({balance:.2f}). Immediate top-up required.",
                triggered_at=now,
            ))

        threshold = status.auto_topup_threshold
        if status.auto_topup_enabled and threshold and 0 <= balance <= threshold:
            alerts.append(BalanceAlert(
                organisation_id=org_id,
                alert_type=AlertType.LOW_BALANCE,
                current_balance=balance,
                threshold=threshold,
                severity=AlertSeverity.WARNING,
                message=(
                    f"Low balance warning: Current balance ({balance:.2f}) "
                    f"is at or below threshold ({threshold:.2f})"
                ),
                triggered_at=now,
            ))

        auto_topup_alert = self.check_and_trigger_auto_topup(org_id)
        if auto_topup_alert:
            alerts.append(auto_topup_alert)

        return alerts

    # --------------------------
    # Provisioning
    # --------------------------

    def validate_vm_provisioning(self, org_id: str, vms: list[VMSpecification]) -> ProvisioningValidation:
        """
        Check the wallet covers the full monthly cost of ``vms``.

        Raises:
            ValidationError: If any specification is outside platform limits
            WalletNotFoundError: If the organisation has no wallet
        """
        errors, _ = check_vm_specifications(vms)
        if errors:
            raise ValidationError(
                message="Invalid VM specification",
                details={"errors": errors},
            )

        wallet = self.get_wallet(org_id)
        total_cost = price_for(vms)
        balance = from_cents(wallet.balance)
        is_valid = balance >= total_cost.total_monthly_cost

        if is_valid:
            message = f"Wallet validation successful. Ready to provision {len(vms)} VM(s)."
        else:
            message = (
                f"Insufficient funds. Need {total_cost.total_monthly_cost:.2f} {wallet.currency}, "
                f"have {balance:.2f} {wallet.currency}."
            )

        return ProvisioningValidation(
            is_valid=is_valid,
            total_cost=total_cost,
            current_balance=balance,
            shortfall=None if is_valid else total_cost.total_monthly_cost - balance,
            immediate_charge=total_cost.immediate_charge,
            reserved_amount=total_cost.vcpu_cost + total_cost.ram_cost,
            message=message,
        )

    def process_vm_provisioning_charges(
        self,
        org_id: str,
        vms: list[VMSpecification],
        vcenter_instance_uuid: Optional[str] = None,
    ) -> ProvisioningTransaction:
        """
        Debit the immediate disk charge for ``vms`` and start hourly billing
        of their compute.

        The wallet row stays locked from validation until the debit commits.

        Raises:
            ValidationError: If a specification is invalid or nothing is charged
            InsufficientFundsError: If the wallet does not cover the monthly cost
            WalletNotFoundError: If the organisation has no wallet
        """
        wallet = self.get_wallet(org_id, for_update=True)
        validation = self.validate_vm_provisioning(org_id, vms)
        if not validation.is_valid:
            self.db.rollback()
            raise InsufficientFundsError(
                message=f"VM provisioning validation failed: {validation.message}",
                shortfall=str(validation.shortfall),
            )
        if validation.immediate_charge <= 0:
            self.db.rollback()
            raise ValidationError(
                message="Immediate charge must be greater than 0",
                details={"immediate_charge": str(validation.immediate_charge)},
            )

        transaction_id = _reference("vm-provision")
        transaction = self.record_entry(
            wallet,
            -to_cents(validation.immediate_charge),
            TransactionType.DEBIT,
            transaction_id,
            f"VM provisioning immediate disk charge - {len(vms)} VM(s) - Transaction: {transaction_id}",
        )
        billing_records = [
            _billing_record(org_id, vm, vcenter_instance_uuid, month=f"{datetime.now(UTC):%Y-%m}")
            for vm in vms
        ]
        self.db.add_all(billing_records)

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        audit_logger.log_wallet_transaction(
            actor_id=self.actor_id,
            org_id=org_id,
            transaction_type=TransactionType.DEBIT.value,
            amount_cents=transaction.amount,
            reference=transaction_id,
        )

        return ProvisioningTransaction(
            organisation_id=org_id,
            vm_specifications=vms,
            total_cost=validation.total_cost,
            vcenter_instance_uuid=vcenter_instance_uuid,
            transaction_id=transaction_id,
            new_balance=from_cents(wallet.balance),
            billing_record_ids=[record.id for record in billing_records],
        )

    # --------------------------
    # Statement
    # --------------------------

    def get_statement(
        self,
        org_id: str,
        limit: int = 50,
        offset: int = 0,
        transaction_type: Optional[TransactionType] = None,
    ) -> Statement:
        """
        Transaction history, newest first.

        Credit and debit totals cover every matching transaction, not only
        the returned page.
        """
        wallet = self.get_wallet(org_id)
        query = self.db.query(WalletTransaction).filter(WalletTransaction.wallet_id == wallet.id)
        if transaction_type is not None:
            query = query.filter(WalletTransaction.type == TransactionType(transaction_type).value)

        total = query.count()
        page = (
            query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

        credits = query.with_entities(
            func.coalesce(func.sum(WalletTransaction.amount), 0)
        ).filter(WalletTransaction.amount > 0).scalar()
        debits = query.with_entities(
            func.coalesce(func.sum(WalletTransaction.amount), 0)
        ).filter(WalletTransaction.amount < 0).scalar()

        return Statement(
            organisation_id=org_id,
            transactions=[
                StatementEntry(
                    id=transaction.id,
                    amount=from_cents(transaction.amount),
                    type=transaction.type,
                    reference=transaction.reference,
                    description=transaction.description,
                    created_at=transaction.created_at,
                    is_credit=transaction.amount > 0,
                    is_debit=transaction.amount < 0,
                )
                for transaction in page
            ],
            total=total,
            limit=limit,
            offset=offset,
            total_credits=from_cents(int(credits or 0)),
            total_debits=from_cents(abs(int(debits or 0))),
        )
