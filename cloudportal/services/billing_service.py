"""
VM Billing Service Module
=========================

Usage billing for provisioned VMs:
- Hourly cycle charging every active, powered-on VM its hourly rate
- Month-end reconciliation of reserved compute against actual usage
- Billing summary per organisation

Each hourly charge is a ``usage`` ledger entry. An hour is charged at most
once per VM; re-running a cycle for the same hour is a no-op.
"""

import calendar
import re
import uuid
from datetime import datetime, timedelta, UTC
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from cloudportal.core.enums import TransactionType, VMBillingStatus
from cloudportal.core.exceptions import NotFoundError, PortalException, ValidationError
from cloudportal.core.logging import audit_logger, get_logger
from cloudportal.models.vm_billing import VMBillingRecord
from cloudportal.models.wallet import Wallet, WalletTransaction
from cloudportal.schemas.billing import (
    BillingSummary,
    CurrentMonthBilling,
    HourlyBillingCycle,
    MonthEndReconciliation,
    VMBillingRecordOut,
    VMReconciliationDetail,
    VMStateUpdate,
)
from cloudportal.services.wallet_service import WalletService, from_cents, to_cents

logger = get_logger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
CENTS = Decimal("0.01")


# ==========================
# Calendar Helpers
# ==========================

def month_key(moment: datetime) -> str:
    return f"{moment:%Y-%m}"


def previous_month(moment: datetime) -> str:
    first = moment.replace(day=1)
    return month_key(first - timedelta(days=1))


def next_month(month: str) -> str:
    year, number = (int(part) for part in month.split("-"))
    if number == 12:
        return f"{year + 1}-01"
    return f"{year}-{number + 1:02d}"


def hours_in_month(month: str) -> int:
    year, number = (int(part) for part in month.split("-"))
    return calendar.monthrange(year, number)[1] * 24


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def _record_out(record: VMBillingRecord) -> VMBillingRecordOut:
    return VMBillingRecordOut(
        id=record.id,
        organisation_id=record.organization_id,
        name=record.name,
        vcenter_instance_uuid=record.vcenter_instance_uuid,
        specification=record.specification,
        hourly_rate=record.hourly_rate,
        reserved_monthly_amount=record.reserved_monthly_amount,
        billing_month=record.billing_month,
        actual_usage_this_month=record.actual_usage_this_month,
        hours_used_this_month=record.hours_used_this_month,
        status=record.status,
        powered_on=record.powered_on,
        last_billed_at=record.last_billed_at,
    )


class VMBillingNotFoundError(NotFoundError):
    """No billing record with this id in the organisation."""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(resource="VM billing record", identifier=identifier)


class VMBillingService:
    """
    Usage:
        billing = VMBillingService(db)
        cycles = billing.process_hourly_billing_cycle()
        reconciliations = billing.process_month_end_reconciliation("2026-09")
    """

    def __init__(self, db: Session, actor_id: Optional[str] = None):
        self.db = db
        self.actor_id = actor_id
        self.wallets = WalletService(db, actor_id=actor_id)

    # --------------------------
    # Records
    # --------------------------

    def list_vms(self, org_id: str) -> list[VMBillingRecordOut]:
        records = (
            self.db.query(VMBillingRecord)
            .filter(VMBillingRecord.organization_id == org_id)
            .order_by(VMBillingRecord.created_at, VMBillingRecord.id)
            .all()
        )
        return [_record_out(record) for record in records]

    def update_vm_state(self, org_id: str, record_id: str, update: VMStateUpdate) -> VMBillingRecordOut:
        """
        Apply a power state or lifecycle change.

        Raises:
            VMBillingNotFoundError: If the record does not belong to ``org_id``
            ValidationError: If the VM is already terminated
        """
        record = (
            self.db.query(VMBillingRecord)
            .filter(VMBillingRecord.id == record_id, VMBillingRecord.organization_id == org_id)
            .first()
        )
        if record is None:
            raise VMBillingNotFoundError(record_id)
        if record.status == VMBillingStatus.TERMINATED:
            raise ValidationError(
                message="Terminated VMs cannot change state",
                details={"vm_id": record_id},
            )

        if update.powered_on is not None:
            record.powered_on = update.powered_on
        if update.status is not None:
            record.status = VMBillingStatus(update.status).value

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "vm_state_updated",
            org_id=org_id,
            vm_id=record_id,
            status=record.status,
            powered_on=record.powered_on,
        )
        return _record_out(record)

    # --------------------------
    # Hourly Billing
    # --------------------------

    def process_hourly_billing_cycle(self, billed_at: Optional[datetime] = None) -> list[HourlyBillingCycle]:
        """
        Charge one hour of usage for every billable VM.

        Organisations are processed independently; a failure in one is
        reported in its cycle and does not stop the others.
        """
        period = _as_utc(billed_at or datetime.now(UTC)).replace(minute=0, second=0, microsecond=0)
        cycle_id = f"billing-cycle-{uuid.uuid4().hex[:12]}"

        org_ids = [
            org_id for (org_id,) in (
                self.db.query(VMBillingRecord.organization_id)
                .filter(VMBillingRecord.status == VMBillingStatus.ACTIVE.value)
                .distinct()
                .order_by(VMBillingRecord.organization_id)
                .all()
            )
        ]
        logger.info("hourly_billing_started", cycle_id=cycle_id, period=period.isoformat(), organisations=len(org_ids))

        cycles = []
        for org_id in org_ids:
            try:
                cycles.append(self._bill_organisation(org_id, cycle_id, period))
            except PortalException as e:
                self.db.rollback()
                logger.error("hourly_billing_failed", cycle_id=cycle_id, org_id=org_id, error=e.message)
                cycles.append(HourlyBillingCycle(
                    cycle_id=cycle_id,
                    organisation_id=org_id,
                    billing_period=period,
                    vms_billed=0,
                    total_hourly_charges=Decimal("0"),
                    successful_charges=0,
                    failed_charges=1,
                    errors=[e.message],
                    completed_at=datetime.now(UTC),
                ))

        logger.info("hourly_billing_completed", cycle_id=cycle_id, organisations=len(cycles))
        return cycles

    def _bill_organisation(self, org_id: str, cycle_id: str, period: datetime) -> HourlyBillingCycle:
        records = (
            self.db.query(VMBillingRecord)
            .filter(
                VMBillingRecord.organization_id == org_id,
                VMBillingRecord.status == VMBillingStatus.ACTIVE.value,
            )
            .order_by(VMBillingRecord.created_at, VMBillingRecord.id)
            .all()
        )
        wallet = self.wallets.get_wallet(org_id, for_update=True)

        total = Decimal("0")
        charged: list[tuple[str, int]] = []
        failed = 0
        errors: list[str] = []

        for record in records:
            if not record.is_billable:
                continue
            if record.last_billed_at is not None and _as_utc(record.last_billed_at) >= period:
                continue

            amount_cents = to_cents(record.hourly_rate)
            charge = from_cents(amount_cents)
            if wallet.balance < amount_cents:
                failed += 1
                errors.append(
                    f"VM {record.id}: Insufficient balance: need {charge:.2f}, "
                    f"have {from_cents(wallet.balance):.2f}"
                )
                continue

            spec = record.specification or {}
            reference = f"vm-hourly-{record.id[:8]}-{period:%Y%m%d%H}"
            self.wallets.record_entry(
                wallet,
                -amount_cents,
                TransactionType.USAGE,
                reference,
                (
                    f"Hourly VM usage - {record.name or record.id} - "
                    f"{spec.get('cpu')}vCPU/{spec.get('memory')}GB - Rate: {record.hourly_rate:.4f}/hr"
                ),
            )
            record.actual_usage_this_month += charge
            record.hours_used_this_month += 1
            record.last_billed_at = period

            total += charge
            charged.append((reference, amount_cents))

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for reference, amount_cents in charged:
            audit_logger.log_wallet_transaction(
                actor_id=self.actor_id,
                org_id=org_id,
                transaction_type=TransactionType.USAGE.value,
                amount_cents=-amount_cents,
                reference=reference,
            )
        if failed:
            logger.warning("hourly_charges_failed", org_id=org_id, failed=failed)

        return HourlyBillingCycle(
            cycle_id=cycle_id,
            organisation_id=org_id,
            billing_period=period,
            vms_billed=len(records),
            total_hourly_charges=total,
            successful_charges=len(charged),
            failed_charges=failed,
            errors=errors,
            completed_at=datetime.now(UTC),
        )

    # --------------------------
    # Month-end Reconciliation
    # --------------------------

    def process_month_end_reconciliation(
        self,
        month: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[MonthEndReconciliation]:
        """
        Close ``month`` (YYYY-MM, default the previous month) for every
        organisation with billing records in it.

        Hourly charges above a VM's reserved amount are credited back.
        Reconciled records move on to the next month with their counters
        reset, so closing the same month twice finds nothing.

        Raises:
            ValidationError: If ``month`` is not YYYY-MM
        """
        month = month or previous_month(_as_utc(now or datetime.now(UTC)))
        if not MONTH_PATTERN.match(month):
            raise ValidationError(
                message="Month must be in YYYY-MM format",
                details={"month": month},
            )

        org_ids = [
            org_id for (org_id,) in (
                self._month_records_query(month)
                .with_entities(VMBillingRecord.organization_id)
                .distinct()
                .order_by(VMBillingRecord.organization_id)
                .all()
            )
        ]

        reconciliations = []
        for org_id in org_ids:
            try:
                reconciliations.append(self._reconcile_organisation(org_id, month))
            except PortalException as e:
                self.db.rollback()
                logger.error("month_end_reconciliation_failed", org_id=org_id, month=month, error=e.message)

        logger.info("month_end_reconciliation_completed", month=month, organisations=len(reconciliations))
        return reconciliations

    def _month_records_query(self, month: str):
        # Terminated VMs that never ran this month have nothing to reconcile
        return self.db.query(VMBillingRecord).filter(
            VMBillingRecord.billing_month == month,
            ~(
                (VMBillingRecord.status == VMBillingStatus.TERMINATED.value)
                & (VMBillingRecord.hours_used_this_month == 0)
            ),
        )

    def _reconcile_organisation(self, org_id: str, month: str) -> MonthEndReconciliation:
        records = (
            self._month_records_query(month)
            .filter(VMBillingRecord.organization_id == org_id)
            .order_by(VMBillingRecord.created_at, VMBillingRecord.id)
            .all()
        )
        total_hours = hours_in_month(month)

        total_reserved = Decimal("0")
        total_actual = Decimal("0")
        adjustment = Decimal("0")
        details = []

        for record in records:
            reserved = Decimal(record.reserved_monthly_amount)
            actual = Decimal(record.actual_usage_this_month)
            utilization = (Decimal(record.hours_used_this_month) * 100 / total_hours).quantize(
                CENTS, rounding=ROUND_HALF_UP
            )

            details.append(VMReconciliationDetail(
                vm_id=record.id,
                vcenter_instance_uuid=record.vcenter_instance_uuid,
                reserved_amount=reserved,
                actual_usage=actual,
                hours_used=record.hours_used_this_month,
                total_hours_in_month=total_hours,
                utilization_percentage=utilization,
                rollover_amount=reserved - actual,
            ))
            total_reserved += reserved
            total_actual += actual
            adjustment += max(actual - reserved, Decimal("0"))

            record.billing_month = next_month(month)
            record.actual_usage_this_month = Decimal("0")
            record.hours_used_this_month = 0

        adjustment_cents = to_cents(adjustment)
        if adjustment_cents > 0:
            wallet = self.wallets.get_wallet(org_id, for_update=True)
            self.wallets.record_entry(
                wallet,
                adjustment_cents,
                TransactionType.CREDIT,
                f"recon-{month}-{uuid.uuid4().hex[:8]}",
                f"Month-end reconciliation - {month} - Usage above reservation: {from_cents(adjustment_cents):.2f}",
            )

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        audit_logger.log_month_end_reconciled(org_id=org_id, month=month, adjustment_cents=adjustment_cents)

        return MonthEndReconciliation(
            reconciliation_id=f"recon-{month}-{org_id}-{uuid.uuid4().hex[:8]}",
            organisation_id=org_id,
            month=month,
            total_reserved_amount=total_reserved,
            total_actual_usage=total_actual,
            rollover_credit=total_reserved - total_actual,
            adjustment_amount=from_cents(adjustment_cents),
            vm_reconciliations=details,
            reconciled_at=datetime.now(UTC),
        )

    # --------------------------
    # Summary
    # --------------------------

    def get_billing_summary(self, org_id: str, now: Optional[datetime] = None) -> BillingSummary:
        """
        Current month usage for ``org_id``.

        Projected usage extrapolates usage to date over the whole month.
        Recent hourly charges cover the last 24 hours.
        """
        now = _as_utc(now or datetime.now(UTC))
        month = month_key(now)

        active = (
            self.db.query(VMBillingRecord)
            .filter(
                VMBillingRecord.organization_id == org_id,
                VMBillingRecord.status == VMBillingStatus.ACTIVE.value,
            )
            .all()
        )
        total_reserved = sum((Decimal(record.reserved_monthly_amount) for record in active), Decimal("0"))
        usage_to_date = sum(
            (Decimal(record.actual_usage_this_month) for record in active if record.billing_month == month),
            Decimal("0"),
        )
        days = hours_in_month(month) // 24
        projected = (usage_to_date / now.day * days).quantize(CENTS, rounding=ROUND_HALF_UP)

        recent_cents = (
            self.db.query(func.coalesce(func.sum(WalletTransaction.amount), 0))
            .join(Wallet, WalletTransaction.wallet_id == Wallet.id)
            .filter(
                Wallet.organization_id == org_id,
                WalletTransaction.type == TransactionType.USAGE.value,
                WalletTransaction.created_at >= now - timedelta(hours=24),
            )
            .scalar()
        )

        return BillingSummary(
            organisation_id=org_id,
            month=month,
            current_month=CurrentMonthBilling(
                active_vms=len(active),
                total_reserved_amount=total_reserved,
                actual_usage_to_date=usage_to_date,
                projected_monthly_usage=projected,
            ),
            recent_hourly_charges=from_cents(abs(int(recent_cents or 0))),
        )
