"""
VM Billing Service Unit Tests
=============================

Tests for hourly usage charging, month-end reconciliation, billing
summaries and VM state changes.
"""

from datetime import datetime, UTC
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from cloudportal.core.enums import TransactionType, VMBillingStatus
from cloudportal.core.exceptions import ValidationError
from cloudportal.models.vm_billing import VMBillingRecord
from cloudportal.models.wallet import Wallet, WalletTransaction
from cloudportal.schemas.billing import VMStateUpdate
from cloudportal.schemas.quote import VMSpecification
from cloudportal.services.billing_service import (
    VMBillingNotFoundError,
    VMBillingService,
    hours_in_month,
    next_month,
    previous_month,
)
from cloudportal.services.wallet_service import WalletService

from conftest import DISCOVERY_ID, MTN_ID, VODACOM_ID


pytestmark = pytest.mark.wallet

BILLED_AT = datetime(2026, 10, 19, 10, 15, tzinfo=UTC)


@pytest.fixture
def billing(db_session: Session) -> VMBillingService:
    return VMBillingService(db_session, actor_id="platform-admin-001")


def _add_record(db_session: Session, org_id: str = VODACOM_ID, **overrides) -> VMBillingRecord:
    values = {
        "organization_id": org_id,
        "name": "web-01",
        "specification": {"cpu": 2, "memory": 4, "storage": 100},
        # medium VM: 0.6411/hr, vcpu + ram reservation 462
        "hourly_rate": Decimal("0.6411"),
        "reserved_monthly_amount": Decimal("462"),
        "billing_month": "2026-10",
    }
    values.update(overrides)
    record = VMBillingRecord(**values)
    db_session.add(record)
    db_session.commit()
    return record


def _balance(db_session: Session, org_id: str) -> int:
    wallet = db_session.query(Wallet).filter(Wallet.organization_id == org_id).one()
    db_session.refresh(wallet)
    return wallet.balance


class TestCalendar:
    def test_previous_month_crosses_year(self):
        assert previous_month(datetime(2027, 1, 3, tzinfo=UTC)) == "2026-12"

    def test_next_month_crosses_year(self):
        assert next_month("2026-12") == "2027-01"
        assert next_month("2026-09") == "2026-10"

    def test_hours_in_month(self):
        assert hours_in_month("2026-09") == 720
        assert hours_in_month("2028-02") == 696


class TestProvisioningCreatesRecords:
    """Provisioning charges register each VM for hourly billing."""

    def test_record_per_vm(self, db_session: Session, billing: VMBillingService):
        # Arrange
        vms = [
            VMSpecification(name="web-01", cpu=2, memory=4, storage=100),
            VMSpecification(name="web-02", cpu=2, memory=4, storage=100),
        ]

        # Act
        transaction = WalletService(db_session).process_vm_provisioning_charges(
            VODACOM_ID, vms, vcenter_instance_uuid="vc-7"
        )

        # Assert
        records = billing.list_vms(VODACOM_ID)
        assert {record.id for record in records} == set(transaction.billing_record_ids)
        assert sorted(record.name for record in records) == ["web-01", "web-02"]
        assert records[0].hourly_rate == Decimal("0.6411")
        assert records[0].reserved_monthly_amount == Decimal("462")
        assert records[0].vcenter_instance_uuid == "vc-7"
        assert records[0].status == VMBillingStatus.ACTIVE


class TestHourlyBillingCycle:
    """Tests for VMBillingService.process_hourly_billing_cycle."""

    def test_active_vm_is_charged_its_hourly_rate(self, db_session: Session, billing: VMBillingService):
        # Arrange
        record = _add_record(db_session)

        # Act
        cycles = billing.process_hourly_billing_cycle(billed_at=BILLED_AT)

        # Assert
        assert len(cycles) == 1
        cycle = cycles[0]
        assert cycle.organisation_id == VODACOM_ID
        assert cycle.billing_period == datetime(2026, 10, 19, 10, 0, tzinfo=UTC)
        assert cycle.successful_charges == 1
        assert cycle.total_hourly_charges == Decimal("0.64")
        assert _balance(db_session, VODACOM_ID) == 500000 - 64
        db_session.refresh(record)
        assert record.hours_used_this_month == 1
        assert record.actual_usage_this_month == Decimal("0.64")
        usage = (
            db_session.query(WalletTransaction)
            .filter(WalletTransaction.type == TransactionType.USAGE.value)
            .one()
        )
        assert usage.amount == -64

    def test_same_hour_is_charged_once(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session)
        billing.process_hourly_billing_cycle(billed_at=BILLED_AT)

        # Act
        cycles = billing.process_hourly_billing_cycle(billed_at=BILLED_AT.replace(minute=50))

        # Assert
        assert cycles[0].successful_charges == 0
        assert _balance(db_session, VODACOM_ID) == 500000 - 64

    def test_next_hour_is_charged_again(self, db_session: Session, billing: VMBillingService):
        # Arrange
        record = _add_record(db_session)
        billing.process_hourly_billing_cycle(billed_at=BILLED_AT)

        # Act
        billing.process_hourly_billing_cycle(billed_at=BILLED_AT.replace(hour=11))

        # Assert
        db_session.refresh(record)
        assert record.hours_used_this_month == 2
        assert _balance(db_session, VODACOM_ID) == 500000 - 128

    def test_powered_off_and_suspended_vms_are_not_charged(
        self, db_session: Session, billing: VMBillingService
    ):
        # Arrange
        _add_record(db_session, powered_on=False)
        _add_record(db_session, name="web-02", status=VMBillingStatus.SUSPENDED.value)

        # Act
        cycles = billing.process_hourly_billing_cycle(billed_at=BILLED_AT)

        # Assert
        assert cycles[0].successful_charges == 0
        assert cycles[0].total_hourly_charges == Decimal("0")
        assert _balance(db_session, VODACOM_ID) == 500000

    def test_insufficient_balance_is_a_failed_charge(self, db_session: Session, billing: VMBillingService):
        # Arrange
        wallet = db_session.query(Wallet).filter(Wallet.organization_id == DISCOVERY_ID).one()
        wallet.balance = 10
        db_session.commit()
        record = _add_record(db_session, org_id=DISCOVERY_ID)

        # Act
        cycles = billing.process_hourly_billing_cycle(billed_at=BILLED_AT)

        # Assert
        assert cycles[0].failed_charges == 1
        assert cycles[0].errors == [f"VM {record.id}: Insufficient balance: need 0.64, have 0.10"]
        assert _balance(db_session, DISCOVERY_ID) == 10

    def test_organisations_are_billed_separately(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session)
        _add_record(db_session, org_id=MTN_ID, hourly_rate=Decimal("1.2500"))

        # Act
        cycles = billing.process_hourly_billing_cycle(billed_at=BILLED_AT)

        # Assert
        charges = {cycle.organisation_id: cycle.total_hourly_charges for cycle in cycles}
        assert charges == {MTN_ID: Decimal("1.25"), VODACOM_ID: Decimal("0.64")}
        assert len({cycle.cycle_id for cycle in cycles}) == 1


class TestMonthEndReconciliation:
    """Tests for VMBillingService.process_month_end_reconciliation."""

    def test_usage_above_reservation_is_credited(self, db_session: Session, billing: VMBillingService):
        # Arrange
        record = _add_record(
            db_session,
            billing_month="2026-09",
            reserved_monthly_amount=Decimal("1.00"),
            actual_usage_this_month=Decimal("1.50"),
            hours_used_this_month=3,
        )

        # Act
        reconciliations = billing.process_month_end_reconciliation("2026-09")

        # Assert
        assert len(reconciliations) == 1
        result = reconciliations[0]
        assert result.adjustment_amount == Decimal("0.50")
        assert result.rollover_credit == Decimal("-0.50")
        detail = result.vm_reconciliations[0]
        assert detail.total_hours_in_month == 720
        assert detail.hours_used == 3
        assert detail.utilization_percentage == Decimal("0.42")
        assert _balance(db_session, VODACOM_ID) == 500000 + 50
        credit = (
            db_session.query(WalletTransaction)
            .filter(WalletTransaction.type == TransactionType.CREDIT.value)
            .one()
        )
        assert credit.amount == 50
        db_session.refresh(record)
        assert record.billing_month == "2026-10"
        assert record.hours_used_this_month == 0
        assert record.actual_usage_this_month == Decimal("0")

    def test_unused_reservation_is_reported_not_deposited(
        self, db_session: Session, billing: VMBillingService
    ):
        # Arrange
        _add_record(
            db_session,
            billing_month="2026-09",
            actual_usage_this_month=Decimal("100.00"),
            hours_used_this_month=156,
        )

        # Act
        result = billing.process_month_end_reconciliation("2026-09")[0]

        # Assert
        assert result.rollover_credit == Decimal("362")
        assert result.adjustment_amount == Decimal("0")
        assert _balance(db_session, VODACOM_ID) == 500000

    def test_month_is_closed_once(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session, billing_month="2026-09")
        billing.process_month_end_reconciliation("2026-09")

        # Act
        reconciliations = billing.process_month_end_reconciliation("2026-09")

        # Assert
        assert reconciliations == []

    def test_defaults_to_previous_month(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session, billing_month="2026-09")

        # Act
        reconciliations = billing.process_month_end_reconciliation(now=datetime(2026, 10, 1, 0, 5, tzinfo=UTC))

        # Assert
        assert [result.month for result in reconciliations] == ["2026-09"]

    def test_idle_terminated_vms_are_skipped(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session, billing_month="2026-09", status=VMBillingStatus.TERMINATED.value)

        # Act & Assert
        assert billing.process_month_end_reconciliation("2026-09") == []

    @pytest.mark.parametrize("month", ["2026-13", "2026-9", "September"])
    def test_bad_month_is_rejected(self, billing: VMBillingService, month: str):
        with pytest.raises(ValidationError):
            billing.process_month_end_reconciliation(month)


class TestBillingSummary:
    """Tests for VMBillingService.get_billing_summary."""

    def test_projection_extrapolates_usage_to_date(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session, actual_usage_this_month=Decimal("10.00"), hours_used_this_month=16)
        _add_record(db_session, name="old", status=VMBillingStatus.TERMINATED.value)

        # Act
        summary = billing.get_billing_summary(VODACOM_ID, now=datetime(2026, 10, 10, 12, tzinfo=UTC))

        # Assert
        assert summary.month == "2026-10"
        assert summary.current_month.active_vms == 1
        assert summary.current_month.total_reserved_amount == Decimal("462")
        assert summary.current_month.actual_usage_to_date == Decimal("10.00")
        assert summary.current_month.projected_monthly_usage == Decimal("31.00")

    def test_recent_hourly_charges(self, db_session: Session, billing: VMBillingService):
        # Arrange
        _add_record(db_session)
        billing.process_hourly_billing_cycle()

        # Act
        summary = billing.get_billing_summary(VODACOM_ID)

        # Assert
        assert summary.recent_hourly_charges == Decimal("0.64")


class TestUpdateVMState:
    """Tests for VMBillingService.update_vm_state."""

    def test_power_off(self, db_session: Session, billing: VMBillingService):
        # Arrange
        record = _add_record(db_session)

        # Act
        updated = billing.update_vm_state(VODACOM_ID, record.id, VMStateUpdate(powered_on=False))

        # Assert
        assert updated.powered_on is False
        assert updated.status == VMBillingStatus.ACTIVE

    def test_record_of_another_organisation_is_not_found(
        self, db_session: Session, billing: VMBillingService
    ):
        # Arrange
        record = _add_record(db_session, org_id=MTN_ID)

        # Act & Assert
        with pytest.raises(VMBillingNotFoundError):
            billing.update_vm_state(VODACOM_ID, record.id, VMStateUpdate(powered_on=False))

    def test_terminated_vm_cannot_change(self, db_session: Session, billing: VMBillingService):
        # Arrange
        record = _add_record(db_session, status=VMBillingStatus.TERMINATED.value)

        # Act & Assert
        with pytest.raises(ValidationError):
            billing.update_vm_state(VODACOM_ID, record.id, VMStateUpdate(status=VMBillingStatus.ACTIVE))
