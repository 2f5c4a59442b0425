"""
Billing Schemas Module
======================

Hourly VM billing, month-end reconciliation and billing summary models.
Amounts are in currency units (ZAR).
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from cloudportal.core.enums import VMBillingStatus
from cloudportal.schemas.quote import CamelModel, Money


class VMBillingRecordOut(CamelModel):
    id: str
    organisation_id: str
    name: Optional[str] = None
    vcenter_instance_uuid: Optional[str] = None
    specification: dict
    hourly_rate: Money
    reserved_monthly_amount: Money
    billing_month: str
    actual_usage_this_month: Money
    hours_used_this_month: int
    status: VMBillingStatus
    powered_on: bool
    last_billed_at: Optional[datetime] = None


class VMStateUpdate(CamelModel):
    """Power state or lifecycle change reported for a VM."""

    powered_on: Optional[bool] = None
    status: Optional[VMBillingStatus] = None


class HourlyBillingCycle(CamelModel):
    cycle_id: str
    organisation_id: str
    billing_period: datetime
    vms_billed: int
    total_hourly_charges: Money
    successful_charges: int
    failed_charges: int
    errors: list[str] = Field(default_factory=list)
    completed_at: datetime


class VMReconciliationDetail(CamelModel):
    vm_id: str
    vcenter_instance_uuid: Optional[str] = None
    reserved_amount: Money
    actual_usage: Money
    hours_used: int
    total_hours_in_month: int
    utilization_percentage: Money
    rollover_amount: Money


class MonthEndReconciliation(CamelModel):
    """
    Outcome of closing a billing month for one organisation.

    ``rollover_credit`` is the unused compute reservation. ``adjustment_amount``
    is what was credited back to the wallet: hourly charges above the
    reservation.
    """

    reconciliation_id: str
    organisation_id: str
    month: str
    total_reserved_amount: Money
    total_actual_usage: Money
    rollover_credit: Money
    adjustment_amount: Money
    vm_reconciliations: list[VMReconciliationDetail]
    reconciled_at: datetime


class CurrentMonthBilling(CamelModel):
    active_vms: int
    total_reserved_amount: Money
    actual_usage_to_date: Money
    projected_monthly_usage: Money


class BillingSummary(CamelModel):
    organisation_id: str
    month: str
    current_month: CurrentMonthBilling
    recent_hourly_charges: Money
