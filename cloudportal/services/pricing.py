"""
VM Pricing Module
=================

Monthly VM pricing in ZAR.

Billing model:
- Compute (CPU, memory, OS licence, add-on services) is billed monthly
  and exposed as an hourly rate over a 744 hour month
- Disk is charged in full at provisioning time per started 100 GB block
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from cloudportal.schemas.quote import (
    PricingBreakdown,
    Quote,
    SpecificationCheck,
    UpgradeBreakdown,
    UpgradeCost,
    VMSpecification,
)


# ==========================
# Price List (ZAR)
# ==========================

CPU_PRICE = {"2GHz": Decimal("155"), "1.8GHz": Decimal("78")}  # per vCPU per month
MEMORY_PRICE = Decimal("38")  # per GB per month
STORAGE_PRICE = {"Standard": Decimal("180"), "Premium": Decimal("275")}  # per 100 GB, immediate
OS_PRICE = {"Windows": Decimal("89"), "Linux": Decimal("0")}
BACKUP_PRICE = Decimal("45")
MONITORING_PRICE = Decimal("25")
NETWORK_BASE_PRICE = Decimal("15")

HOURS_PER_MONTH = 744
STORAGE_UNIT_GB = 100
CURRENCY = "ZAR"

# Specification limits
CPU_RANGE = (1, 64)
MEMORY_RANGE_GB = (1, 512)
STORAGE_RANGE_GB = (20, 10000)
MIN_MEMORY_PER_CPU = 2
MAX_MEMORY_PER_CPU = 16

HOURLY_PLACES = Decimal("0.0001")

_SUMMED_FIELDS = (
    "vcpu_cost",
    "ram_cost",
    "disk_cost",
    "network_cost",
    "os_cost",
    "backup_cost",
    "monitoring_cost",
    "hourly_rate",
    "monthly_rate",
    "total_monthly_cost",
    "immediate_charge",
)


def calculate_vm_pricing(vm: VMSpecification) -> PricingBreakdown:
    """
    Price a single VM.

    Example:
        2 vCPU @ 2GHz, 4 GB, 100 GB Standard, Linux
        -> monthly 477, immediate 180, total 657, hourly 0.6411
    """
    vcpu_cost = vm.cpu * CPU_PRICE[vm.cpu_speed]
    ram_cost = vm.memory * MEMORY_PRICE

    storage_units = math.ceil(vm.storage / STORAGE_UNIT_GB)
    disk_cost = storage_units * STORAGE_PRICE[vm.storage_type]

    os_cost = OS_PRICE[vm.os]
    backup_cost = BACKUP_PRICE if vm.backup else Decimal("0")
    monitoring_cost = MONITORING_PRICE if vm.monitoring else Decimal("0")
    network_cost = NETWORK_BASE_PRICE

    monthly_rate = vcpu_cost + ram_cost + os_cost + backup_cost + monitoring_cost + network_cost
    hourly_rate = (monthly_rate / HOURS_PER_MONTH).quantize(HOURLY_PLACES, rounding=ROUND_HALF_UP)

    return PricingBreakdown(
        vcpu_cost=vcpu_cost,
        ram_cost=ram_cost,
        disk_cost=disk_cost,
        network_cost=network_cost,
        os_cost=os_cost,
        backup_cost=backup_cost,
        monitoring_cost=monitoring_cost,
        hourly_rate=hourly_rate,
        monthly_rate=monthly_rate,
        total_monthly_cost=monthly_rate + disk_cost,
        immediate_charge=disk_cost,
        currency=CURRENCY,
    )


def calculate_quote(vms: Iterable[VMSpecification]) -> Quote:
    """Price several VMs; totals are the sum of the individual breakdowns."""
    individual = [calculate_vm_pricing(vm) for vm in vms]
    totals = {
        field: sum((getattr(pricing, field) for pricing in individual), Decimal("0"))
        for field in _SUMMED_FIELDS
    }
    return Quote(
        **totals,
        currency=CURRENCY,
        vm_count=len(individual),
        individual_vms=individual,
    )


def price_for(vms: list[VMSpecification]) -> PricingBreakdown | Quote:
    """Single breakdown for one VM, a quote for several."""
    if len(vms) == 1:
        return calculate_vm_pricing(vms[0])
    return calculate_quote(vms)


def calculate_vm_upgrade_cost(current: VMSpecification, new: VMSpecification) -> UpgradeCost:
    """Difference in cost from ``current`` to ``new`` (negative for downgrades)."""
    before = calculate_vm_pricing(current)
    after = calculate_vm_pricing(new)

    return UpgradeCost(
        cost_difference=after.total_monthly_cost - before.total_monthly_cost,
        immediate_charge=after.immediate_charge - before.immediate_charge,
        monthly_difference=after.monthly_rate - before.monthly_rate,
        breakdown=UpgradeBreakdown(
            cpu=after.vcpu_cost - before.vcpu_cost,
            memory=after.ram_cost - before.ram_cost,
            storage=after.disk_cost - before.disk_cost,
            os=after.os_cost - before.os_cost,
        ),
    )


def validate_vm_specification(vm: VMSpecification) -> SpecificationCheck:
    """
    Check a specification against platform limits.

    Out of range values are errors; an unusual memory to CPU ratio is only
    a warning.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not CPU_RANGE[0] <= vm.cpu <= CPU_RANGE[1]:
        errors.append("CPU count must be between 1 and 64")

    if not MEMORY_RANGE_GB[0] <= vm.memory <= MEMORY_RANGE_GB[1]:
        errors.append("Memory must be between 1 GB and 512 GB")

    if not STORAGE_RANGE_GB[0] <= vm.storage <= STORAGE_RANGE_GB[1]:
        errors.append("Storage must be between 20 GB and 10 TB")

    if vm.memory > 0 and vm.cpu > 0:
        ratio = vm.memory / vm.cpu
        if ratio < MIN_MEMORY_PER_CPU:
            warnings.append("Low memory-to-CPU ratio may impact performance")
        if ratio > MAX_MEMORY_PER_CPU:
            warnings.append("High memory-to-CPU ratio may be inefficient")

    return SpecificationCheck(is_valid=not errors, errors=errors, warnings=warnings)


def check_vm_specifications(vms: Iterable[VMSpecification]) -> tuple[list[dict], list[str]]:
    """
    Validate several VMs at once.

    Returns:
        ``(errors, warnings)``; errors are ``{"field", "message"}`` dicts keyed
        ``vms[i]``, and both are prefixed with the VM name or ``VM n``
    """
    errors: list[dict] = []
    warnings: list[str] = []
    for index, vm in enumerate(vms):
        check = validate_vm_specification(vm)
        label = vm.name or f"VM {index + 1}"
        errors.extend({"field": f"vms[{index}]", "message": f"{label}: {error}"} for error in check.errors)
        warnings.extend(f"{label}: {warning}" for warning in check.warnings)
    return errors, warnings


def recommended_vm_configs() -> list[VMSpecification]:
    """Preset configurations offered in the launch wizard."""
    return [
        VMSpecification(
            name="Small Development",
            cpu=1, cpu_speed="2GHz", memory=2,
            storage=50, storage_type="Standard", os="Linux",
        ),
        VMSpecification(
            name="Medium Production",
            cpu=2, cpu_speed="2GHz", memory=4,
            storage=100, storage_type="Standard", os="Linux",
        ),
        VMSpecification(
            name="Large Database",
            cpu=4, cpu_speed="2GHz", memory=8,
            storage=200, storage_type="Premium", os="Linux",
            backup=True, monitoring=True,
        ),
        VMSpecification(
            name="Enterprise Application",
            cpu=8, cpu_speed="2GHz", memory=16,
            storage=500, storage_type="Premium", os="Windows",
            backup=True, monitoring=True,
        ),
    ]
