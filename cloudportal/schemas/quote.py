"""
Quote Schemas Module
====================

VM specification and pricing models.

Money fields are ``Decimal`` in Python and serialised as JSON numbers.
Response models use camelCase keys when dumped with ``by_alias=True``.
"""

from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

CpuSpeed = Literal["2GHz", "1.8GHz"]
StorageType = Literal["Standard", "Premium"]
OperatingSystem = Literal["Windows", "Linux"]


class CamelModel(BaseModel):
    """Base for models exchanged with the portal front end."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==========================
# Request Schemas
# ==========================

class VMSpecification(CamelModel):
    """
    Requested virtual machine.

    Ranges are checked by ``validate_vm_specification`` so that all problems
    are reported together rather than failing on the first field.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    cpu: int = Field(..., description="vCPU count")
    cpu_speed: CpuSpeed = Field(default="2GHz")
    memory: int = Field(..., description="Memory in GB")
    storage: int = Field(..., description="Disk in GB")
    storage_type: StorageType = Field(default="Standard")
    os: OperatingSystem = Field(default="Linux")
    backup: bool = False
    monitoring: bool = False

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "Medium Production",
                "cpu": 2,
                "cpuSpeed": "2GHz",
                "memory": 4,
                "storage": 100,
                "storageType": "Standard",
                "os": "Linux"
            }
        }
    )


class QuoteRequest(CamelModel):
    """One or more VMs to price."""

    vms: list[VMSpecification] = Field(..., min_length=1)


class UpgradeRequest(CamelModel):
    current: VMSpecification
    new: VMSpecification


# ==========================
# Response Schemas
# ==========================

class PricingBreakdown(CamelModel):
    """Monthly cost breakdown for one VM (or the sum for several)."""

    vcpu_cost: Money
    ram_cost: Money
    disk_cost: Money
    network_cost: Money
    os_cost: Money
    backup_cost: Money
    monitoring_cost: Money
    hourly_rate: Money
    monthly_rate: Money
    total_monthly_cost: Money
    immediate_charge: Money
    currency: str = "ZAR"


class Quote(PricingBreakdown):
    """Totals across several VMs with the individual breakdowns."""

    vm_count: int
    individual_vms: list[PricingBreakdown] = Field(default_factory=list, alias="individualVMs")


class UpgradeBreakdown(CamelModel):
    cpu: Money
    memory: Money
    storage: Money
    os: Money


class UpgradeCost(CamelModel):
    cost_difference: Money
    immediate_charge: Money
    monthly_difference: Money
    breakdown: UpgradeBreakdown


class SpecificationCheck(CamelModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
