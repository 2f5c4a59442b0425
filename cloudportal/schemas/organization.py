"""
Organization Schemas Module
===========================

Pydantic models for organisation and reseller request/response validation.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ==========================
# Onboarding Schemas
# ==========================

class OnboardCustomerRequest(BaseModel):
    """A reseller onboarding a new customer organisation."""

    organisation_name: str = Field(
        ...,
        min_length=2,
        max_length=255,
        description="Customer organisation name"
    )
    email: EmailStr = Field(
        ...,
        description="Email of the customer's first administrator"
    )
    first_name: str = Field(
        ...,
        alias="firstName",
        min_length=1,
        max_length=100,
    )
    last_name: str = Field(
        ...,
        alias="lastName",
        min_length=1,
        max_length=100,
    )
    city: Optional[str] = Field(default=None, max_length=100)
    province: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)
    postal_code: Optional[str] = Field(default=None, alias="postalCode", max_length=20)
    reseller_id: Optional[str] = Field(
        default=None,
        alias="resellerId",
        description="Target reseller; defaults to the requester's own reseller"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "organisation_name": "StartupCorp Demo",
                "email": "admin@startupcorp.com",
                "firstName": "Jane",
                "lastName": "Startup",
                "city": "Cape Town",
                "province": "Western Cape",
                "address": "123 Startup Street",
                "postalCode": "8001"
            }
        }
    )


class OnboardedOrganisation(BaseModel):
    """Organisation part of the onboarding result."""

    id: str
    organisation_name: str
    organisation_type: str
    parent_id: str


# ==========================
# Summary Schemas
# ==========================

class EstateSummary(BaseModel):
    """Dashboard figures for the requester's estate."""

    scope: str = Field(..., description="Requester's access scope")
    organisation_id: str = Field(..., alias="organisationId")
    organisation_name: str = Field(..., alias="organisationName")
    reseller_count: int = Field(default=0, alias="resellerCount")
    total_customers: int = Field(default=0, alias="totalCustomers")
    direct_customers: int = Field(default=0, alias="directCustomers")
    total_revenue: float = Field(default=0, alias="totalRevenue")
    total_monthly_commission: float = Field(default=0, alias="totalMonthlyCommission")

    model_config = ConfigDict(populate_by_name=True)
