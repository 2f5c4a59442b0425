"""
Organisation Routes Module
==========================

Scope-filtered organisation endpoints and reseller operations.

Every listing is filtered by the requester's access scope:
- global: all organisations
- reseller_estate: the reseller and its direct children
- organisation: the requester's own organisation
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from cloudportal.core.dependencies.scope import get_requester, require_global_scope, require_permission
from cloudportal.core.enums import AccessScope
from cloudportal.core.exceptions import ValidationError
from cloudportal.core.tenant.scope_query import (
    Requester,
    ScopedOrganizationQuery,
    build_hierarchy,
    estate_summary,
)
from cloudportal.db.session import get_db
from cloudportal.models.organization import Organization
from cloudportal.schemas import ERROR_RESPONSES, OnboardCustomerRequest, envelope
from cloudportal.services.permission_service import PermissionId
from cloudportal.services.reseller_service import ResellerService


router = APIRouter(
    prefix="/api",
    tags=["Organisations"],
    responses=ERROR_RESPONSES,
)


def _scope_info(requester: Requester) -> dict:
    return {"type": requester.scope.value, "organisationId": requester.org_id}


# =====================================
# Scoped Organisation Views
# =====================================

@router.get(
    "/organisations",
    summary="List Visible Organisations",
)
def list_organisations(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    """
    Organisations visible to the requester, anchor organisation first.
    """
    organisations = ScopedOrganizationQuery.for_requester(db, requester).all()
    return envelope(
        data=[organisation.to_dict() for organisation in organisations],
        message=f"Organisations for {requester.scope.value} scope",
        scope=_scope_info(requester),
    )


@router.get(
    "/organisations/hierarchy",
    summary="Organisation Hierarchy",
)
def organisation_hierarchy(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    """
    Visible organisations nested under their parents.

    The tree is rooted at the requester's anchor organisation.
    """
    organisations = ScopedOrganizationQuery.for_requester(db, requester).all()
    anchor = db.get(Organization, requester.org_id)
    root_parent = anchor.parent_id if anchor else None

    return envelope(
        data=build_hierarchy(organisations, parent_id=root_parent),
        message="Organisation hierarchy retrieved successfully",
        scope=_scope_info(requester),
    )


@router.get(
    "/organisations/summary",
    summary="Estate Summary",
)
def organisation_summary(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    summary = estate_summary(db, requester)
    return envelope(
        data=summary.model_dump(by_alias=True),
        message="Estate summary retrieved successfully",
    )


@router.get(
    "/organisation/{org_id}/details",
    summary="Organisation Details",
)
def organisation_details(
    org_id: str,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    """
    Organisation with its users and wallet status.

    Raises:
        TenantIsolationError: If the organisation is outside the requester's scope
        OrganizationNotFoundError: If it does not exist
    """
    details = ResellerService(db).get_organization_details(org_id, requester)
    return envelope(data=details, message="Organisation details retrieved successfully")


# =====================================
# Reseller Endpoints
# =====================================

@router.get(
    "/resellers",
    summary="List Resellers",
    description="All reseller organisations. Platform staff only.",
)
def list_resellers(
    requester: Requester = Depends(require_global_scope),
    db: Session = Depends(get_db),
) -> dict:
    resellers = ResellerService(db).list_resellers()
    return envelope(
        data=[reseller.to_dict() for reseller in resellers],
        message="All resellers retrieved successfully",
    )


def _target_reseller(reseller_id: Optional[str], requester: Requester) -> str:
    if reseller_id:
        return reseller_id
    if requester.scope == AccessScope.GLOBAL:
        raise ValidationError(
            message="resellerId is required",
            details={"errors": [{"field": "resellerId", "message": "resellerId is required"}]},
        )
    return requester.org_id


@router.get(
    "/organisation/reseller/customers",
    summary="Reseller Customers",
)
def reseller_customers(
    reseller_id: Optional[str] = Query(default=None, alias="resellerId"),
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> dict:
    """
    Customers directly under a reseller.

    ``resellerId`` defaults to the requester's own reseller organisation.
    Asking for another reseller's customers is rejected with 403.
    """
    target = _target_reseller(reseller_id, requester)
    customers = ResellerService(db).get_reseller_customers(target, requester)
    return envelope(
        data=[customer.to_dict() for customer in customers],
        message=f"Retrieved {len(customers)} customers for reseller",
        resellerId=target,
    )


@router.post(
    "/organisation/reseller/onboard-customer",
    status_code=status.HTTP_201_CREATED,
    summary="Onboard Customer",
)
def onboard_customer(
    customer: OnboardCustomerRequest,
    requester: Requester = Depends(require_permission(PermissionId.ORG_MANAGE)),
    db: Session = Depends(get_db),
) -> dict:
    """
    Create a customer organisation under a reseller with its first
    administrator and an empty wallet.

    The temporary password is returned once.
    """
    target = _target_reseller(customer.reseller_id, requester)
    result = ResellerService(db).onboard_customer(target, customer, requester)
    return envelope(
        data=result,
        message="Customer onboarded successfully",
        resellerId=target,
    )
