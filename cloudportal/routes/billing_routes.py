"""
Billing Routes Module
=====================

Hourly VM billing endpoints.

Access control:
- Running the hourly cycle and month-end close requires global scope
- Summary and VM listing require ``billing-view``, state changes ``org-manage``
- The organisation must be visible in the requester's scope (403 otherwise)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cloudportal.core.dependencies.scope import require_global_scope, require_permission
from cloudportal.core.tenant.scope_query import Requester, ScopedOrganizationQuery
from cloudportal.db.session import get_db
from cloudportal.schemas import ERROR_RESPONSES, VMStateUpdate, envelope
from cloudportal.services.billing_service import VMBillingService
from cloudportal.services.permission_service import PermissionId

router = APIRouter(
    prefix="/api/billing",
    tags=["Billing"],
    responses=ERROR_RESPONSES,
)

can_view_billing = require_permission(PermissionId.BILLING_VIEW)
can_manage_organisation = require_permission(PermissionId.ORG_MANAGE)


def _billing_for(org_id: str, requester: Requester, db: Session) -> VMBillingService:
    ScopedOrganizationQuery.for_requester(db, requester).get_by_id(org_id)
    return VMBillingService(db, actor_id=requester.user_id)


def _json(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@router.post("/hourly-cycle", summary="Run Hourly Billing Cycle")
def run_hourly_cycle(
    requester: Requester = Depends(require_global_scope),
    db: Session = Depends(get_db),
) -> dict:
    cycles = VMBillingService(db, actor_id=requester.user_id).process_hourly_billing_cycle()
    return envelope(
        data=[_json(cycle) for cycle in cycles],
        message=f"Hourly billing processed for {len(cycles)} organisation(s)",
    )


@router.post("/month-end", summary="Run Month-end Reconciliation")
def run_month_end(
    month: Optional[str] = Query(default=None, description="YYYY-MM, defaults to the previous month"),
    requester: Requester = Depends(require_global_scope),
    db: Session = Depends(get_db),
) -> dict:
    reconciliations = VMBillingService(db, actor_id=requester.user_id).process_month_end_reconciliation(month)
    return envelope(
        data=[_json(reconciliation) for reconciliation in reconciliations],
        message=f"{len(reconciliations)} organisation(s) reconciled",
    )


@router.get("/{org_id}/summary", summary="Billing Summary")
def billing_summary(
    org_id: str,
    requester: Requester = Depends(can_view_billing),
    db: Session = Depends(get_db),
) -> dict:
    summary = _billing_for(org_id, requester, db).get_billing_summary(org_id)
    return envelope(data=_json(summary), message="Billing summary retrieved successfully")


@router.get("/{org_id}/vms", summary="Billed VMs")
def billed_vms(
    org_id: str,
    requester: Requester = Depends(can_view_billing),
    db: Session = Depends(get_db),
) -> dict:
    records = _billing_for(org_id, requester, db).list_vms(org_id)
    return envelope(data=[_json(record) for record in records], message=f"{len(records)} VM(s)")


@router.patch("/{org_id}/vms/{record_id}", summary="Update VM State")
def update_vm_state(
    org_id: str,
    record_id: str,
    update: VMStateUpdate,
    requester: Requester = Depends(can_manage_organisation),
    db: Session = Depends(get_db),
) -> dict:
    """Report a power state or lifecycle change. Only active, powered-on VMs are billed."""
    record = _billing_for(org_id, requester, db).update_vm_state(org_id, record_id, update)
    return envelope(data=_json(record), message="VM state updated")
