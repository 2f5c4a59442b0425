"""
Wallet Routes Module
====================

Prepaid wallet endpoints for an organisation.

Access control:
- Reads require ``billing-view``, writes require ``org-manage``
- The organisation must be visible in the requester's scope (403 otherwise)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from cloudportal.core.dependencies.scope import require_permission
from cloudportal.core.enums import TransactionType
from cloudportal.core.tenant.scope_query import Requester, ScopedOrganizationQuery
from cloudportal.db.session import get_db
from cloudportal.schemas import (
    ERROR_RESPONSES,
    AutoTopupConfig,
    ProvisioningRequest,
    TopupRequest,
    envelope,
)
from cloudportal.services.permission_service import PermissionId
from cloudportal.services.wallet_service import WalletService

router = APIRouter(
    prefix="/api/wallet",
    tags=["Wallet"],
    responses=ERROR_RESPONSES,
)

can_view_billing = require_permission(PermissionId.BILLING_VIEW)
can_manage_organisation = require_permission(PermissionId.ORG_MANAGE)


def _wallets_for(org_id: str, requester: Requester, db: Session) -> WalletService:
    ScopedOrganizationQuery.for_requester(db, requester).get_by_id(org_id)
    return WalletService(db, actor_id=requester.user_id)


def _json(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@router.get("/{org_id}", summary="Wallet Balance")
def wallet_balance(
    org_id: str,
    requester: Requester = Depends(can_view_billing),
    db: Session = Depends(get_db),
) -> dict:
    balance = _wallets_for(org_id, requester, db).get_wallet_balance(org_id)
    return envelope(data=_json(balance), message="Wallet balance retrieved successfully")


@router.post("/{org_id}/topup", summary="Top Up Wallet")
def top_up_wallet(
    org_id: str,
    topup: TopupRequest,
    requester: Requester = Depends(can_manage_organisation),
    db: Session = Depends(get_db),
) -> dict:
    result = _wallets_for(org_id, requester, db).top_up(
        org_id,
        topup.amount,
        payment_method=topup.payment_method,
        reference=topup.reference,
        notes=topup.notes,
    )
    return envelope(data=_json(result), message=result.message)


@router.put("/{org_id}/auto-topup", summary="Configure Auto Top-up")
def configure_auto_topup(
    org_id: str,
    config: AutoTopupConfig,
    requester: Requester = Depends(can_manage_organisation),
    db: Session = Depends(get_db),
) -> dict:
    balance = _wallets_for(org_id, requester, db).configure_auto_topup(
        org_id,
        enabled=config.enabled,
        threshold=config.threshold,
        topup_amount=config.topup_amount,
    )
    state = "enabled" if config.enabled else "disabled"
    return envelope(data=_json(balance), message=f"Auto top-up {state}")


@router.get("/{org_id}/alerts", summary="Balance Alerts")
def balance_alerts(
    org_id: str,
    requester: Requester = Depends(can_view_billing),
    db: Session = Depends(get_db),
) -> dict:
    """
    Current balance alerts.

    May trigger an automatic top-up when the balance is at or below the
    configured threshold.
    """
    alerts = _wallets_for(org_id, requester, db).monitor_balance(org_id)
    return envelope(
        data=[_json(alert) for alert in alerts],
        message=f"{len(alerts)} alert(s)",
    )


@router.get("/{org_id}/statement", summary="Wallet Statement")
def wallet_statement(
    org_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    transaction_type: Optional[TransactionType] = Query(default=None, alias="type"),
    requester: Requester = Depends(can_view_billing),
    db: Session = Depends(get_db),
) -> dict:
    statement = _wallets_for(org_id, requester, db).get_statement(
        org_id,
        limit=limit,
        offset=offset,
        transaction_type=transaction_type,
    )
    return envelope(data=_json(statement), message="Statement retrieved successfully")


@router.post("/{org_id}/provision/validate", summary="Validate VM Provisioning")
def validate_provisioning(
    org_id: str,
    provisioning: ProvisioningRequest,
    requester: Requester = Depends(can_view_billing),
    db: Session = Depends(get_db),
) -> dict:
    validation = _wallets_for(org_id, requester, db).validate_vm_provisioning(org_id, provisioning.vms)
    return envelope(data=_json(validation), message=validation.message)


@router.post(
    "/{org_id}/provision",
    status_code=status.HTTP_201_CREATED,
    summary="Charge VM Provisioning",
)
def provision(
    org_id: str,
    provisioning: ProvisioningRequest,
    requester: Requester = Depends(can_manage_organisation),
    db: Session = Depends(get_db),
) -> dict:
    """
    Debit the immediate disk charge for the requested VMs.

    Answers 402 when the wallet does not cover the full monthly cost.
    """
    transaction = _wallets_for(org_id, requester, db).process_vm_provisioning_charges(
        org_id,
        provisioning.vms,
        vcenter_instance_uuid=provisioning.vcenter_instance_uuid,
    )
    return envelope(data=_json(transaction), message="VM provisioning charges processed")
