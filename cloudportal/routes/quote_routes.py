"""
Quote Routes Module
===================

VM pricing quotes. Pricing is public to any authenticated user; it does
not touch organisation data.
"""

from fastapi import APIRouter, Depends

from cloudportal.core.dependencies.auth import get_current_user
from cloudportal.core.exceptions import ValidationError
from cloudportal.core.logging import get_logger
from cloudportal.models.user import User
from cloudportal.schemas import ERROR_RESPONSES, QuoteRequest, UpgradeRequest, envelope
from cloudportal.services.pricing import (
    calculate_quote,
    calculate_vm_pricing,
    calculate_vm_upgrade_cost,
    check_vm_specifications,
    recommended_vm_configs,
    validate_vm_specification,
)

logger = get_logger(__name__)


router = APIRouter(
    prefix="/api/quotes",
    tags=["Quotes"],
    responses=ERROR_RESPONSES,
)


@router.post("", summary="Quote VMs")
def create_quote(
    quote_request: QuoteRequest,
    current_user: User = Depends(get_current_user),
) -> dict:
    """
    Price one or more VMs.

    Every specification is checked against platform limits first; any error
    rejects the whole request with 422. Warnings are returned with the quote.
    """
    errors, warnings = check_vm_specifications(quote_request.vms)
    if errors:
        raise ValidationError(
            message="Invalid VM specification",
            details={"errors": errors},
        )

    quote = calculate_quote(quote_request.vms)
    logger.info("quote_calculated", user_id=current_user.id, vm_count=quote.vm_count)

    return envelope(
        data=quote.model_dump(mode="json", by_alias=True),
        message="Quote calculated successfully",
        warnings=warnings,
    )


@router.get("/recommended", summary="Recommended Configurations")
def recommended_configs(current_user: User = Depends(get_current_user)) -> dict:
    configs = recommended_vm_configs()
    return envelope(
        data=[
            {
                "specification": vm.model_dump(mode="json", by_alias=True),
                "pricing": calculate_vm_pricing(vm).model_dump(mode="json", by_alias=True),
            }
            for vm in configs
        ],
        message="Recommended configurations retrieved successfully",
    )


@router.post("/upgrade", summary="Upgrade Cost")
def upgrade_cost(
    upgrade: UpgradeRequest,
    current_user: User = Depends(get_current_user),
) -> dict:
    """Cost difference between two specifications of the same VM."""
    errors = [
        {"field": field, "message": error}
        for field, vm in (("current", upgrade.current), ("new", upgrade.new))
        for error in validate_vm_specification(vm).errors
    ]
    if errors:
        raise ValidationError(message="Invalid VM specification", details={"errors": errors})

    cost = calculate_vm_upgrade_cost(upgrade.current, upgrade.new)
    return envelope(
        data=cost.model_dump(mode="json", by_alias=True),
        message="Upgrade cost calculated successfully",
    )
