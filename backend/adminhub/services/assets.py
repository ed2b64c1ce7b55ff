from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.models.asset import (
    Asset,
    AssetCategory,
    AssetDeployment,
    AssetDisposal,
    AssetHistory,
    AssetRetirement,
)
from adminhub.models.enums import (
    AssetHistoryAction,
    AssetStatus,
    DeploymentStatus,
    DepreciationMethod,
    Role,
    TransferType,
)
from adminhub.models.gl_account import GLAccount
from adminhub.models.organization import BusinessUnit, Department, User
from adminhub.schemas.asset import (
    AssetCategoryCreate,
    AssetCreate,
    DeployAssetsRequest,
    DisposeAssetsRequest,
    RetireAssetsRequest,
    ReturnAssetsRequest,
    TransferAssetsRequest,
)
from adminhub.services import depreciation_math as dm
from adminhub.services.activity import log_activity
from adminhub.services.numbering import next_transfer_batch, next_transmittal_batch, transmittal_item_number

logger = logging.getLogger(__name__)

ASSET_ROLES = (Role.ADMIN, Role.MANAGER, Role.ACCTG)

RETIRABLE_STATUSES = (
    AssetStatus.AVAILABLE,
    AssetStatus.DEPLOYED,
    AssetStatus.IN_MAINTENANCE,
    AssetStatus.DAMAGED,
)
DISPOSABLE_STATUSES = (
    AssetStatus.AVAILABLE,
    AssetStatus.IN_MAINTENANCE,
    AssetStatus.DAMAGED,
    AssetStatus.RETIRED,
)


def require_asset_manager(user: User, business_unit_id: int) -> None:
    rbac.require_roles(user, ASSET_ROLES)
    require_business_unit_access(user, business_unit_id)


def get_asset_or_404(db: Session, asset_id: int) -> Asset:
    asset = db.get(Asset, asset_id)
    if not asset:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    return asset


def _add_history(
    db: Session,
    asset: Asset,
    action: AssetHistoryAction,
    *,
    actor_id: Optional[int],
    notes: Optional[str] = None,
    reference_number: Optional[str] = None,
    business_unit_id: Optional[int] = None,
) -> None:
    db.add(
        AssetHistory(
            asset_id=asset.id,
            business_unit_id=business_unit_id or asset.business_unit_id,
            action=action,
            notes=notes,
            reference_number=reference_number,
            previous_book_value=asset.current_book_value,
            new_book_value=asset.current_book_value,
            performed_by_id=actor_id,
        )
    )


def _load_assets(db: Session, asset_ids: list[int], business_unit_id: int) -> list[Asset]:
    unique_ids = list(dict.fromkeys(asset_ids))
    assets = db.query(Asset).filter(Asset.id.in_(unique_ids)).all()
    found = {asset.id: asset for asset in assets}
    missing = [asset_id for asset_id in unique_ids if asset_id not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Assets not found: {', '.join(str(i) for i in missing)}",
        )
    foreign = [found[i].item_code for i in unique_ids if found[i].business_unit_id != business_unit_id]
    if foreign:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets do not belong to this business unit: {', '.join(foreign)}",
        )
    return [found[i] for i in unique_ids]


def _validate_gl_accounts(db: Session, *account_ids: Optional[int]) -> None:
    for account_id in account_ids:
        if account_id is None:
            continue
        account = db.get(GLAccount, account_id)
        if not account or not account.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid GL account")


def list_categories(db: Session, *, business_unit_id: int) -> list[AssetCategory]:
    return (
        db.query(AssetCategory)
        .filter(AssetCategory.business_unit_id == business_unit_id)
        .order_by(AssetCategory.code.asc())
        .all()
    )


def create_category(db: Session, *, actor: User, payload: AssetCategoryCreate) -> AssetCategory:
    require_asset_manager(actor, payload.business_unit_id)
    exists = (
        db.query(AssetCategory)
        .filter(AssetCategory.business_unit_id == payload.business_unit_id, AssetCategory.code == payload.code)
        .first()
    )
    if exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category code already exists")
    _validate_gl_accounts(
        db,
        payload.asset_account_id,
        payload.accumulated_depreciation_account_id,
        payload.depreciation_expense_account_id,
    )
    category = AssetCategory(**payload.model_dump())
    db.add(category)
    db.flush()
    return category


def create_asset(db: Session, *, actor: User, payload: AssetCreate) -> Asset:
    require_asset_manager(actor, payload.business_unit_id)
    if db.query(Asset.id).filter(Asset.item_code == payload.item_code).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Item code already exists")
    category = db.get(AssetCategory, payload.category_id)
    if not category or category.business_unit_id != payload.business_unit_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid asset category")

    data = payload.model_dump()
    # Accounts fall back to the category defaults.
    for key in ("asset_account_id", "accumulated_depreciation_account_id", "depreciation_expense_account_id"):
        if data[key] is None:
            data[key] = getattr(category, key)
    _validate_gl_accounts(
        db,
        data["asset_account_id"],
        data["accumulated_depreciation_account_id"],
        data["depreciation_expense_account_id"],
    )

    cost = Decimal(payload.purchase_price)
    salvage = Decimal(payload.salvage_value)
    start = payload.depreciation_start_date or payload.purchase_date
    asset = Asset(
        **data,
        monthly_depreciation=dm.initial_monthly_depreciation(
            payload.depreciation_method,
            cost=cost,
            salvage_value=salvage,
            useful_life_years=payload.useful_life_years,
            useful_life_months=payload.useful_life_months,
            depreciation_rate=payload.depreciation_rate,
        ),
        current_book_value=cost,
        accumulated_depreciation=Decimal("0"),
        next_depreciation_date=dm.add_months(start, 1) if start else None,
        is_fully_depreciated=cost <= salvage,
        status=AssetStatus.AVAILABLE,
        created_by_id=actor.id,
    )
    if payload.depreciation_method == DepreciationMethod.UNITS_OF_PRODUCTION:
        asset.depreciation_per_unit = dm.rate_per_unit(cost, salvage, payload.total_expected_units).quantize(
            Decimal("0.0001")
        )
    db.add(asset)
    db.flush()

    _add_history(db, asset, AssetHistoryAction.CREATED, actor_id=actor.id, notes="Asset registered")
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="ASSET_CREATED",
        business_unit_id=asset.business_unit_id,
        message=f"Asset {asset.item_code} created",
        payload={"asset_id": asset.id},
    )
    return asset


def deploy_assets(
    db: Session,
    *,
    actor: User,
    business_unit_id: int,
    payload: DeployAssetsRequest,
) -> tuple[str, list[AssetDeployment]]:
    require_asset_manager(actor, business_unit_id)
    business_unit = db.get(BusinessUnit, business_unit_id)
    if not business_unit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business unit not found")

    employee = db.get(User, payload.employee_id)
    if not employee or not employee.is_active or employee.business_unit_id != business_unit_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee must be active in this business unit",
        )

    assets = _load_assets(db, payload.asset_ids, business_unit_id)
    unavailable = [
        asset.item_code
        for asset in assets
        if asset.status != AssetStatus.AVAILABLE or not asset.is_active or asset.open_deployment is not None
    ]
    if unavailable:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets not available for deployment: {', '.join(unavailable)}",
        )

    batch = next_transmittal_batch(db, business_unit_code=business_unit.code, on=payload.deployed_date)
    deployments = []
    for index, asset in enumerate(assets, start=1):
        deployment = AssetDeployment(
            asset_id=asset.id,
            employee_id=employee.id,
            business_unit_id=business_unit_id,
            transmittal_number=transmittal_item_number(batch, index),
            deployed_date=payload.deployed_date,
            expected_return_date=payload.expected_return_date,
            status=DeploymentStatus.DEPLOYED,
            deployment_notes=payload.notes,
            deployed_by_id=actor.id,
        )
        db.add(deployment)
        asset.deployments.append(deployment)
        asset.status = AssetStatus.DEPLOYED
        asset.currently_assigned_to_id = employee.id
        _add_history(
            db,
            asset,
            AssetHistoryAction.DEPLOYED,
            actor_id=actor.id,
            notes=f"Deployed to {employee.full_name} ({deployment.transmittal_number})",
        )
        deployments.append(deployment)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="ASSETS_DEPLOYED",
        business_unit_id=business_unit_id,
        message=f"{len(deployments)} assets deployed under {batch}",
        payload={"transmittal": batch, "asset_ids": [asset.id for asset in assets], "employee_id": employee.id},
    )
    return batch, deployments


def _close_deployment(deployment: AssetDeployment, *, returned_date, notes: Optional[str]) -> None:
    deployment.status = DeploymentStatus.RETURNED
    deployment.returned_date = returned_date
    deployment.return_notes = notes


def return_assets(db: Session, *, actor: User, business_unit_id: int, payload: ReturnAssetsRequest) -> int:
    require_asset_manager(actor, business_unit_id)
    assets = _load_assets(db, payload.asset_ids, business_unit_id)
    not_deployed = [asset.item_code for asset in assets if asset.status != AssetStatus.DEPLOYED]
    if not_deployed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets are not deployed: {', '.join(not_deployed)}",
        )

    for asset in assets:
        deployment = asset.open_deployment
        if deployment is not None:
            _close_deployment(deployment, returned_date=payload.returned_date, notes=payload.notes)
        asset.status = AssetStatus.AVAILABLE
        asset.currently_assigned_to_id = None
        _add_history(db, asset, AssetHistoryAction.RETURNED, actor_id=actor.id, notes=payload.notes)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="ASSETS_RETURNED",
        business_unit_id=business_unit_id,
        message=f"{len(assets)} assets returned",
        payload={"asset_ids": [asset.id for asset in assets]},
    )
    return len(assets)


def transfer_assets(
    db: Session,
    *,
    actor: User,
    business_unit_id: int,
    payload: TransferAssetsRequest,
) -> tuple[str, list[AssetDeployment]]:
    """Move deployed assets to another employee or another business unit.

    Employee transfers close the open deployment and open a new one for the
    target under the transfer number. Business-unit transfers close the
    deployment and land the asset unassigned and AVAILABLE in the target unit.
    """
    require_asset_manager(actor, business_unit_id)
    business_unit = db.get(BusinessUnit, business_unit_id)
    if not business_unit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business unit not found")

    assets = _load_assets(db, payload.asset_ids, business_unit_id)
    not_deployed = [
        asset.item_code
        for asset in assets
        if asset.status != AssetStatus.DEPLOYED or asset.open_deployment is None
    ]
    if not_deployed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets are not currently deployed: {', '.join(not_deployed)}",
        )

    if payload.transfer_type == TransferType.EMPLOYEE:
        employee = db.get(User, payload.to_employee_id)
        if not employee or not employee.is_active or employee.business_unit_id != business_unit_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Target employee must be active in this business unit",
            )
        kind, target_label = "EMP", f"{employee.full_name} ({employee.employee_id})"
    else:
        target_unit = db.get(BusinessUnit, payload.to_business_unit_id)
        if not target_unit:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Target business unit not found")
        if target_unit.id == business_unit_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Target business unit must differ from the source",
            )
        require_asset_manager(actor, target_unit.id)
        if payload.to_department_id is not None:
            department = db.get(Department, payload.to_department_id)
            if not department or department.business_unit_id != target_unit.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Department does not belong to the target business unit",
                )
        kind, target_label = "BU", target_unit.name

    batch = next_transfer_batch(db, business_unit_code=business_unit.code, kind=kind, on=payload.transfer_date)
    deployments = []
    for index, asset in enumerate(assets, start=1):
        number = transmittal_item_number(batch, index)
        current = asset.open_deployment
        previous_holder = f"{current.employee.full_name} ({current.employee.employee_id})"
        _close_deployment(
            current,
            returned_date=payload.transfer_date,
            notes=f"Transferred to {target_label} via {number}",
        )
        reason = f"Reason: {payload.reason}"

        if payload.transfer_type == TransferType.EMPLOYEE:
            deployment = AssetDeployment(
                asset_id=asset.id,
                employee_id=employee.id,
                business_unit_id=business_unit_id,
                transmittal_number=number,
                deployed_date=payload.transfer_date,
                status=DeploymentStatus.DEPLOYED,
                deployment_notes=payload.notes or f"Transferred from {previous_holder}. {reason}",
                deployed_by_id=actor.id,
            )
            db.add(deployment)
            asset.deployments.append(deployment)
            asset.currently_assigned_to_id = employee.id
            _add_history(
                db,
                asset,
                AssetHistoryAction.TRANSFERRED,
                actor_id=actor.id,
                notes=f"Transferred from {previous_holder} to {target_label}. {reason}",
                reference_number=number,
            )
            deployments.append(deployment)
            continue

        _add_history(
            db,
            asset,
            AssetHistoryAction.TRANSFERRED,
            actor_id=actor.id,
            notes=f"Transferred from {previous_holder} to {target_label}. {reason}",
            reference_number=number,
        )
        asset.business_unit_id = target_unit.id
        asset.department_id = payload.to_department_id
        asset.currently_assigned_to_id = None
        asset.status = AssetStatus.AVAILABLE
        _add_history(
            db,
            asset,
            AssetHistoryAction.TRANSFERRED,
            actor_id=actor.id,
            notes=f"Received from {business_unit.name}. {reason}",
            reference_number=number,
            business_unit_id=target_unit.id,
        )
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="ASSETS_TRANSFERRED",
        business_unit_id=business_unit_id,
        message=f"{len(assets)} assets transferred to {target_label} under {batch}",
        payload={
            "transfer_number": batch,
            "transfer_type": str(payload.transfer_type),
            "asset_ids": [asset.id for asset in assets],
            "to_employee_id": payload.to_employee_id,
            "to_business_unit_id": payload.to_business_unit_id,
        },
    )
    return batch, deployments


def retire_assets(
    db: Session,
    *,
    actor: User,
    business_unit_id: int,
    payload: RetireAssetsRequest,
) -> tuple[int, int]:
    """Retire assets in bulk; returns ``(retired, auto_returned)``."""
    require_asset_manager(actor, business_unit_id)
    assets = _load_assets(db, payload.asset_ids, business_unit_id)

    not_retirable = [asset.item_code for asset in assets if asset.status not in RETIRABLE_STATUSES]
    if not_retirable:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets cannot be retired from their current status: {', '.join(not_retirable)}",
        )
    already = [
        asset.item_code
        for asset in assets
        if db.query(AssetRetirement.id).filter(AssetRetirement.asset_id == asset.id).first()
    ]
    if already:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets already retired: {', '.join(already)}",
        )

    if payload.replacement_asset_id is not None:
        replacement = get_asset_or_404(db, payload.replacement_asset_id)
        if replacement.id in payload.asset_ids or replacement.status != AssetStatus.AVAILABLE:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Replacement asset must be available")
        require_business_unit_access(actor, replacement.business_unit_id)

    if payload.disposal_planned:
        if payload.disposal_date is None or payload.disposal_date < payload.retirement_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Disposal date must be on or after the retirement date",
            )

    auto_returned = 0
    for asset in assets:
        deployment = asset.open_deployment
        if deployment is not None:
            _close_deployment(
                deployment,
                returned_date=payload.retirement_date,
                notes=f"Auto-returned on retirement: {payload.reason}",
            )
            auto_returned += 1

        db.add(
            AssetRetirement(
                asset_id=asset.id,
                business_unit_id=business_unit_id,
                retirement_date=payload.retirement_date,
                reason=payload.reason,
                retirement_method=payload.retirement_method,
                condition=payload.condition,
                notes=payload.notes,
                replacement_asset_id=payload.replacement_asset_id,
                disposal_planned=payload.disposal_planned,
                disposal_date=payload.disposal_date if payload.disposal_planned else None,
                book_value_at_retirement=asset.current_book_value,
                retired_by_id=actor.id,
            )
        )
        asset.status = AssetStatus.RETIRED
        asset.currently_assigned_to_id = None
        _add_history(db, asset, AssetHistoryAction.RETIRED, actor_id=actor.id, notes=payload.reason)
    db.flush()

    if auto_returned:
        logger.info(
            "assets_auto_returned_on_retirement",
            extra={"business_unit_id": business_unit_id, "user_id": actor.id, "asset_count": auto_returned},
        )
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="ASSETS_RETIRED",
        business_unit_id=business_unit_id,
        message=f"{len(assets)} assets retired",
        payload={
            "asset_ids": [asset.id for asset in assets],
            "auto_returned": auto_returned,
            "disposal_date": payload.disposal_date.isoformat() if payload.disposal_date else None,
        },
    )
    return len(assets), auto_returned


def dispose_assets(
    db: Session,
    *,
    actor: User,
    business_unit_id: int,
    payload: DisposeAssetsRequest,
) -> list[AssetDisposal]:
    require_asset_manager(actor, business_unit_id)
    assets = _load_assets(db, payload.asset_ids, business_unit_id)

    deployed = [asset.item_code for asset in assets if asset.open_deployment is not None]
    if deployed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Deployed assets must be returned before disposal: {', '.join(deployed)}",
        )
    invalid = [asset.item_code for asset in assets if asset.status not in DISPOSABLE_STATUSES]
    if invalid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Assets cannot be disposed from their current status: {', '.join(invalid)}",
        )

    net_value = dm.quantize(Decimal(payload.disposal_value) - Decimal(payload.disposal_cost))
    disposals = []
    for asset in assets:
        book_value = Decimal(asset.current_book_value)
        disposal = AssetDisposal(
            asset_id=asset.id,
            business_unit_id=business_unit_id,
            disposal_date=payload.disposal_date,
            reason=payload.reason,
            disposal_method=payload.disposal_method,
            disposal_location=payload.disposal_location,
            disposal_value=payload.disposal_value,
            disposal_cost=payload.disposal_cost,
            net_disposal_value=net_value,
            book_value_at_disposal=book_value,
            gain_loss=dm.quantize(net_value - book_value),
            notes=payload.notes,
            disposed_by_id=actor.id,
        )
        db.add(disposal)
        disposals.append(disposal)
        asset.status = AssetStatus.DISPOSED
        asset.is_active = False
        asset.currently_assigned_to_id = None
        _add_history(db, asset, AssetHistoryAction.DISPOSED, actor_id=actor.id, notes=payload.reason)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="ASSETS_DISPOSED",
        business_unit_id=business_unit_id,
        message=f"{len(assets)} assets disposed",
        payload={"asset_ids": [asset.id for asset in assets], "net_value": str(net_value)},
    )
    return disposals


def public_asset_url(asset: Asset) -> str:
    return f"{settings.app_base_url.rstrip('/')}/public/assets/{asset.id}"
