from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.db.session import get_db
from adminhub.models.asset import Asset
from adminhub.models.enums import AssetStatus
from adminhub.models.organization import User
from adminhub.schemas.asset import (
    AssetCategoryCreate,
    AssetCategoryRead,
    AssetCreate,
    AssetHistoryRead,
    AssetQRRead,
    AssetRead,
    DeployAssetsRequest,
    DeployAssetsResult,
    DeploymentRead,
    DisposalRead,
    DisposeAssetsRequest,
    DisposeAssetsResult,
    RetireAssetsRequest,
    RetireAssetsResult,
    ReturnAssetsRequest,
    ReturnAssetsResult,
    TransferAssetsRequest,
    TransferAssetsResult,
)
from adminhub.schemas.common import Page
from adminhub.services import assets as asset_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/assets", tags=["assets"])


def _get_visible_asset(db: Session, asset_id: int, user: User) -> Asset:
    asset = asset_service.get_asset_or_404(db, asset_id)
    require_business_unit_access(user, asset.business_unit_id)
    return asset


@router.get("", response_model=Page[AssetRead])
def list_assets(
    business_unit_id: int = Query(...),
    status_filter: Optional[AssetStatus] = Query(None, alias="status"),
    category_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[AssetRead]:
    require_business_unit_access(current_user, business_unit_id)
    query = db.query(Asset).filter(Asset.business_unit_id == business_unit_id)
    if status_filter:
        query = query.filter(Asset.status == status_filter)
    if category_id:
        query = query.filter(Asset.category_id == category_id)
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Asset.item_code).like(term),
                func.lower(Asset.description).like(term),
                func.lower(func.coalesce(Asset.serial_number, "")).like(term),
            )
        )
    query = query.order_by(Asset.item_code.asc())
    rows, meta = paginate(query, page=page, page_size=page_size)
    return Page[AssetRead](items=[AssetRead.model_validate(r) for r in rows], **meta)


@router.post("", response_model=AssetRead, status_code=status.HTTP_201_CREATED)
def create_asset(
    asset_in: AssetCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AssetRead:
    asset = asset_service.create_asset(db, actor=current_user, payload=asset_in)
    db.commit()
    db.refresh(asset)
    return AssetRead.model_validate(asset)


@router.get("/categories", response_model=List[AssetCategoryRead])
def list_categories(
    business_unit_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[AssetCategoryRead]:
    require_business_unit_access(current_user, business_unit_id)
    categories = asset_service.list_categories(db, business_unit_id=business_unit_id)
    return [AssetCategoryRead.model_validate(c) for c in categories]


@router.post("/categories", response_model=AssetCategoryRead, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: AssetCategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AssetCategoryRead:
    category = asset_service.create_category(db, actor=current_user, payload=category_in)
    db.commit()
    db.refresh(category)
    return AssetCategoryRead.model_validate(category)


@router.post("/deploy", response_model=DeployAssetsResult)
def deploy_assets(
    deploy_in: DeployAssetsRequest,
    business_unit_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DeployAssetsResult:
    batch, deployments = asset_service.deploy_assets(
        db, actor=current_user, business_unit_id=business_unit_id, payload=deploy_in
    )
    db.commit()
    return DeployAssetsResult(
        transmittal_number=batch,
        deployments=[DeploymentRead.model_validate(d) for d in deployments],
    )


@router.post("/return", response_model=ReturnAssetsResult)
def return_assets(
    return_in: ReturnAssetsRequest,
    business_unit_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReturnAssetsResult:
    count = asset_service.return_assets(db, actor=current_user, business_unit_id=business_unit_id, payload=return_in)
    db.commit()
    return ReturnAssetsResult(returned_count=count)


@router.post("/transfer", response_model=TransferAssetsResult)
def transfer_assets(
    transfer_in: TransferAssetsRequest,
    business_unit_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TransferAssetsResult:
    batch, deployments = asset_service.transfer_assets(
        db, actor=current_user, business_unit_id=business_unit_id, payload=transfer_in
    )
    db.commit()
    return TransferAssetsResult(
        transfer_number=batch,
        transferred_count=len(set(transfer_in.asset_ids)),
        deployments=[DeploymentRead.model_validate(d) for d in deployments],
    )


@router.post("/retire", response_model=RetireAssetsResult)
def retire_assets(
    retire_in: RetireAssetsRequest,
    business_unit_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> RetireAssetsResult:
    retired, auto_returned = asset_service.retire_assets(
        db, actor=current_user, business_unit_id=business_unit_id, payload=retire_in
    )
    db.commit()
    message = f"Retired {retired} asset(s)"
    if auto_returned:
        message += f"; {auto_returned} deployment(s) automatically returned"
    return RetireAssetsResult(retired_count=retired, auto_returned_count=auto_returned, message=message)


@router.post("/dispose", response_model=DisposeAssetsResult)
def dispose_assets(
    dispose_in: DisposeAssetsRequest,
    business_unit_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DisposeAssetsResult:
    disposals = asset_service.dispose_assets(
        db, actor=current_user, business_unit_id=business_unit_id, payload=dispose_in
    )
    db.commit()
    total = sum((Decimal(d.gain_loss) for d in disposals), Decimal("0"))
    return DisposeAssetsResult(
        disposals=[DisposalRead.model_validate(d) for d in disposals],
        total_gain_loss=total,
    )


@router.get("/{asset_id}", response_model=AssetRead)
def get_asset(
    asset_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AssetRead:
    return AssetRead.model_validate(_get_visible_asset(db, asset_id, current_user))


@router.get("/{asset_id}/history", response_model=List[AssetHistoryRead])
def asset_history(
    asset_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[AssetHistoryRead]:
    asset = _get_visible_asset(db, asset_id, current_user)
    return [AssetHistoryRead.model_validate(h) for h in asset.history]


@router.get("/{asset_id}/deployments", response_model=List[DeploymentRead])
def asset_deployments(
    asset_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[DeploymentRead]:
    asset = _get_visible_asset(db, asset_id, current_user)
    return [DeploymentRead.model_validate(d) for d in asset.deployments]


@router.get("/{asset_id}/qr", response_model=AssetQRRead)
def asset_qr(
    asset_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AssetQRRead:
    asset = _get_visible_asset(db, asset_id, current_user)
    return AssetQRRead(asset_id=asset.id, item_code=asset.item_code, url=asset_service.public_asset_url(asset))
