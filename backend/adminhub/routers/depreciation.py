from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.db.session import get_db
from adminhub.models.organization import User
from adminhub.schemas.common import ErrorItem, Page
from adminhub.schemas.depreciation import (
    DepreciationExecutionDetail,
    DepreciationExecutionRead,
    DepreciationPreview,
    DepreciationRunRequest,
    DepreciationRunResult,
    DueAsset,
)
from adminhub.services import depreciation as depreciation_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/depreciation", tags=["depreciation"])


@router.get("/preview", response_model=DepreciationPreview)
def preview_depreciation(
    business_unit_id: int = Query(...),
    override: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DepreciationPreview:
    data = depreciation_service.preview(
        db,
        user=current_user,
        business_unit_id=business_unit_id,
        override=override,
    )
    data["due_assets"] = [DueAsset.model_validate(a) for a in data["due_assets"]]
    data["next_month_assets"] = [DueAsset.model_validate(a) for a in data["next_month_assets"]]
    return DepreciationPreview(**data)


@router.post("/run", response_model=DepreciationRunResult)
def run_depreciation(
    run_in: DepreciationRunRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DepreciationRunResult:
    result = depreciation_service.run_batch(
        db,
        business_unit_id=run_in.business_unit_id,
        user=current_user,
        asset_ids=run_in.asset_ids,
        override=run_in.override,
        units_used=run_in.units_used,
    )
    db.commit()
    db.refresh(result.execution)
    return DepreciationRunResult(
        execution=DepreciationExecutionRead.model_validate(result.execution),
        processed_count=result.processed_count,
        failed_count=result.failed_count,
        total_amount=result.execution.total_amount,
        errors=[ErrorItem(**error) for error in result.errors],
    )


@router.get("/executions", response_model=Page[DepreciationExecutionRead])
def list_executions(
    business_unit_id: int = Query(...),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[DepreciationExecutionRead]:
    depreciation_service.require_depreciation_access(current_user, business_unit_id)
    query = depreciation_service.list_executions(db, business_unit_id=business_unit_id)
    rows, meta = paginate(query, page=page, page_size=page_size)
    return Page[DepreciationExecutionRead](
        items=[DepreciationExecutionRead.model_validate(r) for r in rows],
        **meta,
    )


@router.get("/executions/{execution_id}", response_model=DepreciationExecutionDetail)
def get_execution(
    execution_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DepreciationExecutionDetail:
    execution = depreciation_service.get_execution_or_404(db, execution_id)
    depreciation_service.require_depreciation_access(current_user, execution.business_unit_id)
    return DepreciationExecutionDetail.model_validate(execution)
