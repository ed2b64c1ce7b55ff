from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.db.session import get_db
from adminhub.models.material_request import MaterialRequest
from adminhub.models.organization import User
from adminhub.schemas.common import Page
from adminhub.schemas.material_request import MarkForEditRequest, MarkServedRequest, MaterialRequestRead
from adminhub.services import material_requests as mr_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/mrs-coordinator", tags=["mrs-coordinator"])

COORDINATOR_ROLES = set(mr_service.SERVE_ROLES) | set(mr_service.POST_ROLES) | set(mr_service.RECEIVE_ROLES)


@router.get("/queues/{queue}", response_model=Page[MaterialRequestRead])
def coordinator_queue(
    queue: str,
    business_unit_id: int = Query(...),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[MaterialRequestRead]:
    rbac.require_roles(current_user, COORDINATOR_ROLES)
    require_business_unit_access(current_user, business_unit_id)
    query = mr_service.coordinator_queue(
        db.query(MaterialRequest),
        queue=queue,
        business_unit_id=business_unit_id,
        search=search,
    )
    rows, meta = paginate(query, page=page, page_size=page_size)
    return Page[MaterialRequestRead](items=[MaterialRequestRead.model_validate(r) for r in rows], **meta)


@router.post("/{material_request_id}/mark-for-edit", response_model=MaterialRequestRead)
def mark_for_edit(
    material_request_id: int,
    edit_in: MarkForEditRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.mark_for_edit(db, mr=mr, actor=current_user, reason=edit_in.reason, item_ids=edit_in.item_ids)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/serve", response_model=MaterialRequestRead)
def mark_served(
    material_request_id: int,
    serve_in: MarkServedRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.mark_served(db, mr=mr, actor=current_user, payload=serve_in)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/post", response_model=MaterialRequestRead)
def mark_posted(
    material_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.mark_posted(db, mr=mr, actor=current_user)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/receive", response_model=MaterialRequestRead)
def mark_received(
    material_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.mark_received(db, mr=mr, actor=current_user)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)
