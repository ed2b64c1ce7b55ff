from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.db.session import get_db
from adminhub.models.enums import MRStatus
from adminhub.models.material_request import MaterialRequest
from adminhub.models.organization import User
from adminhub.schemas.approval import ApproveAction, RejectAction
from adminhub.schemas.common import Page
from adminhub.schemas.material_request import (
    AcknowledgementRequest,
    CompleteEditRequest,
    MaterialRequestCreate,
    MaterialRequestRead,
    MaterialRequestUpdate,
)
from adminhub.services import material_requests as mr_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/material-requests", tags=["material-requests"])

VIEWER_ROLES = set(mr_service.RECEIVE_ROLES) | set(mr_service.POST_ROLES)


def _require_view(mr: MaterialRequest, user: User) -> None:
    if user.id in (mr.requested_by_id, mr.rec_approver_id, mr.final_approver_id):
        return
    rbac.require_roles(user, VIEWER_ROLES)
    require_business_unit_access(user, mr.business_unit_id)


def _page(rows, meta) -> Page[MaterialRequestRead]:
    return Page[MaterialRequestRead](items=[MaterialRequestRead.model_validate(r) for r in rows], **meta)


@router.post("", response_model=MaterialRequestRead, status_code=status.HTTP_201_CREATED)
def create_material_request(
    mr_in: MaterialRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.create_material_request(db, owner=current_user, payload=mr_in)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.get("/my", response_model=Page[MaterialRequestRead])
def my_material_requests(
    business_unit_id: Optional[int] = Query(None),
    status_filter: Optional[MRStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[MaterialRequestRead]:
    query = db.query(MaterialRequest).filter(MaterialRequest.requested_by_id == current_user.id)
    if business_unit_id is not None:
        require_business_unit_access(current_user, business_unit_id)
        query = query.filter(MaterialRequest.business_unit_id == business_unit_id)
    if status_filter:
        query = query.filter(MaterialRequest.status == status_filter)
    query = query.order_by(MaterialRequest.created_at.desc(), MaterialRequest.id.desc())
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/pending", response_model=Page[MaterialRequestRead])
def pending_material_requests(
    business_unit_id: int = Query(...),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[MaterialRequestRead]:
    query = mr_service.pending_for_approver(
        db.query(MaterialRequest),
        actor=current_user,
        business_unit_id=business_unit_id,
    )
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/{material_request_id}", response_model=MaterialRequestRead)
def get_material_request(
    material_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    _require_view(mr, current_user)
    return MaterialRequestRead.model_validate(mr)


@router.put("/{material_request_id}", response_model=MaterialRequestRead)
def update_material_request(
    material_request_id: int,
    mr_in: MaterialRequestUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.update_material_request(db, mr=mr, actor=current_user, payload=mr_in)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.delete("/{material_request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_material_request(
    material_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.delete_material_request(db, mr=mr, actor=current_user)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{material_request_id}/submit", response_model=MaterialRequestRead)
def submit_material_request(
    material_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.submit_for_approval(db, mr=mr, actor=current_user)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/approve", response_model=MaterialRequestRead)
def approve_material_request(
    material_request_id: int,
    action: ApproveAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.approve_material_request(db, mr=mr, actor=current_user, comments=action.comments)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/reject", response_model=MaterialRequestRead)
def reject_material_request(
    material_request_id: int,
    action: RejectAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.reject_material_request(db, mr=mr, actor=current_user, comments=action.comments)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/complete-edit", response_model=MaterialRequestRead)
def complete_edit(
    material_request_id: int,
    edit_in: CompleteEditRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.complete_edit(db, mr=mr, actor=current_user, descriptions=edit_in.descriptions)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)


@router.post("/{material_request_id}/acknowledge", response_model=MaterialRequestRead)
def acknowledge_material_request(
    material_request_id: int,
    ack_in: AcknowledgementRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MaterialRequestRead:
    mr = mr_service.get_material_request_or_404(db, material_request_id)
    mr_service.save_acknowledgement(db, mr=mr, actor=current_user, signature_data=ack_in.signature_data)
    db.commit()
    db.refresh(mr)
    return MaterialRequestRead.model_validate(mr)
