from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.db.session import get_db
from adminhub.models.enums import RequestStatus
from adminhub.models.organization import User
from adminhub.models.overtime import OvertimeRequest
from adminhub.schemas.approval import ApproveAction, RejectAction
from adminhub.schemas.common import Page
from adminhub.schemas.overtime import OvertimeRequestCreate, OvertimeRequestRead
from adminhub.services import approvals
from adminhub.services import overtime as overtime_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/overtime", tags=["overtime"])


def _get_overtime_or_404(db: Session, overtime_id: int) -> OvertimeRequest:
    overtime = db.get(OvertimeRequest, overtime_id)
    if not overtime:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Overtime request not found")
    return overtime


def _page(rows, meta) -> Page[OvertimeRequestRead]:
    return Page[OvertimeRequestRead](items=[OvertimeRequestRead.model_validate(r) for r in rows], **meta)


@router.post("", response_model=OvertimeRequestRead, status_code=status.HTTP_201_CREATED)
def submit_overtime(
    overtime_in: OvertimeRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OvertimeRequestRead:
    overtime = overtime_service.submit_overtime_request(db, owner=current_user, payload=overtime_in)
    db.commit()
    db.refresh(overtime)
    return OvertimeRequestRead.model_validate(overtime)


@router.get("/my", response_model=Page[OvertimeRequestRead])
def my_overtime(
    business_unit_id: Optional[int] = Query(None),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[OvertimeRequestRead]:
    if business_unit_id is not None:
        require_business_unit_access(current_user, business_unit_id)
    query = db.query(OvertimeRequest).filter(OvertimeRequest.user_id == current_user.id)
    if status_filter:
        query = query.filter(OvertimeRequest.status == status_filter)
    query = query.order_by(OvertimeRequest.created_at.desc(), OvertimeRequest.id.desc())
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/pending", response_model=Page[OvertimeRequestRead])
def pending_overtime(
    business_unit_id: int = Query(...),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[OvertimeRequestRead]:
    query = approvals.pending_for_approver(
        db.query(OvertimeRequest),
        OvertimeRequest,
        actor=current_user,
        business_unit_id=business_unit_id,
        status_filter=status_filter,
    )
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/history", response_model=Page[OvertimeRequestRead])
def overtime_history(
    business_unit_id: int = Query(...),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[OvertimeRequestRead]:
    query = approvals.acted_on_by(
        db.query(OvertimeRequest),
        OvertimeRequest,
        actor=current_user,
        business_unit_id=business_unit_id,
        status_filter=status_filter,
    )
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/{overtime_id}", response_model=OvertimeRequestRead)
def get_overtime(
    overtime_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OvertimeRequestRead:
    overtime = _get_overtime_or_404(db, overtime_id)
    approvals.require_viewer(current_user, overtime)
    return OvertimeRequestRead.model_validate(overtime)


@router.put("/{overtime_id}", response_model=OvertimeRequestRead)
def update_overtime(
    overtime_id: int,
    overtime_in: OvertimeRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OvertimeRequestRead:
    overtime = _get_overtime_or_404(db, overtime_id)
    overtime_service.update_overtime_request(db, overtime=overtime, actor=current_user, payload=overtime_in)
    db.commit()
    db.refresh(overtime)
    return OvertimeRequestRead.model_validate(overtime)


@router.post("/{overtime_id}/cancel", response_model=OvertimeRequestRead)
def cancel_overtime(
    overtime_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OvertimeRequestRead:
    overtime = _get_overtime_or_404(db, overtime_id)
    approvals.cancel_request(db, request=overtime, actor=current_user)
    db.commit()
    db.refresh(overtime)
    return OvertimeRequestRead.model_validate(overtime)


@router.post("/{overtime_id}/approve", response_model=OvertimeRequestRead)
def approve_overtime(
    overtime_id: int,
    action: ApproveAction,
    business_unit_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OvertimeRequestRead:
    overtime = _get_overtime_or_404(db, overtime_id)
    approvals.approve_request(
        db,
        request=overtime,
        actor=current_user,
        comments=action.comments,
        business_unit_id=business_unit_id,
    )
    db.commit()
    db.refresh(overtime)
    return OvertimeRequestRead.model_validate(overtime)


@router.post("/{overtime_id}/reject", response_model=OvertimeRequestRead)
def reject_overtime(
    overtime_id: int,
    action: RejectAction,
    business_unit_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OvertimeRequestRead:
    overtime = _get_overtime_or_404(db, overtime_id)
    approvals.reject_request(
        db,
        request=overtime,
        actor=current_user,
        comments=action.comments,
        business_unit_id=business_unit_id,
    )
    db.commit()
    db.refresh(overtime)
    return OvertimeRequestRead.model_validate(overtime)
