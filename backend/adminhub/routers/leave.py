from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.db.session import get_db
from adminhub.models.enums import RequestStatus
from adminhub.models.leave import LeaveRequest, LeaveType
from adminhub.models.organization import User
from adminhub.schemas.approval import ApproveAction, RejectAction
from adminhub.schemas.common import Page
from adminhub.schemas.leave import (
    LeaveBalanceBulkUpdate,
    LeaveBalanceRead,
    LeaveBalanceUpsert,
    LeaveRequestCreate,
    LeaveRequestRead,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeRead,
    LeaveTypeUpdate,
    ReplenishmentPreviewRead,
    ReplenishRequest,
    ReplenishResult,
)
from adminhub.services import approvals
from adminhub.services import leave as leave_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/leave", tags=["leave"])


def _get_leave_or_404(db: Session, leave_id: int) -> LeaveRequest:
    leave = db.get(LeaveRequest, leave_id)
    if not leave:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    return leave


def _page(rows, meta) -> Page[LeaveRequestRead]:
    return Page[LeaveRequestRead](items=[LeaveRequestRead.model_validate(r) for r in rows], **meta)


@router.get("/types", response_model=List[LeaveTypeRead])
def list_leave_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[LeaveTypeRead]:
    leave_types = db.query(LeaveType).order_by(LeaveType.name.asc()).all()
    return [LeaveTypeRead.model_validate(t) for t in leave_types]


@router.post("/types", response_model=LeaveTypeRead, status_code=status.HTTP_201_CREATED)
def create_leave_type(
    leave_type_in: LeaveTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveTypeRead:
    leave_service.require_leave_setup(current_user)
    leave_type = leave_service.create_leave_type(db, payload=leave_type_in)
    db.commit()
    db.refresh(leave_type)
    return LeaveTypeRead.model_validate(leave_type)


@router.patch("/types/{leave_type_id}", response_model=LeaveTypeRead)
def update_leave_type(
    leave_type_id: int,
    leave_type_in: LeaveTypeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveTypeRead:
    leave_service.require_leave_setup(current_user)
    leave_type = leave_service.get_leave_type_or_404(db, leave_type_id)
    leave_service.update_leave_type(db, leave_type=leave_type, payload=leave_type_in)
    db.commit()
    db.refresh(leave_type)
    return LeaveTypeRead.model_validate(leave_type)


@router.delete("/types/{leave_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_leave_type(
    leave_type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    leave_service.require_leave_setup(current_user)
    leave_type = leave_service.get_leave_type_or_404(db, leave_type_id)
    leave_service.delete_leave_type(db, leave_type=leave_type)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/balances", response_model=List[LeaveBalanceRead])
def list_balances(
    user_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[LeaveBalanceRead]:
    target_id = current_user.id
    if user_id is not None and user_id != current_user.id:
        leave_service.require_leave_setup(current_user)
        target_id = user_id
    balances = leave_service.list_balances(db, user_id=target_id, year=year)
    return [LeaveBalanceRead.model_validate(b) for b in balances]


@router.put("/balances", response_model=LeaveBalanceRead)
def upsert_balance(
    balance_in: LeaveBalanceUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveBalanceRead:
    leave_service.require_leave_setup(current_user)
    balance = leave_service.upsert_balance(db, payload=balance_in, actor=current_user)
    db.commit()
    db.refresh(balance)
    return LeaveBalanceRead.model_validate(balance)


@router.post("/balances/bulk", response_model=List[LeaveBalanceRead])
def bulk_update_balances(
    bulk_in: LeaveBalanceBulkUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[LeaveBalanceRead]:
    balances = leave_service.bulk_update_balances(db, actor=current_user, payload=bulk_in)
    db.commit()
    for balance in balances:
        db.refresh(balance)
    return [LeaveBalanceRead.model_validate(b) for b in balances]


@router.get("/balances/replenishment-preview", response_model=ReplenishmentPreviewRead)
def replenishment_preview(
    business_unit_id: int = Query(...),
    from_year: int = Query(..., ge=2000, le=2100),
    to_year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReplenishmentPreviewRead:
    preview = leave_service.replenishment_preview(
        db,
        actor=current_user,
        business_unit_id=business_unit_id,
        from_year=from_year,
        to_year=to_year or from_year + 1,
    )
    return ReplenishmentPreviewRead.model_validate(preview)


@router.post("/balances/replenish", response_model=ReplenishResult)
def replenish_balances(
    replenish_in: ReplenishRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReplenishResult:
    result = leave_service.replenish_balances(db, actor=current_user, payload=replenish_in)
    db.commit()
    return ReplenishResult.model_validate(result)


@router.post("", response_model=LeaveRequestRead, status_code=status.HTTP_201_CREATED)
def submit_leave(
    leave_in: LeaveRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveRequestRead:
    leave = leave_service.submit_leave_request(db, owner=current_user, payload=leave_in)
    db.commit()
    db.refresh(leave)
    return LeaveRequestRead.model_validate(leave)


@router.get("/my", response_model=Page[LeaveRequestRead])
def my_leave(
    business_unit_id: Optional[int] = Query(None),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    leave_type_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[LeaveRequestRead]:
    if business_unit_id is not None:
        require_business_unit_access(current_user, business_unit_id)
    query = db.query(LeaveRequest).filter(LeaveRequest.user_id == current_user.id)
    if status_filter:
        query = query.filter(LeaveRequest.status == status_filter)
    if leave_type_id:
        query = query.filter(LeaveRequest.leave_type_id == leave_type_id)
    query = query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/pending", response_model=Page[LeaveRequestRead])
def pending_leave(
    business_unit_id: int = Query(...),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[LeaveRequestRead]:
    query = approvals.pending_for_approver(
        db.query(LeaveRequest),
        LeaveRequest,
        actor=current_user,
        business_unit_id=business_unit_id,
        status_filter=status_filter,
    )
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/history", response_model=Page[LeaveRequestRead])
def leave_history(
    business_unit_id: int = Query(...),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    leave_type_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Page[LeaveRequestRead]:
    query = approvals.acted_on_by(
        db.query(LeaveRequest),
        LeaveRequest,
        actor=current_user,
        business_unit_id=business_unit_id,
        status_filter=status_filter,
    )
    if leave_type_id:
        query = query.filter(LeaveRequest.leave_type_id == leave_type_id)
    return _page(*paginate(query, page=page, page_size=page_size))


@router.get("/{leave_id}", response_model=LeaveRequestRead)
def get_leave(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveRequestRead:
    leave = _get_leave_or_404(db, leave_id)
    approvals.require_viewer(current_user, leave)
    return LeaveRequestRead.model_validate(leave)


@router.put("/{leave_id}", response_model=LeaveRequestRead)
def update_leave(
    leave_id: int,
    leave_in: LeaveRequestUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveRequestRead:
    leave = _get_leave_or_404(db, leave_id)
    leave_service.update_leave_request(db, leave=leave, actor=current_user, payload=leave_in)
    db.commit()
    db.refresh(leave)
    return LeaveRequestRead.model_validate(leave)


@router.post("/{leave_id}/cancel", response_model=LeaveRequestRead)
def cancel_leave(
    leave_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveRequestRead:
    leave = _get_leave_or_404(db, leave_id)
    approvals.cancel_request(db, request=leave, actor=current_user)
    db.commit()
    db.refresh(leave)
    return LeaveRequestRead.model_validate(leave)


@router.post("/{leave_id}/approve", response_model=LeaveRequestRead)
def approve_leave(
    leave_id: int,
    action: ApproveAction,
    business_unit_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveRequestRead:
    leave = _get_leave_or_404(db, leave_id)
    leave_service.approve_leave(
        db,
        leave=leave,
        actor=current_user,
        comments=action.comments,
        business_unit_id=business_unit_id,
    )
    db.commit()
    db.refresh(leave)
    return LeaveRequestRead.model_validate(leave)


@router.post("/{leave_id}/reject", response_model=LeaveRequestRead)
def reject_leave(
    leave_id: int,
    action: RejectAction,
    business_unit_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LeaveRequestRead:
    leave = _get_leave_or_404(db, leave_id)
    approvals.reject_request(
        db,
        request=leave,
        actor=current_user,
        comments=action.comments,
        business_unit_id=business_unit_id,
    )
    db.commit()
    db.refresh(leave)
    return LeaveRequestRead.model_validate(leave)
