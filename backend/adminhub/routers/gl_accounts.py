from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.core.settings import settings
from adminhub.db.session import get_db
from adminhub.models.enums import AccountType
from adminhub.models.gl_account import GLAccount
from adminhub.models.organization import User
from adminhub.schemas.gl_account import GLAccountCreate, GLAccountListResponse, GLAccountRead, GLAccountUpdate
from adminhub.services import gl_accounts as gl_service
from adminhub.services.pagination import paginate

router = APIRouter(prefix="/api/gl-accounts", tags=["gl-accounts"])


@router.get("", response_model=GLAccountListResponse)
def list_accounts(
    account_type: Optional[AccountType] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GLAccountListResponse:
    gl_service.require_gl_access(current_user)
    query = gl_service.filter_accounts(db.query(GLAccount), account_type=account_type, is_active=is_active, search=search)
    rows, meta = paginate(query, page=page, page_size=page_size)
    return GLAccountListResponse(
        items=[GLAccountRead.model_validate(r) for r in rows],
        total=meta["total"],
        page=meta["page"],
        page_size=meta["page_size"],
        total_pages=meta["total_pages"],
        has_more=meta["has_more"],
        counts_by_type=gl_service.counts_by_type(db),
    )


@router.post("", response_model=GLAccountRead, status_code=status.HTTP_201_CREATED)
def create_account(
    account_in: GLAccountCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GLAccountRead:
    gl_service.require_gl_access(current_user)
    account = gl_service.create_account(db, actor=current_user, payload=account_in)
    db.commit()
    db.refresh(account)
    return GLAccountRead.model_validate(account)


@router.get("/{account_id}", response_model=GLAccountRead)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GLAccountRead:
    gl_service.require_gl_access(current_user)
    return GLAccountRead.model_validate(gl_service.get_account_or_404(db, account_id))


@router.patch("/{account_id}", response_model=GLAccountRead)
def update_account(
    account_id: int,
    account_in: GLAccountUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GLAccountRead:
    gl_service.require_gl_access(current_user)
    account = gl_service.get_account_or_404(db, account_id)
    gl_service.update_account(db, actor=current_user, account=account, payload=account_in)
    db.commit()
    db.refresh(account)
    return GLAccountRead.model_validate(account)


@router.post("/{account_id}/toggle", response_model=GLAccountRead)
def toggle_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GLAccountRead:
    gl_service.require_gl_access(current_user)
    account = gl_service.get_account_or_404(db, account_id)
    gl_service.toggle_account(db, actor=current_user, account=account)
    db.commit()
    db.refresh(account)
    return GLAccountRead.model_validate(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    gl_service.require_gl_access(current_user)
    account = gl_service.get_account_or_404(db, account_id)
    gl_service.delete_account(db, actor=current_user, account=account)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
