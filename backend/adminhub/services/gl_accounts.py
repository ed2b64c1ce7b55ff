from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from adminhub.core import rbac
from adminhub.models.asset import Asset, AssetCategory
from adminhub.models.enums import AccountType, NormalBalance, Role
from adminhub.models.gl_account import GLAccount
from adminhub.models.organization import User
from adminhub.schemas.gl_account import GLAccountCreate, GLAccountUpdate
from adminhub.services.activity import log_activity

GL_ROLES = (Role.ADMIN, Role.ACCTG)

DEBIT_TYPES = (AccountType.ASSET, AccountType.EXPENSE)

_ACCOUNT_COLUMNS = ("asset_account_id", "accumulated_depreciation_account_id", "depreciation_expense_account_id")


def require_gl_access(user: User) -> None:
    rbac.require_roles(user, GL_ROLES)


def default_normal_balance(account_type: AccountType) -> NormalBalance:
    return NormalBalance.DEBIT if account_type in DEBIT_TYPES else NormalBalance.CREDIT


def get_account_or_404(db: Session, account_id: int) -> GLAccount:
    account = db.get(GLAccount, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="GL account not found")
    return account


def _ensure_unique_code(db: Session, code: str, *, exclude_id: Optional[int] = None) -> None:
    query = db.query(GLAccount.id).filter(GLAccount.account_code == code)
    if exclude_id is not None:
        query = query.filter(GLAccount.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Account code already exists")


def filter_accounts(
    query: Query,
    *,
    account_type: Optional[AccountType] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> Query:
    if account_type:
        query = query.filter(GLAccount.account_type == account_type)
    if is_active is not None:
        query = query.filter(GLAccount.is_active.is_(is_active))
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(GLAccount.account_code).like(term),
                func.lower(GLAccount.account_name).like(term),
                func.lower(func.coalesce(GLAccount.description, "")).like(term),
            )
        )
    return query.order_by(GLAccount.account_code.asc())


def counts_by_type(db: Session) -> dict[AccountType, int]:
    rows = db.query(GLAccount.account_type, func.count(GLAccount.id)).group_by(GLAccount.account_type).all()
    counts = {account_type: 0 for account_type in AccountType}
    for account_type, count in rows:
        counts[AccountType(account_type)] = count
    return counts


def create_account(db: Session, *, actor: User, payload: GLAccountCreate) -> GLAccount:
    code = payload.account_code.strip()
    _ensure_unique_code(db, code)
    account = GLAccount(
        account_code=code,
        account_name=payload.account_name.strip(),
        account_type=payload.account_type,
        normal_balance=payload.normal_balance or default_normal_balance(payload.account_type),
        description=payload.description,
        is_active=payload.is_active,
    )
    db.add(account)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="GL_ACCOUNT_CREATED",
        message=f"GL account {account.account_code} created",
        payload={"gl_account_id": account.id},
    )
    return account


def update_account(db: Session, *, actor: User, account: GLAccount, payload: GLAccountUpdate) -> GLAccount:
    data = payload.model_dump(exclude_unset=True)
    if data.get("account_code"):
        data["account_code"] = data["account_code"].strip()
        _ensure_unique_code(db, data["account_code"], exclude_id=account.id)
    type_changed = data.get("account_type") is not None and data["account_type"] != account.account_type
    for key, value in data.items():
        if value is not None:
            setattr(account, key, value)
    if type_changed and data.get("normal_balance") is None:
        account.normal_balance = default_normal_balance(account.account_type)
    db.add(account)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="GL_ACCOUNT_UPDATED",
        message=f"GL account {account.account_code} updated",
        payload={"gl_account_id": account.id},
    )
    return account


def toggle_account(db: Session, *, actor: User, account: GLAccount) -> GLAccount:
    account.is_active = not account.is_active
    db.add(account)
    db.flush()
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="GL_ACCOUNT_TOGGLED",
        message=f"GL account {account.account_code} {'activated' if account.is_active else 'deactivated'}",
        payload={"gl_account_id": account.id, "is_active": account.is_active},
    )
    return account


def _is_referenced(db: Session, account_id: int) -> bool:
    for model in (AssetCategory, Asset):
        conditions = [getattr(model, column) == account_id for column in _ACCOUNT_COLUMNS]
        if db.query(model.id).filter(or_(*conditions)).first():
            return True
    return False


def delete_account(db: Session, *, actor: User, account: GLAccount) -> None:
    if _is_referenced(db, account.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="GL account is referenced by asset categories or assets",
        )
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="GL_ACCOUNT_DELETED",
        message=f"GL account {account.account_code} deleted",
        payload={"account_code": account.account_code},
    )
    db.delete(account)
    db.flush()
