from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.observability import record_transition
from adminhub.core.settings import settings
from adminhub.core.tenancy import require_business_unit_access
from adminhub.models.enums import RequestStatus, Role
from adminhub.models.leave import LeaveBalance, LeaveRequest, LeaveType
from adminhub.models.organization import User
from adminhub.schemas.leave import (
    LeaveBalanceBulkUpdate,
    LeaveBalanceUpsert,
    LeaveRequestCreate,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeUpdate,
    ReplenishRequest,
)
from adminhub.services.activity import log_activity
from adminhub.services.approvals import approve_request, require_editable
from adminhub.services.business_units import get_business_unit_or_404

logger = logging.getLogger(__name__)

LEAVE_SETUP_ROLES = (Role.ADMIN, Role.HR)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def require_leave_setup(user: User) -> None:
    rbac.require_roles(user, LEAVE_SETUP_ROLES)


def get_leave_type_or_404(db: Session, leave_type_id: int) -> LeaveType:
    leave_type = db.get(LeaveType, leave_type_id)
    if not leave_type:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave type not found")
    return leave_type


def _ensure_unique_leave_type_name(db: Session, name: str, *, exclude_id: Optional[int] = None) -> None:
    query = db.query(LeaveType).filter(LeaveType.name == name)
    if exclude_id is not None:
        query = query.filter(LeaveType.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Leave type name already exists")


def create_leave_type(db: Session, *, payload: LeaveTypeCreate) -> LeaveType:
    _ensure_unique_leave_type_name(db, payload.name)
    leave_type = LeaveType(**payload.model_dump())
    db.add(leave_type)
    db.flush()
    return leave_type


def update_leave_type(db: Session, *, leave_type: LeaveType, payload: LeaveTypeUpdate) -> LeaveType:
    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        _ensure_unique_leave_type_name(db, data["name"], exclude_id=leave_type.id)
    for key, value in data.items():
        if value is not None:
            setattr(leave_type, key, value)
    db.add(leave_type)
    db.flush()
    return leave_type


def delete_leave_type(db: Session, *, leave_type: LeaveType) -> None:
    in_use = (
        db.query(LeaveRequest.id).filter(LeaveRequest.leave_type_id == leave_type.id).first()
        or db.query(LeaveBalance.id).filter(LeaveBalance.leave_type_id == leave_type.id).first()
    )
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Leave type is referenced by requests or balances",
        )
    db.delete(leave_type)
    db.flush()


def get_balance(db: Session, *, user_id: int, leave_type_id: int, year: int) -> Optional[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        .first()
    )


def upsert_balance(db: Session, *, payload: LeaveBalanceUpsert, actor: User) -> LeaveBalance:
    if not db.get(User, payload.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    get_leave_type_or_404(db, payload.leave_type_id)

    balance = get_balance(db, user_id=payload.user_id, leave_type_id=payload.leave_type_id, year=payload.year)
    if balance is None:
        balance = LeaveBalance(
            user_id=payload.user_id,
            leave_type_id=payload.leave_type_id,
            year=payload.year,
            used_days=Decimal("0"),
        )
    balance.allocated_days = payload.allocated_days
    if payload.used_days is not None:
        balance.used_days = payload.used_days
    db.add(balance)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="LEAVE_BALANCE_SET",
        message=f"Leave balance set for user {payload.user_id}",
        payload={
            "user_id": payload.user_id,
            "leave_type_id": payload.leave_type_id,
            "year": payload.year,
            "allocated_days": str(payload.allocated_days),
        },
    )
    return balance


def list_balances(db: Session, *, user_id: int, year: Optional[int] = None) -> list[LeaveBalance]:
    year = year or _today().year
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.user_id == user_id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type_id.asc())
        .all()
    )


def _require_balance_admin(db: Session, actor: User, business_unit_id: int) -> None:
    require_leave_setup(actor)
    get_business_unit_or_404(db, business_unit_id)
    require_business_unit_access(actor, business_unit_id)


def bulk_update_balances(db: Session, *, actor: User, payload: LeaveBalanceBulkUpdate) -> list[LeaveBalance]:
    _require_balance_admin(db, actor, payload.business_unit_id)

    allocations = {item.id: item.allocated_days for item in payload.balances}
    balances = (
        db.query(LeaveBalance)
        .join(User, User.id == LeaveBalance.user_id)
        .filter(LeaveBalance.id.in_(allocations), User.business_unit_id == payload.business_unit_id)
        .order_by(LeaveBalance.id.asc())
        .all()
    )
    if len(balances) != len(allocations):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Some leave balances were not found")

    for balance in balances:
        balance.allocated_days = allocations[balance.id]
        db.add(balance)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="LEAVE_BALANCES_BULK_SET",
        business_unit_id=payload.business_unit_id,
        message=f"Updated {len(balances)} leave balances",
        payload={"balance_ids": sorted(allocations)},
    )
    return balances


def _business_unit_staff(db: Session, business_unit_id: int) -> list[User]:
    return (
        db.query(User)
        .filter(User.business_unit_id == business_unit_id, User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )


def replenishment_preview(
    db: Session,
    *,
    actor: User,
    business_unit_id: int,
    from_year: int,
    to_year: int,
) -> dict:
    """Carry-over each user would bring from ``from_year`` into ``to_year``.

    Only carry-over leave types with days left are listed. Balances above the
    guideline still carry over in full but are flagged so an administrator
    acknowledges them before replenishing.
    """
    _require_balance_admin(db, actor, business_unit_id)
    if to_year <= from_year:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Target year must be after the source year")
    guideline = Decimal(settings.leave_carry_over_guideline_days)

    leave_types = db.query(LeaveType).order_by(LeaveType.name.asc()).all()
    staff = _business_unit_staff(db, business_unit_id)
    carry_type_ids = [lt.id for lt in leave_types if lt.carry_over]

    carry_over = []
    if carry_type_ids and staff:
        balances = (
            db.query(LeaveBalance)
            .filter(
                LeaveBalance.year == from_year,
                LeaveBalance.user_id.in_([user.id for user in staff]),
                LeaveBalance.leave_type_id.in_(carry_type_ids),
            )
            .order_by(LeaveBalance.user_id.asc(), LeaveBalance.leave_type_id.asc())
            .all()
        )
        for balance in balances:
            remaining = balance.remaining_days
            if remaining <= 0:
                continue
            excess = max(remaining - guideline, Decimal("0"))
            carry_over.append(
                {
                    "user_id": balance.user_id,
                    "employee_id": balance.user.employee_id,
                    "full_name": balance.user.full_name,
                    "leave_type_id": balance.leave_type_id,
                    "leave_type_name": balance.leave_type.name,
                    "remaining_days": remaining,
                    "excess_days": excess,
                    "has_excess": excess > 0,
                }
            )

    return {
        "year": from_year,
        "target_year": to_year,
        "total_users": len(staff),
        "guideline_days": settings.leave_carry_over_guideline_days,
        "carry_over": carry_over,
        "leave_types": leave_types,
    }


def replenish_balances(db: Session, *, actor: User, payload: ReplenishRequest) -> dict:
    preview = replenishment_preview(
        db,
        actor=actor,
        business_unit_id=payload.business_unit_id,
        from_year=payload.from_year,
        to_year=payload.to_year,
    )
    staff = _business_unit_staff(db, payload.business_unit_id)

    existing = (
        db.query(LeaveBalance.id)
        .join(User, User.id == LeaveBalance.user_id)
        .filter(LeaveBalance.year == payload.to_year, User.business_unit_id == payload.business_unit_id)
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Leave balances for {payload.to_year} already exist",
        )

    excess = [entry for entry in preview["carry_over"] if entry["has_excess"]]
    if excess and not payload.acknowledge_excess:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": (
                    f"{len(excess)} balance(s) exceed the {preview['guideline_days']}-day guideline; "
                    "acknowledge the excess to carry them over in full"
                ),
                "warnings": [
                    f"{entry['full_name']} ({entry['employee_id']}): {entry['leave_type_name']} "
                    f"{entry['remaining_days']} days ({entry['excess_days']} above guideline)"
                    for entry in excess
                ],
            },
        )

    carried = {(entry["user_id"], entry["leave_type_id"]): entry["remaining_days"] for entry in preview["carry_over"]}
    created = 0
    for user in staff:
        for leave_type in preview["leave_types"]:
            allocated = Decimal(leave_type.default_allocated_days or 0)
            if leave_type.carry_over:
                allocated += carried.get((user.id, leave_type.id), Decimal("0"))
            db.add(
                LeaveBalance(
                    user_id=user.id,
                    leave_type_id=leave_type.id,
                    year=payload.to_year,
                    allocated_days=allocated,
                    used_days=Decimal("0"),
                )
            )
            created += 1
    db.flush()

    logger.info(
        "leave_balances_replenished",
        extra={"business_unit_id": payload.business_unit_id, "user_id": actor.id},
    )
    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="LEAVE_BALANCES_REPLENISHED",
        business_unit_id=payload.business_unit_id,
        message=f"Leave balances replenished for {payload.to_year}",
        payload={
            "from_year": payload.from_year,
            "to_year": payload.to_year,
            "balances_created": created,
            "excess_acknowledged": bool(excess),
        },
    )
    return {
        "target_year": payload.to_year,
        "users_count": len(staff),
        "created_count": created,
        "carried_over_count": len(carried),
    }


def submit_leave_request(db: Session, *, owner: User, payload: LeaveRequestCreate) -> LeaveRequest:
    get_leave_type_or_404(db, payload.leave_type_id)
    leave = LeaveRequest(
        user_id=owner.id,
        leave_type_id=payload.leave_type_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        session=payload.session,
        reason=payload.reason,
        status=RequestStatus.PENDING_MANAGER,
    )
    db.add(leave)
    db.flush()

    record_transition("leave", leave.status)
    log_activity(
        db,
        actor_user_id=owner.id,
        activity_type="LEAVE_REQUESTED",
        business_unit_id=owner.business_unit_id,
        message=f"Leave requested: {leave.start_date} to {leave.end_date}",
        payload={"leave_request_id": leave.id, "days": leave.days},
    )
    return leave


def update_leave_request(
    db: Session,
    *,
    leave: LeaveRequest,
    actor: User,
    payload: LeaveRequestUpdate,
) -> LeaveRequest:
    require_editable(leave, actor)
    get_leave_type_or_404(db, payload.leave_type_id)
    leave.leave_type_id = payload.leave_type_id
    leave.start_date = payload.start_date
    leave.end_date = payload.end_date
    leave.session = payload.session
    leave.reason = payload.reason
    db.add(leave)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="LEAVE_UPDATED",
        business_unit_id=actor.business_unit_id,
        message=f"Leave request {leave.id} updated",
        payload={"leave_request_id": leave.id},
    )
    return leave


def _deduct_balance(db: Session, *, leave: LeaveRequest) -> None:
    days = Decimal(str(leave.days))
    balance = get_balance(
        db,
        user_id=leave.user_id,
        leave_type_id=leave.leave_type_id,
        year=leave.start_date.year,
    )
    if balance is None:
        logger.warning(
            "leave_balance_missing",
            extra={"entity": "leave", "entity_id": leave.id, "user_id": leave.user_id},
        )
        return
    if balance.remaining_days < days:
        # Approval is final; the shortfall is only reported.
        logger.warning(
            "leave_balance_insufficient",
            extra={"entity": "leave", "entity_id": leave.id, "user_id": leave.user_id},
        )
    balance.used_days = Decimal(balance.used_days or 0) + days
    db.add(balance)
    db.flush()


def approve_leave(
    db: Session,
    *,
    leave: LeaveRequest,
    actor: User,
    comments: Optional[str] = None,
    business_unit_id: Optional[int] = None,
) -> LeaveRequest:
    approve_request(db, request=leave, actor=actor, comments=comments, business_unit_id=business_unit_id)
    if leave.status == RequestStatus.APPROVED:
        _deduct_balance(db, leave=leave)
    return leave
