from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.tenancy import has_global_business_unit_access
from adminhub.models.enums import Role
from adminhub.models.organization import BusinessUnit, User
from adminhub.schemas.organization import BusinessUnitCreate
from adminhub.services.activity import log_activity


def get_business_unit_or_404(db: Session, business_unit_id: int) -> BusinessUnit:
    unit = db.get(BusinessUnit, business_unit_id)
    if not unit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business unit not found")
    return unit


def accessible_business_units(db: Session, user: User) -> list[BusinessUnit]:
    query = db.query(BusinessUnit).filter(BusinessUnit.is_active.is_(True))
    if not has_global_business_unit_access(user):
        query = query.filter(BusinessUnit.id == user.business_unit_id)
    return query.order_by(BusinessUnit.code.asc()).all()


def create_business_unit(db: Session, *, actor: User, payload: BusinessUnitCreate) -> BusinessUnit:
    rbac.require_roles(actor, [Role.ADMIN])
    code = payload.code.strip().upper()
    if db.query(BusinessUnit.id).filter(BusinessUnit.code == code).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Business unit code already exists")
    unit = BusinessUnit(code=code, name=payload.name.strip(), description=payload.description, is_active=True)
    db.add(unit)
    db.flush()

    log_activity(
        db,
        actor_user_id=actor.id,
        activity_type="BUSINESS_UNIT_CREATED",
        business_unit_id=unit.id,
        message=f"Business unit {unit.code} created",
        payload={"business_unit_id": unit.id},
    )
    return unit
