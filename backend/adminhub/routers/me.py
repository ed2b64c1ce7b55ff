from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from adminhub.core import rbac
from adminhub.core.deps import get_current_user
from adminhub.db.session import get_db
from adminhub.models.organization import User
from adminhub.schemas.organization import BusinessUnitRead, CurrentUserRead, UserSummary
from adminhub.services import business_units as business_unit_service

router = APIRouter(prefix="/api/me", tags=["me"])


@router.get("", response_model=CurrentUserRead)
def read_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CurrentUserRead:
    """Caller profile with merged role capabilities and reachable business units."""
    summary = UserSummary.model_validate(current_user)
    units = business_unit_service.accessible_business_units(db, current_user)
    return CurrentUserRead(
        **summary.model_dump(),
        email=current_user.email,
        capabilities=rbac.get_capabilities_for_user(current_user),
        business_units=[BusinessUnitRead.model_validate(u) for u in units],
    )
