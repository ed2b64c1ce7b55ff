from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from adminhub.core.deps import get_current_user
from adminhub.db.session import get_db
from adminhub.models.organization import User
from adminhub.schemas.organization import BusinessUnitCreate, BusinessUnitRead
from adminhub.services import business_units as business_unit_service

router = APIRouter(prefix="/api/business-units", tags=["business-units"])


@router.get("", response_model=List[BusinessUnitRead])
def list_business_units(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[BusinessUnitRead]:
    """Business units the caller may act in."""
    units = business_unit_service.accessible_business_units(db, current_user)
    return [BusinessUnitRead.model_validate(u) for u in units]


@router.post("", response_model=BusinessUnitRead, status_code=status.HTTP_201_CREATED)
def create_business_unit(
    unit_in: BusinessUnitCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BusinessUnitRead:
    unit = business_unit_service.create_business_unit(db, actor=current_user, payload=unit_in)
    db.commit()
    db.refresh(unit)
    return BusinessUnitRead.model_validate(unit)
