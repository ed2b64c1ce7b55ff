from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from adminhub.models.enums import Role
from adminhub.schemas.base import ORMModel


class BusinessUnitCreate(ORMModel):
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class BusinessUnitRead(ORMModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime


class UserSummary(ORMModel):
    id: int
    employee_id: str
    full_name: str
    role: Role
    roles: Optional[List[str]] = None
    business_unit_id: int
    department_id: Optional[int] = None
    approver_id: Optional[int] = None


class CurrentUserRead(UserSummary):
    email: Optional[str] = None
    capabilities: Dict[str, bool] = Field(default_factory=dict)
    business_units: List[BusinessUnitRead] = Field(default_factory=list)
