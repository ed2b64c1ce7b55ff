from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator

from adminhub.models.enums import LeaveSession, RequestStatus
from adminhub.schemas.base import ORMModel
from adminhub.schemas.organization import UserSummary


class LeaveTypeCreate(ORMModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    default_allocated_days: Decimal = Field(default=Decimal("0"), ge=0)
    carry_over: bool = False


class LeaveTypeUpdate(ORMModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    default_allocated_days: Optional[Decimal] = Field(default=None, ge=0)
    carry_over: Optional[bool] = None


class LeaveTypeRead(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    default_allocated_days: Decimal
    carry_over: bool = False


class LeaveBalanceUpsert(ORMModel):
    user_id: int
    leave_type_id: int
    year: int = Field(ge=2000, le=2100)
    allocated_days: Decimal = Field(ge=0)
    used_days: Optional[Decimal] = Field(default=None, ge=0)


class LeaveBalanceRead(ORMModel):
    id: int
    user_id: int
    leave_type_id: int
    leave_type: LeaveTypeRead
    year: int
    allocated_days: Decimal
    used_days: Decimal
    remaining_days: Decimal


class LeaveBalanceAllocation(ORMModel):
    id: int
    allocated_days: Decimal = Field(ge=0)


class LeaveBalanceBulkUpdate(ORMModel):
    business_unit_id: int
    balances: List[LeaveBalanceAllocation] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "LeaveBalanceBulkUpdate":
        ids = [item.id for item in self.balances]
        if len(ids) != len(set(ids)):
            raise ValueError("Each balance may appear only once")
        return self


class CarryOverRead(ORMModel):
    user_id: int
    employee_id: str
    full_name: str
    leave_type_id: int
    leave_type_name: str
    remaining_days: Decimal
    excess_days: Decimal
    has_excess: bool


class ReplenishmentPreviewRead(ORMModel):
    year: int
    target_year: int
    total_users: int
    guideline_days: int
    carry_over: List[CarryOverRead] = Field(default_factory=list)
    leave_types: List[LeaveTypeRead] = Field(default_factory=list)


class ReplenishRequest(ORMModel):
    business_unit_id: int
    from_year: int = Field(ge=2000, le=2100)
    to_year: int = Field(ge=2000, le=2100)
    acknowledge_excess: bool = False

    @model_validator(mode="after")
    def validate_years(self) -> "ReplenishRequest":
        if self.to_year <= self.from_year:
            raise ValueError("to_year must be after from_year")
        return self


class ReplenishResult(ORMModel):
    target_year: int
    users_count: int
    created_count: int
    carried_over_count: int


class LeaveRequestCreate(ORMModel):
    leave_type_id: int
    start_date: date
    end_date: date
    session: LeaveSession = LeaveSession.FULL_DAY
    reason: str = Field(min_length=1)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class LeaveRequestUpdate(LeaveRequestCreate):
    pass


class LeaveRequestRead(ORMModel):
    id: int
    user_id: int
    user: Optional[UserSummary] = None
    leave_type_id: int
    leave_type: Optional[LeaveTypeRead] = None
    start_date: date
    end_date: date
    session: LeaveSession
    reason: str
    status: RequestStatus
    days: float
    manager_action_by: Optional[int] = None
    manager_action_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    hr_action_by: Optional[int] = None
    hr_action_at: Optional[datetime] = None
    hr_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime
