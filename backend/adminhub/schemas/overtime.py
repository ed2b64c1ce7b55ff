from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, model_validator

from adminhub.models.enums import RequestStatus
from adminhub.schemas.base import ORMModel
from adminhub.schemas.organization import UserSummary


class OvertimeRequestCreate(ORMModel):
    start_time: datetime
    end_time: datetime
    reason: str = Field(min_length=1)

    @model_validator(mode="after")
    def validate_times(self) -> "OvertimeRequestCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class OvertimeRequestRead(ORMModel):
    id: int
    user_id: int
    user: Optional[UserSummary] = None
    start_time: datetime
    end_time: datetime
    reason: str
    status: RequestStatus
    hours: float
    manager_action_by: Optional[int] = None
    manager_action_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    hr_action_by: Optional[int] = None
    hr_action_at: Optional[datetime] = None
    hr_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime
