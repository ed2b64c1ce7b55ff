from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field

from adminhub.models.enums import DepreciationMethod, DepreciationTrigger, ExecutionStatus
from adminhub.schemas.base import ORMModel
from adminhub.schemas.common import ErrorItem


class DueAsset(ORMModel):
    id: int
    item_code: str
    description: str
    category_id: int
    depreciation_method: DepreciationMethod
    current_book_value: Decimal
    monthly_depreciation: Decimal
    salvage_value: Decimal
    next_depreciation_date: Optional[date] = None


class DepreciationPreview(ORMModel):
    today: date
    can_calculate: bool
    is_allowed_day: bool
    next_allowed_date: date
    message: Optional[str] = None
    due_assets: List[DueAsset]
    total_assets: int
    total_estimated_amount: Decimal
    by_category: Dict[int, int]
    next_month_assets: List[DueAsset] = Field(default_factory=list)


class DepreciationRunRequest(ORMModel):
    business_unit_id: int
    asset_ids: Optional[List[int]] = None
    override: bool = False
    units_used: Dict[int, int] = Field(default_factory=dict)


class DepreciationPostingRead(ORMModel):
    id: int
    asset_id: int
    depreciation_date: date
    period_start_date: date
    period_end_date: date
    book_value_start: Decimal
    depreciation_amount: Decimal
    book_value_end: Decimal
    accumulated_depreciation: Decimal
    method: DepreciationMethod
    units_in_period: Optional[int] = None


class DepreciationExecutionRead(ORMModel):
    id: int
    business_unit_id: int
    executed_by_id: Optional[int] = None
    trigger: DepreciationTrigger
    execution_date: date
    override_used: bool
    status: ExecutionStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_assets: int
    processed_count: int
    failed_count: int
    total_amount: Decimal
    errors: Optional[List[ErrorItem]] = None


class DepreciationExecutionDetail(DepreciationExecutionRead):
    postings: List[DepreciationPostingRead]


class DepreciationRunResult(ORMModel):
    execution: DepreciationExecutionRead
    processed_count: int
    failed_count: int
    total_amount: Decimal
    errors: List[ErrorItem]
