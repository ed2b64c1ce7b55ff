from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator

from adminhub.models.enums import AssetHistoryAction, AssetStatus, DeploymentStatus, DepreciationMethod, TransferType
from adminhub.schemas.base import ORMModel


class AssetCategoryCreate(ORMModel):
    code: str = Field(min_length=1, max_length=30)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    business_unit_id: int
    asset_account_id: Optional[int] = None
    accumulated_depreciation_account_id: Optional[int] = None
    depreciation_expense_account_id: Optional[int] = None


class AssetCategoryRead(ORMModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    business_unit_id: int
    is_active: bool
    asset_account_id: Optional[int] = None
    accumulated_depreciation_account_id: Optional[int] = None
    depreciation_expense_account_id: Optional[int] = None


class AssetCreate(ORMModel):
    item_code: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1)
    serial_number: Optional[str] = None
    brand: Optional[str] = None
    category_id: int
    business_unit_id: int
    department_id: Optional[int] = None
    purchase_date: Optional[date] = None
    purchase_price: Decimal = Field(ge=0)
    depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    useful_life_years: int = Field(default=0, ge=0)
    useful_life_months: int = Field(default=0, ge=0, le=11)
    salvage_value: Decimal = Field(default=Decimal("0"), ge=0)
    depreciation_rate: Optional[Decimal] = Field(default=None, gt=0, le=1)
    total_expected_units: Optional[int] = Field(default=None, gt=0)
    depreciation_start_date: Optional[date] = None
    asset_account_id: Optional[int] = None
    accumulated_depreciation_account_id: Optional[int] = None
    depreciation_expense_account_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_depreciation(self) -> "AssetCreate":
        if self.salvage_value > self.purchase_price:
            raise ValueError("salvage_value cannot exceed purchase_price")
        if self.depreciation_method == DepreciationMethod.DECLINING_BALANCE and self.depreciation_rate is None:
            raise ValueError("depreciation_rate is required for DECLINING_BALANCE")
        if self.depreciation_method == DepreciationMethod.UNITS_OF_PRODUCTION and not self.total_expected_units:
            raise ValueError("total_expected_units is required for UNITS_OF_PRODUCTION")
        if self.depreciation_method in (DepreciationMethod.STRAIGHT_LINE, DepreciationMethod.SUM_OF_YEARS_DIGITS):
            if self.useful_life_years * 12 + self.useful_life_months <= 0:
                raise ValueError("useful life is required for this depreciation method")
        return self


class AssetRead(ORMModel):
    id: int
    item_code: str
    description: str
    serial_number: Optional[str] = None
    brand: Optional[str] = None
    category_id: int
    business_unit_id: int
    department_id: Optional[int] = None
    purchase_date: Optional[date] = None
    purchase_price: Decimal
    depreciation_method: DepreciationMethod
    useful_life_years: int
    useful_life_months: int
    salvage_value: Decimal
    depreciation_rate: Optional[Decimal] = None
    total_expected_units: Optional[int] = None
    depreciation_per_unit: Optional[Decimal] = None
    depreciation_start_date: Optional[date] = None
    monthly_depreciation: Decimal
    current_book_value: Decimal
    accumulated_depreciation: Decimal
    last_depreciation_date: Optional[date] = None
    next_depreciation_date: Optional[date] = None
    is_fully_depreciated: bool
    status: AssetStatus
    currently_assigned_to_id: Optional[int] = None
    is_active: bool
    created_at: datetime


class AssetHistoryRead(ORMModel):
    id: int
    business_unit_id: int
    action: AssetHistoryAction
    notes: Optional[str] = None
    reference_number: Optional[str] = None
    previous_book_value: Optional[Decimal] = None
    new_book_value: Optional[Decimal] = None
    depreciation_amount: Optional[Decimal] = None
    performed_by_id: Optional[int] = None
    created_at: datetime


class DeploymentRead(ORMModel):
    id: int
    asset_id: int
    employee_id: int
    transmittal_number: str
    deployed_date: date
    expected_return_date: Optional[date] = None
    returned_date: Optional[date] = None
    status: DeploymentStatus
    deployment_notes: Optional[str] = None
    return_notes: Optional[str] = None


class DeployAssetsRequest(ORMModel):
    asset_ids: List[int] = Field(min_length=1)
    employee_id: int
    deployed_date: date
    expected_return_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "DeployAssetsRequest":
        if self.expected_return_date and self.expected_return_date < self.deployed_date:
            raise ValueError("expected_return_date cannot be before deployed_date")
        return self


class DeployAssetsResult(ORMModel):
    transmittal_number: str
    deployments: List[DeploymentRead]


class ReturnAssetsRequest(ORMModel):
    asset_ids: List[int] = Field(min_length=1)
    returned_date: date
    notes: Optional[str] = None


class ReturnAssetsResult(ORMModel):
    returned_count: int


class TransferAssetsRequest(ORMModel):
    asset_ids: List[int] = Field(min_length=1)
    transfer_type: TransferType
    to_employee_id: Optional[int] = None
    to_business_unit_id: Optional[int] = None
    to_department_id: Optional[int] = None
    transfer_date: date
    reason: str = Field(min_length=1)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_target(self) -> "TransferAssetsRequest":
        if self.transfer_type == TransferType.EMPLOYEE and self.to_employee_id is None:
            raise ValueError("to_employee_id is required for an employee transfer")
        if self.transfer_type == TransferType.BUSINESS_UNIT and self.to_business_unit_id is None:
            raise ValueError("to_business_unit_id is required for a business unit transfer")
        return self


class TransferAssetsResult(ORMModel):
    transfer_number: str
    transferred_count: int
    deployments: List[DeploymentRead] = Field(default_factory=list)


class RetireAssetsRequest(ORMModel):
    asset_ids: List[int] = Field(min_length=1)
    retirement_date: date
    reason: str = Field(min_length=1, max_length=100)
    retirement_method: Optional[str] = None
    condition: Optional[str] = None
    notes: Optional[str] = None
    replacement_asset_id: Optional[int] = None
    disposal_planned: bool = False
    disposal_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_disposal(self) -> "RetireAssetsRequest":
        if self.disposal_planned:
            if self.disposal_date is None:
                raise ValueError("disposal_date is required when disposal is planned")
            if self.disposal_date < self.retirement_date:
                raise ValueError("disposal_date cannot be before retirement_date")
        return self


class RetireAssetsResult(ORMModel):
    retired_count: int
    auto_returned_count: int
    message: str


class DisposeAssetsRequest(ORMModel):
    asset_ids: List[int] = Field(min_length=1)
    disposal_date: date
    reason: str = Field(min_length=1, max_length=100)
    disposal_method: str = Field(min_length=1, max_length=100)
    disposal_location: Optional[str] = None
    disposal_value: Decimal = Field(default=Decimal("0"), ge=0)
    disposal_cost: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class DisposalRead(ORMModel):
    id: int
    asset_id: int
    disposal_date: date
    reason: str
    disposal_method: str
    disposal_value: Decimal
    disposal_cost: Decimal
    net_disposal_value: Decimal
    book_value_at_disposal: Decimal
    gain_loss: Decimal


class DisposeAssetsResult(ORMModel):
    disposals: List[DisposalRead]
    total_gain_loss: Decimal


class AssetQRRead(ORMModel):
    asset_id: int
    item_code: str
    url: str
