from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from adminhub.models.enums import ApprovalDecision, ApproverType, MRStatus, MRType
from adminhub.schemas.base import ORMModel


class MaterialRequestItemIn(ORMModel):
    item_code: Optional[str] = None
    description: str = Field(min_length=1)
    uom: str = Field(min_length=1, max_length=20)
    quantity: Decimal = Field(gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    remarks: Optional[str] = None


class MaterialRequestItemRead(ORMModel):
    id: int
    item_code: Optional[str] = None
    description: str
    uom: str
    quantity: Decimal
    quantity_served: Decimal
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    remarks: Optional[str] = None


class MaterialRequestCreate(ORMModel):
    series: str = Field(min_length=1, max_length=20)
    type: MRType = MRType.ITEM
    date_prepared: date
    date_required: date
    business_unit_id: int
    department_id: Optional[int] = None
    charge_to: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = None
    freight: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    rec_approver_id: Optional[int] = None
    final_approver_id: Optional[int] = None
    items: List[MaterialRequestItemIn] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_dates(self) -> "MaterialRequestCreate":
        if self.date_required < self.date_prepared:
            raise ValueError("date_required cannot be before date_prepared")
        return self


class MaterialRequestUpdate(ORMModel):
    type: Optional[MRType] = None
    date_prepared: Optional[date] = None
    date_required: Optional[date] = None
    department_id: Optional[int] = None
    charge_to: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = None
    freight: Optional[Decimal] = Field(default=None, ge=0)
    discount: Optional[Decimal] = Field(default=None, ge=0)
    rec_approver_id: Optional[int] = None
    final_approver_id: Optional[int] = None
    items: Optional[List[MaterialRequestItemIn]] = Field(default=None, min_length=1)

    @field_validator("type", "date_prepared", "date_required", "freight", "discount", mode="before")
    @classmethod
    def _omit_rather_than_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but cannot be null")
        return value


class MaterialRequestRead(ORMModel):
    id: int
    doc_no: str
    series: str
    type: MRType
    status: MRStatus
    date_prepared: date
    date_required: date
    business_unit_id: int
    department_id: Optional[int] = None
    charge_to: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = None
    freight: Decimal
    discount: Decimal
    total: Decimal
    requested_by_id: int
    rec_approver_id: Optional[int] = None
    rec_approval_status: Optional[ApprovalDecision] = None
    rec_approval_date: Optional[datetime] = None
    rec_approval_remarks: Optional[str] = None
    final_approver_id: Optional[int] = None
    final_approval_status: Optional[ApprovalDecision] = None
    final_approval_date: Optional[datetime] = None
    final_approval_remarks: Optional[str] = None
    date_approved: Optional[datetime] = None
    served_at: Optional[datetime] = None
    served_by_id: Optional[int] = None
    served_notes: Optional[str] = None
    supplier_bp_code: Optional[str] = None
    supplier_name: Optional[str] = None
    purchase_order_number: Optional[str] = None
    date_posted: Optional[datetime] = None
    processed_by_id: Optional[int] = None
    processed_at: Optional[datetime] = None
    date_received: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by_id: Optional[int] = None
    is_marked_for_edit: bool
    marked_for_edit_at: Optional[datetime] = None
    marked_for_edit_by_id: Optional[int] = None
    marked_for_edit_reason: Optional[str] = None
    edit_completed_at: Optional[datetime] = None
    items: List[MaterialRequestItemRead]
    created_at: datetime
    updated_at: datetime


class MarkForEditRequest(ORMModel):
    reason: str = Field(min_length=1)
    item_ids: List[int] = Field(default_factory=list)


class CompleteEditRequest(ORMModel):
    descriptions: Dict[int, str] = Field(min_length=1)


class MarkServedRequest(ORMModel):
    served_quantities: Dict[int, Decimal] = Field(min_length=1)
    notes: Optional[str] = None
    supplier_bp_code: Optional[str] = None
    supplier_name: Optional[str] = None
    purchase_order_number: Optional[str] = None


class AcknowledgementRequest(ORMModel):
    signature_data: str = Field(min_length=1)


class DepartmentApproverCreate(ORMModel):
    department_id: int
    employee_id: int
    approver_type: ApproverType


class DepartmentApproverRead(ORMModel):
    id: int
    department_id: int
    employee_id: int
    approver_type: ApproverType
    is_active: bool
