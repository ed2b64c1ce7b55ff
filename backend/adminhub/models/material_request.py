from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adminhub.db.base import Base, IDMixin, TimestampMixin
from adminhub.models.enums import ApprovalDecision, ApproverType, MRStatus, MRType


class MaterialRequest(IDMixin, TimestampMixin, Base):
    """Procurement request moving from draft through approvals, serving and posting."""
    __tablename__ = "material_requests"

    doc_no: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    series: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    type: Mapped[MRType] = mapped_column(Enum(MRType, name="mr_type"), default=MRType.ITEM, nullable=False)
    status: Mapped[MRStatus] = mapped_column(
        Enum(MRStatus, name="mr_status"),
        default=MRStatus.DRAFT,
        nullable=False,
        index=True,
    )

    date_prepared: Mapped[date] = mapped_column(Date, nullable=False)
    date_required: Mapped[date] = mapped_column(Date, nullable=False)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    department_id: Mapped[Optional[int]] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)
    charge_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deliver_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    freight: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    requested_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    # Approvals
    rec_approver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    rec_approval_status: Mapped[Optional[ApprovalDecision]] = mapped_column(
        Enum(ApprovalDecision, name="approval_decision"), nullable=True
    )
    rec_approval_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rec_approval_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    final_approver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    final_approval_status: Mapped[Optional[ApprovalDecision]] = mapped_column(
        Enum(ApprovalDecision, name="approval_decision"), nullable=True
    )
    final_approval_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    final_approval_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_approved: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Serving and posting
    served_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    served_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    served_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_bp_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    purchase_order_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    date_posted: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    date_received: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    signature_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Edit side channel raised by the coordinator while serving
    is_marked_for_edit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    marked_for_edit_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    marked_for_edit_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    marked_for_edit_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    edit_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["MaterialRequestItem"]] = relationship(
        back_populates="material_request",
        cascade="all, delete-orphan",
        order_by="MaterialRequestItem.id",
    )
    requested_by: Mapped["User"] = relationship(foreign_keys=[requested_by_id])
    rec_approver: Mapped[Optional["User"]] = relationship(foreign_keys=[rec_approver_id])
    final_approver: Mapped[Optional["User"]] = relationship(foreign_keys=[final_approver_id])
    business_unit: Mapped["BusinessUnit"] = relationship()
    department: Mapped[Optional["Department"]] = relationship()

    @property
    def edit_pending(self) -> bool:
        return self.is_marked_for_edit and self.edit_completed_at is None


class MaterialRequestItem(IDMixin, Base):
    __tablename__ = "material_request_items"

    material_request_id: Mapped[int] = mapped_column(
        ForeignKey("material_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    uom: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity_served: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    material_request: Mapped["MaterialRequest"] = relationship(back_populates="items")

    @property
    def is_fully_served(self) -> bool:
        return Decimal(self.quantity_served or 0) >= Decimal(self.quantity)


class DepartmentApprover(IDMixin, TimestampMixin, Base):
    __tablename__ = "department_approvers"
    __table_args__ = (
        UniqueConstraint("department_id", "employee_id", "approver_type", name="uq_department_approvers_dept_emp_type"),
    )

    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    approver_type: Mapped[ApproverType] = mapped_column(Enum(ApproverType, name="approver_type"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    department: Mapped["Department"] = relationship()
    employee: Mapped["User"] = relationship()
