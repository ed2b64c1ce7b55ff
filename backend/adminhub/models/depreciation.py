from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, JSON, Numeric
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adminhub.db.base import Base, IDMixin, TimestampMixin
from adminhub.models.enums import DepreciationMethod, DepreciationTrigger, ExecutionStatus


class DepreciationExecution(IDMixin, TimestampMixin, Base):
    """One batch depreciation run over a business unit."""
    __tablename__ = "depreciation_executions"

    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    executed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    trigger: Mapped[DepreciationTrigger] = mapped_column(
        Enum(DepreciationTrigger, name="depreciation_trigger"),
        default=DepreciationTrigger.MANUAL,
        nullable=False,
    )
    execution_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    override_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[ExecutionStatus] = mapped_column(
        Enum(ExecutionStatus, name="execution_status"),
        default=ExecutionStatus.RUNNING,
        nullable=False,
        index=True,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total_assets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    errors: Mapped[Optional[list]] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)

    postings: Mapped[List["AssetDepreciation"]] = relationship(
        back_populates="execution",
        order_by="AssetDepreciation.id",
    )


class AssetDepreciation(IDMixin, TimestampMixin, Base):
    __tablename__ = "asset_depreciations"

    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False, index=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    execution_id: Mapped[Optional[int]] = mapped_column(ForeignKey("depreciation_executions.id"), nullable=True, index=True)
    depreciation_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    book_value_start: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    depreciation_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    book_value_end: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    accumulated_depreciation: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    method: Mapped[DepreciationMethod] = mapped_column(Enum(DepreciationMethod, name="depreciation_method"), nullable=False)
    units_in_period: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    calculated_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    execution: Mapped[Optional["DepreciationExecution"]] = relationship(back_populates="postings")
    asset: Mapped["Asset"] = relationship()
