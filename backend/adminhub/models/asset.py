from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, Date, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adminhub.db.base import Base, IDMixin, TimestampMixin
from adminhub.models.enums import AssetHistoryAction, AssetStatus, DeploymentStatus, DepreciationMethod


class GLAccountLinksMixin:
    asset_account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("gl_accounts.id"), nullable=True)
    accumulated_depreciation_account_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=True
    )
    depreciation_expense_account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("gl_accounts.id"), nullable=True)


class AssetCategory(IDMixin, TimestampMixin, GLAccountLinksMixin, Base):
    __tablename__ = "asset_categories"

    code: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Asset(IDMixin, TimestampMixin, GLAccountLinksMixin, Base):
    __tablename__ = "assets"

    item_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("asset_categories.id"), nullable=False, index=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    department_id: Mapped[Optional[int]] = mapped_column(ForeignKey("departments.id"), nullable=True)

    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    # Depreciation configuration
    depreciation_method: Mapped[DepreciationMethod] = mapped_column(
        Enum(DepreciationMethod, name="depreciation_method"),
        default=DepreciationMethod.STRAIGHT_LINE,
        nullable=False,
    )
    useful_life_years: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    useful_life_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    salvage_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    depreciation_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 4), nullable=True)
    total_expected_units: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    depreciation_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), nullable=True)
    depreciation_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Depreciation state
    monthly_depreciation: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    current_book_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    accumulated_depreciation: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    last_depreciation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_depreciation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    is_fully_depreciated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[AssetStatus] = mapped_column(
        Enum(AssetStatus, name="asset_status"),
        default=AssetStatus.AVAILABLE,
        nullable=False,
        index=True,
    )
    currently_assigned_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    category: Mapped["AssetCategory"] = relationship()
    currently_assigned_to: Mapped[Optional["User"]] = relationship(foreign_keys=[currently_assigned_to_id])
    deployments: Mapped[List["AssetDeployment"]] = relationship(
        back_populates="asset",
        foreign_keys="AssetDeployment.asset_id",
        order_by="AssetDeployment.id",
    )
    history: Mapped[List["AssetHistory"]] = relationship(back_populates="asset", order_by="AssetHistory.id")

    @property
    def total_useful_life_months(self) -> int:
        return (self.useful_life_years or 0) * 12 + (self.useful_life_months or 0)

    @property
    def open_deployment(self) -> Optional["AssetDeployment"]:
        for deployment in self.deployments:
            if deployment.status == DeploymentStatus.DEPLOYED:
                return deployment
        return None


class AssetDeployment(IDMixin, TimestampMixin, Base):
    __tablename__ = "asset_deployments"

    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False, index=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    transmittal_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    deployed_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_return_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    returned_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[DeploymentStatus] = mapped_column(
        Enum(DeploymentStatus, name="deployment_status"),
        default=DeploymentStatus.DEPLOYED,
        nullable=False,
        index=True,
    )
    deployment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    return_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deployed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    asset: Mapped["Asset"] = relationship(back_populates="deployments", foreign_keys=[asset_id])
    employee: Mapped["User"] = relationship(foreign_keys=[employee_id])


class AssetRetirement(IDMixin, TimestampMixin, Base):
    __tablename__ = "asset_retirements"

    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False, index=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    retirement_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    retirement_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    condition: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    replacement_asset_id: Mapped[Optional[int]] = mapped_column(ForeignKey("assets.id"), nullable=True)
    disposal_planned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    disposal_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    book_value_at_retirement: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    retired_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)


class AssetDisposal(IDMixin, TimestampMixin, Base):
    __tablename__ = "asset_disposals"

    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False, index=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    disposal_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    disposal_method: Mapped[str] = mapped_column(String(100), nullable=False)
    disposal_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    disposal_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    disposal_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    net_disposal_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    book_value_at_disposal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    gain_loss: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    disposed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)


class AssetHistory(IDMixin, TimestampMixin, Base):
    __tablename__ = "asset_history"

    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id"), nullable=False, index=True)
    business_unit_id: Mapped[int] = mapped_column(ForeignKey("business_units.id"), nullable=False, index=True)
    action: Mapped[AssetHistoryAction] = mapped_column(Enum(AssetHistoryAction, name="asset_history_action"), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Transfer transmittal the row was written under, if any.
    reference_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    previous_book_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    new_book_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    depreciation_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    performed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    asset: Mapped["Asset"] = relationship(back_populates="history")
