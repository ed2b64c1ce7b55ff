from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adminhub.db.base import Base, IDMixin, TimestampMixin
from adminhub.models.enums import LeaveSession, RequestStatus


class LeaveType(IDMixin, TimestampMixin, Base):
    __tablename__ = "leave_types"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    default_allocated_days: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False, default=Decimal("0"))
    # Unused days of a carry-over type roll into the next year's allocation.
    carry_over: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class LeaveBalance(IDMixin, TimestampMixin, Base):
    __tablename__ = "leave_balances"
    __table_args__ = (UniqueConstraint("user_id", "leave_type_id", "year", name="uq_leave_balances_user_type_year"),)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    leave_type_id: Mapped[int] = mapped_column(ForeignKey("leave_types.id"), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    allocated_days: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False, default=Decimal("0"))
    used_days: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False, default=Decimal("0"))

    user: Mapped["User"] = relationship()
    leave_type: Mapped["LeaveType"] = relationship()

    @property
    def remaining_days(self) -> Decimal:
        return Decimal(self.allocated_days or 0) - Decimal(self.used_days or 0)


class LeaveRequest(IDMixin, TimestampMixin, Base):
    __tablename__ = "leave_requests"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    leave_type_id: Mapped[int] = mapped_column(ForeignKey("leave_types.id"), nullable=False, index=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    session: Mapped[LeaveSession] = mapped_column(
        Enum(LeaveSession, name="leave_session"),
        default=LeaveSession.FULL_DAY,
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.PENDING_MANAGER,
        nullable=False,
        index=True,
    )
    manager_action_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    manager_action_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    manager_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hr_action_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    hr_action_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    hr_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship(foreign_keys=[user_id])
    leave_type: Mapped["LeaveType"] = relationship()
    manager: Mapped[Optional["User"]] = relationship(foreign_keys=[manager_action_by])
    hr: Mapped[Optional["User"]] = relationship(foreign_keys=[hr_action_by])

    @property
    def days(self) -> float:
        total = (self.end_date - self.start_date).days + 1
        if self.session in (LeaveSession.MORNING, LeaveSession.AFTERNOON):
            return total * 0.5
        return float(total)
