from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adminhub.db.base import Base, IDMixin, TimestampMixin
from adminhub.models.enums import RequestStatus


class OvertimeRequest(IDMixin, TimestampMixin, Base):
    __tablename__ = "overtime_requests"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
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
    manager: Mapped[Optional["User"]] = relationship(foreign_keys=[manager_action_by])
    hr: Mapped[Optional["User"]] = relationship(foreign_keys=[hr_action_by])

    @property
    def hours(self) -> float:
        return round((self.end_time - self.start_time).total_seconds() / 3600, 2)
