from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from adminhub.db.base import Base, IDMixin, TimestampMixin
from adminhub.models.enums import AccountType, NormalBalance


class GLAccount(IDMixin, TimestampMixin, Base):
    __tablename__ = "gl_accounts"

    account_code: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(Enum(AccountType, name="account_type"), nullable=False, index=True)
    normal_balance: Mapped[NormalBalance] = mapped_column(Enum(NormalBalance, name="normal_balance"), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
