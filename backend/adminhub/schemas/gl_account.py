from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from adminhub.models.enums import AccountType, NormalBalance
from adminhub.schemas.base import ORMModel


class GLAccountCreate(ORMModel):
    account_code: str = Field(min_length=1, max_length=30)
    account_name: str = Field(min_length=1, max_length=255)
    account_type: AccountType
    normal_balance: Optional[NormalBalance] = None
    description: Optional[str] = None
    is_active: bool = True


class GLAccountUpdate(ORMModel):
    account_code: Optional[str] = Field(default=None, min_length=1, max_length=30)
    account_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    account_type: Optional[AccountType] = None
    normal_balance: Optional[NormalBalance] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class GLAccountRead(ORMModel):
    id: int
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: NormalBalance
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class GLAccountListResponse(ORMModel):
    items: List[GLAccountRead]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool
    counts_by_type: Dict[AccountType, int]
