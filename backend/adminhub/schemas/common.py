from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

from adminhub.schemas.base import ORMModel

T = TypeVar("T")


class Page(ORMModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None


class ErrorItem(ORMModel):
    id: int
    label: Optional[str] = None
    error: str
