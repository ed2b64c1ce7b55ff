from __future__ import annotations

from typing import Optional

from pydantic import Field

from adminhub.schemas.base import ORMModel


class ApproveAction(ORMModel):
    comments: Optional[str] = None


class RejectAction(ORMModel):
    comments: str = Field(min_length=1)
