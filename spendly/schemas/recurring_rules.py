from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from spendly.schemas.assistant import Money


class RuleIn(BaseModel):
    title_pattern: str = Field(..., min_length=1, max_length=128)
    budget_folder_id: Optional[int] = None
    avg_amount: Money = Field(..., gt=0)
    cadence: Literal["weekly", "monthly"]
    next_due_date: date


class RulePatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    budget_folder_id: Optional[int] = None
    avg_amount: Optional[Money] = Field(None, gt=0)
    cadence: Optional[Literal["weekly", "monthly"]] = None
    next_due_date: Optional[date] = None
    active: Optional[bool] = None


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title_pattern: str
    budget_folder_id: Optional[int]
    avg_amount: Money
    cadence: str
    next_due_date: date
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RuleListResponse(BaseModel):
    items: List[RuleOut]
    total: int
