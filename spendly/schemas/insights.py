from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class Trend(BaseModel):
    direction: Literal["up", "down", "neutral"]
    percentage: float
    message: str


class TopCategory(BaseModel):
    name: str
    amount: float
    emoji: str
    advice: str


class SpendingInsights(BaseModel):
    trend: Trend
    topCategory: TopCategory
    generalTip: str
