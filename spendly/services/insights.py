"""
Spending insights for a date range: trend against the previous period of the
same length, the top expense category, and a general tip.

Results are cached per ``user:start:end`` for ``INSIGHTS_CACHE_TTL_SEC``.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Tuple

from spendly.models import BudgetRecord, TxRecord
from spendly.repositories.finance_repository import FinanceRepository
from spendly.schemas.insights import SpendingInsights, TopCategory, Trend
from spendly.services.stats import sum_expenses
from spendly.utils.time import as_utc
from spendly.utils.ttl_cache import TTLCache

log = logging.getLogger(__name__)

DEFAULT_EMOJI = "📁"
GENERAL_EMOJI = "📊"
TREND_THRESHOLD_PCT = 1.0

ADVICE_TOP = (
    "This is your top spending category for the selected period. "
    "Consider reviewing these expenses and setting a specific budget if needed."
)
ADVICE_NONE = "Keep tracking your expenses to get better insights."
TIP_WITH_DATA = (
    "Focus on your top spending category and look for 1-2 concrete places "
    "where you can reduce or postpone expenses this period."
)
TIP_NO_DATA = (
    "Start by adding a few transactions. Once you have some history, "
    "you'll get more detailed spending insights."
)


def previous_period(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """Window of the same whole-day length ending the day before ``start``."""
    days = math.ceil((end - start).total_seconds() / 86400)
    return start - timedelta(days=days), start - timedelta(days=1)


def trend_percentage(current: Decimal, previous: Decimal) -> float:
    if previous <= 0:
        return 0.0
    return round(float((current - previous) / previous * 100), 1)


def trend_direction(pct: float) -> str:
    if pct > TREND_THRESHOLD_PCT:
        return "up"
    if pct < -TREND_THRESHOLD_PCT:
        return "down"
    return "neutral"


def top_category(
    transactions, budgets: Dict[int, BudgetRecord]
) -> Optional[Tuple[str, Decimal, str]]:
    """Largest expense total by budget; unassigned expenses are ignored."""
    totals: Dict[int, Decimal] = defaultdict(lambda: Decimal("0"))
    for t in transactions:
        if t.type != "expense" or t.budget_folder_id not in budgets:
            continue
        totals[t.budget_folder_id] += t.amount
    if not totals:
        return None
    best = max(totals, key=lambda bid: (totals[bid], -bid))
    budget = budgets[best]
    return budget.name, totals[best], budget.emoji or DEFAULT_EMOJI


def _trend_message(direction: str, pct: float, has_data: bool) -> str:
    if not has_data:
        return "Not enough data yet to calculate a spending trend."
    if direction == "up":
        return f"Your spending increased by {abs(pct):.1f}% compared to the previous period."
    if direction == "down":
        return f"Your spending decreased by {abs(pct):.1f}% compared to the previous period."
    return "Your spending is roughly flat compared to the previous period."


class InsightsService:
    def __init__(self, repo: FinanceRepository, cache: TTLCache):
        self.repo = repo
        self.cache = cache

    @staticmethod
    def cache_key(user_id: str, start: datetime, end: datetime) -> str:
        return f"{user_id}:{as_utc(start).isoformat()}:{as_utc(end).isoformat()}"

    def get(self, user_id: str, start: datetime, end: datetime) -> SpendingInsights:
        key = self.cache_key(user_id, start, end)
        return self.cache.get(key, lambda: self.compute(user_id, as_utc(start), as_utc(end)))

    def compute(self, user_id: str, start: datetime, end: datetime) -> SpendingInsights:
        prev_start, prev_end = previous_period(start, end)
        current = [
            TxRecord.from_orm(t)
            for t in self.repo.transactions_between(user_id, start, end, inclusive_end=True)
        ]
        previous = [
            TxRecord.from_orm(t)
            for t in self.repo.transactions_between(user_id, prev_start, prev_end, inclusive_end=True)
        ]
        budgets = {b.id: BudgetRecord.from_orm(b) for b in self.repo.list_budgets(user_id)}

        cur_total = sum_expenses(current)
        prev_total = sum_expenses(previous)
        has_data = cur_total > 0 or prev_total > 0
        pct = trend_percentage(cur_total, prev_total)
        direction = trend_direction(pct)
        log.info(
            "insights.computed user=%s current=%s previous=%s pct=%s",
            user_id, cur_total, prev_total, pct,
        )

        top = top_category(current, budgets)
        if top is not None:
            name, amount, emoji = top
            category = TopCategory(name=name, amount=float(amount), emoji=emoji, advice=ADVICE_TOP)
        else:
            category = TopCategory(name="General", amount=0, emoji=GENERAL_EMOJI, advice=ADVICE_NONE)

        return SpendingInsights(
            trend=Trend(
                direction=direction,
                percentage=pct if has_data else 0.0,
                message=_trend_message(direction, pct, has_data),
            ),
            topCategory=category,
            generalTip=TIP_WITH_DATA if has_data else TIP_NO_DATA,
        )
