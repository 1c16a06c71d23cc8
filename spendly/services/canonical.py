"""Deterministic answers that skip the model (empty-period replies)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from spendly.models import UserContext
from spendly.services.intent import detect_period
from spendly.services.stats import period_transactions, sum_expenses

EN_EMPTY = {
    "thisWeek": "No expenses recorded this week.",
    "lastWeek": "No expenses recorded last week.",
    "thisMonth": "No expenses recorded this month.",
    "lastMonth": "No expenses recorded last month.",
}
EN_EMPTY_GENERIC = "No expenses recorded for the requested period."

RU_EMPTY = {
    "thisWeek": "За эту неделю расходов не найдено.",
    "lastWeek": "За прошлую неделю расходов не найдено.",
    "thisMonth": "За этот месяц расходов не найдено.",
    "lastMonth": "За прошлый месяц расходов не найдено.",
}
RU_EMPTY_GENERIC = "Нет расходов за запрошенный период."

EN_LABELS = {
    "thisWeek": "This week",
    "lastWeek": "Last week",
    "thisMonth": "This month",
    "lastMonth": "Last month",
}
RU_LABELS = {
    "thisWeek": "Эта неделя",
    "lastWeek": "Прошлая неделя",
    "thisMonth": "Этот месяц",
    "lastMonth": "Прошлый месяц",
}

# Only week questions are answered without a model
BYPASS_PERIODS = ("thisWeek", "lastWeek")


def _is_ru(locale: Optional[str]) -> bool:
    return (locale or "").lower().startswith("ru")


def localize_empty_weekly(period: str, locale: Optional[str] = None) -> str:
    key = "thisWeek" if period == "thisWeek" else "lastWeek"
    return (RU_EMPTY if _is_ru(locale) else EN_EMPTY)[key]


def localize_empty_monthly(period: str, locale: Optional[str] = None) -> str:
    key = "thisMonth" if period == "thisMonth" else "lastMonth"
    return (RU_EMPTY if _is_ru(locale) else EN_EMPTY)[key]


def localize_empty_generic(locale: Optional[str] = None) -> str:
    return RU_EMPTY_GENERIC if _is_ru(locale) else EN_EMPTY_GENERIC


def period_label(period: str, locale: Optional[str] = None) -> str:
    if _is_ru(locale):
        return RU_LABELS.get(period, "Запрошенный период")
    return EN_LABELS.get(period, "Requested period")


@dataclass(frozen=True)
class CanonicalDecision:
    should_bypass: bool
    period: str
    message: str = ""


def get_canonical_empty_reply(
    ctx: UserContext,
    message: str,
    locale: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CanonicalDecision:
    period = detect_period(message)
    if period not in BYPASS_PERIODS:
        return CanonicalDecision(False, "unknown")
    total = sum_expenses(period_transactions(ctx.last_transactions, period, now))
    if total == 0:
        return CanonicalDecision(True, period, localize_empty_weekly(period, locale))
    return CanonicalDecision(False, period)
