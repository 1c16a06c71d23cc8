from __future__ import annotations

from typing import Literal, Optional

from spendly.core.keywords import KeywordTables, get_keyword_tables

IntentTag = Literal["save_advice", "analyze_spending", "biggest_expenses", "compare_months", "unknown"]
PeriodTag = Literal["thisWeek", "lastWeek", "thisMonth", "lastMonth", "unknown"]

# "last" hints first so "last week" never reads as "this week"
PERIOD_ORDER = ("lastWeek", "thisWeek", "lastMonth", "thisMonth")


def detect_intent(message: str, tables: Optional[KeywordTables] = None) -> str:
    tables = tables or get_keyword_tables()
    text = (message or "").lower()
    for intent, patterns in tables.intent_patterns:
        if any(p in text for p in patterns):
            return intent
    return "unknown"


def detect_period(message: str, tables: Optional[KeywordTables] = None) -> str:
    tables = tables or get_keyword_tables()
    text = (message or "").lower()
    excluded = any(stem in text for stem in tables.period_exclusions)
    for period in PERIOD_ORDER:
        if period.startswith("this") and excluded:
            continue
        if any(h in text for h in tables.period_hints.get(period, [])):
            return period
    return "unknown"
