from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from spendly.orm_models import RecurringRule
from spendly.repositories.finance_repository import FinanceRepository
from spendly.utils.text import normalize_title


class RuleLimitReached(Exception):
    """Free plan already holds the maximum number of recurring rules."""

    code = "limitReached"

    def __init__(self, limit: int):
        super().__init__(f"Free plan allows up to {limit} recurring rules.")
        self.limit = limit


class RuleBudgetNotFound(Exception):
    pass


def save_rule(
    repo: FinanceRepository,
    user_id: str,
    is_pro: bool,
    *,
    title_pattern: str,
    budget_folder_id: Optional[int],
    avg_amount: Decimal,
    cadence: str,
    next_due_date: date,
    free_limit: int,
) -> RecurringRule:
    """Upsert keyed on the normalized title; new rules count against the free cap."""
    pattern = normalize_title(title_pattern)
    if not pattern:
        raise ValueError("title_pattern is empty after normalization")
    if budget_folder_id is not None and repo.get_budget(user_id, budget_folder_id) is None:
        raise RuleBudgetNotFound(budget_folder_id)
    exists, total = repo.rule_exists(user_id, pattern)
    if not is_pro and not exists and total >= free_limit:
        raise RuleLimitReached(free_limit)
    return repo.upsert_recurring_rule(
        user_id=user_id,
        title_pattern=pattern,
        budget_folder_id=budget_folder_id,
        avg_amount=Decimal(avg_amount),
        cadence=cadence,
        next_due_date=next_due_date,
    )
