"""
Explicit commands recognized in the raw chat message.

    add 12.99 to Groceries budget
    Add "Netflix" $15.99 into Subscriptions budget
    save as recurring / сохрани как повтор

The add pattern is English only; other phrasings fall through to the model.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

from spendly.core.keywords import KeywordTables, get_keyword_tables
from spendly.models import BudgetRecord, RecurringCandidate
from spendly.utils.text import normalize_budget_name, sanitize_title

DEFAULT_TITLE = "Transaction"

_ADD_RE = re.compile(
    r"\badd\s+(?:[\"“']?(?P<title>[\w\s\-.,()#]+?)[\"”']?\s+)?"
    r"(?:[$€₽£]\s*)?(?P<amount>\d+(?:[.,]\d+)?)\s+(?:to|into)\s+"
    r"(?P<budget>[\w\s\-]+?)\s+budget\b",
    re.IGNORECASE,
)
_NUMBER_OR_CURRENCY_RE = re.compile(r"\d|[$€£₽₹₴]")

ADD_FORMAT_HINT = (
    "Unable to create a transaction. Check the input and make sure the budget exists. "
    'Use: Add "Title" 12.34 to <Budget> budget.'
)


@dataclass(frozen=True)
class ParsedAdd:
    title: str
    amount: Decimal
    budget_name: str
    budget_folder_id: Optional[int]


def format_money(amount: Decimal, symbol: str = "$") -> str:
    return f"{symbol}{Decimal(amount):.2f}"


def _parse_amount(raw: str) -> Optional[Decimal]:
    try:
        value = Decimal(raw.replace(",", "."))
    except InvalidOperation:
        return None
    return value if value > 0 else None


def resolve_budget(name: str, budgets: Iterable[BudgetRecord]) -> Optional[BudgetRecord]:
    """Exact match on normalized names; no fuzzy guessing."""
    key = normalize_budget_name(name)
    if not key:
        return None
    for b in budgets:
        if normalize_budget_name(b.name) == key:
            return b
    return None


def parse_add_command(text: str, budgets: Sequence[BudgetRecord]) -> Optional[ParsedAdd]:
    m = _ADD_RE.search(text or "")
    if not m:
        return None
    amount = _parse_amount(m.group("amount"))
    if amount is None:
        return None
    title = sanitize_title(m.group("title") or "") or DEFAULT_TITLE
    raw_budget = sanitize_title(m.group("budget"))
    match = resolve_budget(raw_budget, budgets)
    if match is None:
        return ParsedAdd(title=title, amount=amount, budget_name=raw_budget, budget_folder_id=None)
    return ParsedAdd(title=title, amount=amount, budget_name=match.name, budget_folder_id=match.id)


def looks_like_add_attempt(text: str, tables: Optional[KeywordTables] = None) -> bool:
    tables = tables or get_keyword_tables()
    lower = (text or "").strip().lower()
    if not lower:
        return False
    if any(lower.startswith(stem) for stem in tables.add_verb_stems):
        return True
    budget_re = re.compile(
        r"\b(?:" + "|".join(re.escape(t) for t in tables.budget_tokens) + r")\b"
    )
    return bool(budget_re.search(lower) and _NUMBER_OR_CURRENCY_RE.search(lower))


def parse_save_recurring_command(
    message: str,
    candidates: Sequence[RecurringCandidate],
    tables: Optional[KeywordTables] = None,
) -> Optional[RecurringCandidate]:
    tables = tables or get_keyword_tables()
    lower = (message or "").lower()
    if not candidates or not any(t in lower for t in tables.save_recurring_triggers):
        return None
    for c in candidates:
        if c.title_pattern and c.title_pattern in lower:
            return c
    return candidates[0]


def budget_not_found_message(name: str) -> str:
    return f'Budget "{name}" was not found. Please check the name or create it.'


def confirm_add_message(parsed: ParsedAdd, symbol: str = "$") -> str:
    return (
        f'Confirm adding {format_money(parsed.amount, symbol)} "{parsed.title}" '
        f"to {parsed.budget_name}? Reply Yes/No."
    )


def confirm_recurring_message(c: RecurringCandidate, symbol: str = "$") -> str:
    return (
        f'Confirm saving recurring rule "{c.title_pattern}" '
        f"({c.cadence}, ~{format_money(c.avg_amount, symbol)}, next: {c.next_due_date})? Reply Yes/No."
    )
