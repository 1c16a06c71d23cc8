"""
Deterministic prompt assembly.

Document layout (newline joined):

    <instructions>
    Known budgets: Food (expense), Salary (income).
    ThisWeekStart: 2026-10-12; ThisWeekEnd: 2026-10-19.
    TotalThisWeek: $42.00.
    BudgetTotalsThisWeek:
    Food: $30.00
    ...
    CompareMonths: ThisMonth=$120.00 vs LastMonth=$80.00; Diff=$40.00.
    RecurringCharges:
    - monthly: netflix ~ $15.99 | next: 2026-11-01 | count: 4
    User: <message>

When the document exceeds ``max_chars`` the raw transaction listings are
dropped (compact variant). If even that does not fit, the body is cut so the
result never exceeds ``max_chars``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from spendly.models import BudgetRecord, RecurringCandidate, TxRecord, UserContext
from spendly.services import stats
from spendly.services.canonical import (
    localize_empty_generic,
    localize_empty_monthly,
    localize_empty_weekly,
)
from spendly.services.commands import format_money
from spendly.services.intent import detect_intent
from spendly.utils.text import sanitize_title
from spendly.utils.time import as_utc, iso_day, utc_now

PROMPT_VERSION = "spendlyPal/0.1.0"

DEFAULT_SYSTEM = (
    "You are the Spendly assistant. Respond directly to the user request. "
    "Use the provided Weekly and Monthly sections depending on the request. "
    "Do not give application instructions, onboarding, UI steps, or how-to guides. "
    "Do not include greetings or introductions. Answer in plain text."
)

MAX_BUDGETS_LISTED = 15
MAX_BUDGET_TOTALS = 10
MAX_TX_LINES = 50
MAX_TOP_EXPENSES = 3
MAX_RECURRING_LINES = 7

# Blocks that survive in the compact variant, in output order
COMPACT_KEYS = (
    "TotalThisWeek",
    "BudgetTotalsThisWeek",
    "TopExpensesThisWeek",
    "TotalThisMonth",
    "BudgetTotalsThisMonth",
    "TopExpensesThisMonth",
    "TotalLastWeek",
    "BudgetTotalsLastWeek",
    "TotalLastMonth",
    "BudgetTotalsLastMonth",
    "CompareMonths",
)

_SYMBOLS = {"USD": "$", "EUR": "€", "RUB": "₽", "GBP": "£", "JPY": "¥"}

_INTENT_EXTRA = {
    "save_advice": (
        "If asked for saving advice, use budget aggregates and point to where expenses can be reduced. Keep it concise.",
        "Если просят советы по экономии, опирайся на агрегаты по бюджетам и укажи, где можно сократить траты. Будь краток.",
    ),
    "analyze_spending": (
        "If asked for analysis, briefly describe spending patterns across budgets and top expenses.",
        "Если просят анализ, кратко опиши паттерны расходов по бюджетам и топовым затратам.",
    ),
    "compare_months": (
        "If asked to compare months, compare totals for this and last month and state the difference.",
        "Если просят сравнение месяцев, сравни итоги текущего и прошлого месяца и укажи разницу.",
    ),
    "biggest_expenses": (
        "If asked for the biggest expenses, list the top expenses with dates and budgets.",
        "Если просят крупные траты, перечисли самые большие расходы с датами и бюджетами.",
    ),
}


def currency_symbol(currency: Optional[str]) -> str:
    return _SYMBOLS.get((currency or "").upper(), "$")


@dataclass
class PromptSection:
    """Ordered ``(key, text)`` blocks so the compact variant can pick by key."""

    blocks: List[Tuple[str, str]] = field(default_factory=list)

    def add(self, key: str, text: str) -> None:
        self.blocks.append((key, text))

    def render(self, keys: Optional[Iterable[str]] = None) -> str:
        if keys is None:
            return "\n".join(text for _, text in self.blocks)
        wanted = set(keys)
        return "\n".join(text for key, text in self.blocks if key in wanted)

    def get(self, key: str) -> Optional[str]:
        for k, text in self.blocks:
            if k == key:
                return text
        return None

    def __str__(self) -> str:
        return self.render()


def _budget_label(tx: TxRecord, names: Mapping[int, str]) -> str:
    if tx.budget_folder_id is None:
        return stats.UNASSIGNED
    return sanitize_title(names.get(tx.budget_folder_id, stats.UNKNOWN)) or stats.UNKNOWN


def _tx_lines(txs: Sequence[TxRecord], symbol: str, names: Mapping[int, str]) -> str:
    lines = [
        f"{iso_day(as_utc(t.created_at))} | {t.type} | {format_money(t.amount, symbol)} "
        f"| budget: {_budget_label(t, names)} | title: {sanitize_title(t.title) or 'Transaction'}"
        for t in txs[:MAX_TX_LINES]
    ]
    return "\n".join(lines) or "none"


def _totals_lines(totals: Mapping[str, Decimal], symbol: str) -> str:
    lines = [
        f"{sanitize_title(name) or name}: {format_money(total, symbol)}"
        for name, total in stats.sorted_totals(totals, MAX_BUDGET_TOTALS)
    ]
    return "\n".join(lines) or "none"


def _top_lines(txs: Sequence[TxRecord], symbol: str, names: Mapping[int, str]) -> str:
    lines = [
        f"{iso_day(as_utc(t.created_at))} | {format_money(t.amount, symbol)} "
        f"| {_budget_label(t, names)} | {sanitize_title(t.title) or 'Transaction'}"
        for t in txs[:MAX_TOP_EXPENSES]
    ]
    return "\n".join(lines) or "none"


def _period_blocks(
    section: PromptSection,
    label: str,
    start: datetime,
    end_day: datetime,
    txs: Sequence[TxRecord],
    symbol: str,
    names: Mapping[int, str],
    with_transactions: bool,
) -> None:
    section.add(f"{label}Range", f"{label}Start: {iso_day(start)}; {label}End: {iso_day(end_day)}.")
    section.add(f"Total{label}", f"Total{label}: {format_money(stats.sum_expenses(txs), symbol)}.")
    section.add(
        f"BudgetTotals{label}",
        f"BudgetTotals{label}:\n{_totals_lines(stats.budget_totals(txs, names), symbol)}",
    )
    if with_transactions:
        section.add(f"Transactions{label}", f"Transactions{label}:\n{_tx_lines(txs, symbol, names)}")
    section.add(
        f"TopExpenses{label}",
        f"TopExpenses{label}:\n{_top_lines(stats.top_expenses(txs, MAX_TOP_EXPENSES), symbol, names)}",
    )


def _is_ru(locale: Optional[str]) -> bool:
    return (locale or "").lower().startswith("ru")


def build_instructions(
    locale: str = "en-US",
    currency: str = "USD",
    intent: str = "unknown",
    prompt_version: str = PROMPT_VERSION,
) -> str:
    ru = _is_ru(locale)
    extra = _INTENT_EXTRA.get(intent)
    parts = [
        "You are a helpful finance assistant.",
        "Respond in the user's language.",
        "Answer in plain conversational text: no JSON, no markdown tables, no code fences.",
        "Use only the data provided below. Do not invent transactions, merchants, categories, or amounts.",
        "When the request is weekly, summarize ThisWeek/LastWeek sections. When monthly, summarize ThisMonth/LastMonth.",
        f'If the requested weekly period has "none", reply exactly: '
        f'"{localize_empty_weekly("thisWeek", locale)}" or "{localize_empty_weekly("lastWeek", locale)}".',
        f'If the requested monthly period has "none", reply exactly: '
        f'"{localize_empty_monthly("thisMonth", locale)}" or "{localize_empty_monthly("lastMonth", locale)}".',
        f'If another period is requested and it has no expenses, reply exactly: "{localize_empty_generic(locale)}".',
        "Include key numbers: totals, budget totals, and top expenses. Add one short insight if helpful.",
        "Если показываешь подписки, кратко отметь оптимизацию."
        if ru
        else "If recurring charges are listed, add brief optimization tips.",
    ]
    if extra:
        parts.append(extra[1] if ru else extra[0])
    parts.append(f"Currency: {currency.upper()}. PromptVersion: {prompt_version}.")
    return " ".join(parts)


def build_weekly_section(
    transactions: Sequence[TxRecord],
    budget_names: Mapping[int, str],
    currency: str = "USD",
    now: Optional[datetime] = None,
) -> PromptSection:
    now = as_utc(now or utc_now())
    symbol = currency_symbol(currency)
    week_start, _ = stats.get_week_range(now)
    last_start, last_end = stats.get_last_week_range(week_start)
    section = PromptSection()
    _period_blocks(
        section, "ThisWeek", week_start, now,
        stats.period_transactions(transactions, "thisWeek", now), symbol, budget_names, True,
    )
    _period_blocks(
        section, "LastWeek", last_start, last_end - timedelta(days=1),
        stats.filter_by_date_range(transactions, last_start, last_end), symbol, budget_names, True,
    )
    return section


def build_monthly_section(
    transactions: Sequence[TxRecord],
    last_month_txs: Sequence[TxRecord],
    budget_names: Mapping[int, str],
    currency: str = "USD",
    now: Optional[datetime] = None,
) -> PromptSection:
    now = as_utc(now or utc_now())
    symbol = currency_symbol(currency)
    month_start, _ = stats.get_this_month_range(now)
    last_start, last_end = stats.get_last_month_range(now)
    this_month = stats.period_transactions(transactions, "thisMonth", now)
    section = PromptSection()
    _period_blocks(section, "ThisMonth", month_start, now, this_month, symbol, budget_names, False)
    _period_blocks(
        section, "LastMonth", last_start, last_end - timedelta(days=1),
        list(last_month_txs), symbol, budget_names, False,
    )
    cmp = stats.compare_month_totals(this_month, last_month_txs)
    section.add(
        "CompareMonths",
        f"CompareMonths: ThisMonth={format_money(cmp['totalThis'], symbol)} "
        f"vs LastMonth={format_money(cmp['totalLast'], symbol)}; Diff={format_money(cmp['diff'], symbol)}.",
    )
    return section


def build_recurring_summary(candidates: Sequence[RecurringCandidate], currency: str = "USD") -> str:
    if not candidates:
        return "RecurringCharges:\nnone"
    symbol = currency_symbol(currency)
    top = sorted(candidates, key=lambda c: c.avg_amount, reverse=True)[:MAX_RECURRING_LINES]
    lines = [
        f"- {c.cadence}: {sanitize_title(c.title_pattern)} ~ {format_money(c.avg_amount, symbol)} "
        f"| next: {c.next_due_date} | count: {c.count}"
        for c in top
    ]
    return "\n".join(["RecurringCharges:", *lines])


def budgets_summary(budgets: Sequence[BudgetRecord]) -> str:
    listed = [f"{sanitize_title(b.name)} ({b.type})" for b in budgets[:MAX_BUDGETS_LISTED]]
    return ", ".join(listed) or "none"


def _section_text(section, keys: Optional[Iterable[str]] = None) -> str:
    if isinstance(section, PromptSection):
        return section.render(keys)
    if keys is None:
        return str(section or "")
    # Plain strings carry no block keys; keep only lines that open a wanted block
    wanted = tuple(f"{k}:" for k in keys)
    return "\n".join(line for line in str(section or "").split("\n") if line.startswith(wanted))


def _fit(body: List[str], user_line: str, max_chars: int) -> str:
    max_chars = max(0, max_chars)
    text = "\n".join([*body, user_line])
    if len(text) <= max_chars:
        return text
    room = max_chars - len(user_line) - 1
    if room <= 0:
        return user_line[:max_chars]
    return "\n".join(body)[:room] + "\n" + user_line


def build_prompt(
    budgets: Sequence[BudgetRecord],
    instructions: str,
    weekly_section,
    monthly_section,
    user_message: str,
    max_chars: Optional[int] = None,
    recurring_section: Optional[str] = None,
) -> str:
    known = f"Known budgets: {budgets_summary(budgets)}."
    user_line = f"User: {user_message}"
    full = "\n".join(
        part
        for part in [
            instructions,
            known,
            _section_text(weekly_section),
            _section_text(monthly_section),
            recurring_section or "",
            user_line,
        ]
        if part
    )
    if max_chars is None or len(full) <= max_chars:
        return full

    body = [instructions, known]
    for key in COMPACT_KEYS:
        for section in (weekly_section, monthly_section):
            text = _section_text(section, [key])
            if text:
                body.append(text)
    return _fit([b for b in body if b], user_line, max_chars)


def compose_llm_prompt(
    ctx: UserContext,
    message: str,
    locale: str = "en-US",
    currency: str = "USD",
    max_chars: Optional[int] = None,
    now: Optional[datetime] = None,
    prompt_version: str = PROMPT_VERSION,
) -> str:
    now = as_utc(now or utc_now())
    names: Dict[int, str] = {b.id: b.name for b in ctx.budgets}
    instructions = build_instructions(
        locale=locale, currency=currency, intent=detect_intent(message), prompt_version=prompt_version
    )
    weekly = build_weekly_section(ctx.last_transactions, names, currency, now)
    monthly = build_monthly_section(ctx.last_transactions, ctx.last_month_txs, names, currency, now)
    recurring = (
        build_recurring_summary(ctx.recurring_candidates, currency)
        if ctx.recurring_candidates
        else None
    )
    return build_prompt(
        ctx.budgets,
        instructions,
        weekly,
        monthly,
        message,
        max_chars=max_chars,
        recurring_section=recurring,
    )
