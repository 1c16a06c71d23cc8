"""
Keyword tables for the deterministic parts of the assistant pipeline.

Everything here is data: the local parser, intent/period detector, command
triage and provider routing only iterate these tables. New locales or
categories are added by editing the dicts below, or by pointing
ASSISTANT_KEYWORDS_FILE at a JSON document with the same top-level keys
(values in the file replace the built-in entry for that key).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

log = logging.getLogger(__name__)

# Multi-word or relative date phrasing that the local parser refuses to guess
DATE_KEYWORDS: List[str] = [
    # English
    "last", "this", "next", "ago", "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday", "week", "month",
    # Russian
    "прошлый", "прошлой", "этот", "этой", "понедельник", "вторник", "среда",
    "среду", "четверг", "пятница", "пятницу", "суббота", "субботу",
    "воскресенье", "неделя", "неделе", "месяц",
    # Ukrainian
    "минулий", "цей", "понеділок", "вівторок", "середа", "четвер", "п'ятниця",
    "субота", "неділя", "тиждень", "місяць",
    # Indonesian
    "lalu", "minggu", "bulan",
]

# Single-word date tokens the local parser resolves itself (offset in days)
SINGLE_DATE_OFFSETS: Dict[str, int] = {
    "yesterday": -1, "today": 0, "tomorrow": 1,
    "вчера": -1, "сегодня": 0, "завтра": 1,
    "вчора": -1, "сьогодні": 0,
    "kemarin": -1, "besok": 1,
}

# Free-form verbs and prepositions: phrasing too loose for the local parser
COMPLEX_KEYWORDS: List[str] = [
    # English
    "bought", "spent", "paid", "received", "earned", "got", "for", "on", "at",
    # Russian
    "купил", "купила", "потратил", "потратила", "заплатил", "заплатила",
    "получил", "получила", "заработал",
    # Ukrainian
    "купив", "витратив", "заплатив", "отримав", "заробив",
    # Indonesian
    "membeli", "beli", "bayar", "menerima",
]

# Conjunctions that separate several items in one utterance, per language
CONJUNCTIONS: Dict[str, List[str]] = {
    "en": ["and"],
    "ru": ["и"],
    "uk": ["і", "та"],
    "id": ["dan"],
}

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Transport": [
        "taxi", "bolt", "uber", "bus", "metro", "subway", "train", "gas", "fuel", "parking",
        "такси", "автобус", "бензин", "парковка", "поезд",
        "таксі", "паливо", "паркування", "поїзд",
        "bensin", "parkir", "kereta",
    ],
    "Food": [
        "coffee", "lunch", "dinner", "breakfast", "pizza", "burger", "groceries", "food",
        "beer", "wine", "restaurant", "cafe", "snack", "meal",
        "кофе", "обед", "ужин", "завтрак", "пицца", "продукты", "еда",
        "пиво", "вино", "ресторан", "кафе", "перекус",
        "кава", "обід", "вечеря", "сніданок", "піца", "продукти", "їжа",
        "kopi", "makan", "sarapan",
    ],
    "Shopping": [
        "shop", "store", "clothes", "shoes", "amazon", "mall", "purchase",
        "магазин", "одежда", "обувь", "покупка", "шопинг",
        "одяг", "взуття", "шопінг",
        "belanja", "baju", "sepatu",
    ],
    "Entertainment": [
        "movie", "cinema", "game", "netflix", "spotify", "concert", "theater", "theatre",
        "кино", "фильм", "игра", "концерт", "театр",
        "кіно", "фільм", "гра",
        "bioskop", "film",
    ],
}

# Ordered: first matching intent wins
INTENT_PATTERNS: List[Tuple[str, List[str]]] = [
    ("save_advice", [
        "where can i save money", "save money", "economy advice", "saving tips",
        "как сэкономить", "советы по экономии", "где могу сэкономить",
        "як заощадити", "hemat uang",
    ]),
    ("analyze_spending", [
        "analyze my spending patterns", "spending patterns", "analyze spending",
        "рассмотри мои траты", "проанализируй расходы", "анализ расходов",
        "аналіз витрат", "analisis pengeluaran",
    ]),
    ("biggest_expenses", [
        "show my biggest expenses", "biggest expenses", "top expenses", "largest expenses",
        "крупные траты", "самые большие расходы", "топ расходов",
        "найбільші витрати", "pengeluaran terbesar",
    ]),
    ("compare_months", [
        "compare this month vs last month", "this month vs last month", "compare months",
        "сравни этот месяц с прошлым", "сравнение месяцев", "этот месяц против прошлого",
        "порівняй місяці", "bandingkan bulan",
    ]),
]

# Period hints; a "this" hint is ignored when the text also holds an exclusion stem
PERIOD_HINTS: Dict[str, List[str]] = {
    "lastWeek": [
        "last week", "previous week", "past week",
        "прошлая неделя", "предыдущая неделя", "за прошлую неделю", "за пред неделю",
        "минулого тижня", "minggu lalu",
    ],
    "thisWeek": [
        "this week", "current week", "thisweek",
        "эта неделя", "текущая неделя", "за эту неделю", "за текущую неделю", "неделя",
        "цього тижня", "minggu ini",
    ],
    "lastMonth": [
        "last month", "previous month", "past month",
        "прошлый месяц", "предыдущий месяц", "за прошлый месяц",
        "минулого місяця", "bulan lalu",
    ],
    "thisMonth": [
        "this month", "current month", "thismonth",
        "этот месяц", "текущий месяц", "за этот месяц", "за текущий месяц", "месяц",
        "цього місяця", "bulan ini",
    ],
}
PERIOD_EXCLUSIONS: List[str] = ["last", "прошл", "пред", "минул", "lalu"]

# Message starts that look like an attempt to add a transaction
ADD_VERB_STEMS: List[str] = ["add", "добав", "дод", "tambah", "追加", "추가", "जोड़"]
BUDGET_TOKENS: List[str] = ["budget", "бюджет", "anggaran"]

SAVE_RECURRING_TRIGGERS: List[str] = [
    "сохрани как повтор",
    "сохранить как повтор",
    "сохранить подписк",
    "да, сохрани как повтор",
    "save as recurring",
    "save recurring",
    "save subscription",
]

# Requests that benefit from the higher-capability provider
COMPLEXITY_KEYWORDS: List[str] = ["save", "analyze", "forecast"]
COMPLEX_MESSAGE_LEN = 100


@dataclass
class KeywordTables:
    date_keywords: List[str] = field(default_factory=lambda: list(DATE_KEYWORDS))
    single_date_offsets: Dict[str, int] = field(default_factory=lambda: dict(SINGLE_DATE_OFFSETS))
    complex_keywords: List[str] = field(default_factory=lambda: list(COMPLEX_KEYWORDS))
    conjunctions: Dict[str, List[str]] = field(default_factory=lambda: dict(CONJUNCTIONS))
    category_keywords: Dict[str, List[str]] = field(default_factory=lambda: dict(CATEGORY_KEYWORDS))
    intent_patterns: List[Tuple[str, List[str]]] = field(default_factory=lambda: list(INTENT_PATTERNS))
    period_hints: Dict[str, List[str]] = field(default_factory=lambda: dict(PERIOD_HINTS))
    period_exclusions: List[str] = field(default_factory=lambda: list(PERIOD_EXCLUSIONS))
    add_verb_stems: List[str] = field(default_factory=lambda: list(ADD_VERB_STEMS))
    budget_tokens: List[str] = field(default_factory=lambda: list(BUDGET_TOKENS))
    save_recurring_triggers: List[str] = field(default_factory=lambda: list(SAVE_RECURRING_TRIGGERS))
    complexity_keywords: List[str] = field(default_factory=lambda: list(COMPLEXITY_KEYWORDS))


@lru_cache(maxsize=4)
def load_keyword_tables(path: str | None = None) -> KeywordTables:
    """Built-in tables, optionally overridden key-by-key from a JSON file."""
    tables = KeywordTables()
    if not path:
        return tables
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("keywords.load_failed path=%s error=%s", path, exc)
        return tables
    known = {f.name for f in fields(KeywordTables)}
    for key, value in raw.items():
        if key not in known:
            log.warning("keywords.unknown_key key=%s", key)
            continue
        if key == "intent_patterns":
            value = [(str(name), list(pats)) for name, pats in value]
        setattr(tables, key, value)
    return tables


def get_keyword_tables() -> KeywordTables:
    from spendly.config import get_settings

    return load_keyword_tables(get_settings().ASSISTANT_KEYWORDS_FILE)
