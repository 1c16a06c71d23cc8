"""
Offline parser for short "<title> <amount>" utterances.

Handles things like "Coffee 4.50", "taxi 12, lunch 8,50 yesterday" or
"кофе 150 и такси 300" without calling a model. Anything with relative date
phrasing or free-form verbs ("last friday", "I spent") is flagged
``requires_ai`` and left to the LLM path.
"""
from __future__ import annotations

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from spendly.core.keywords import KeywordTables, get_keyword_tables
from spendly.models import ParsedTransaction, ParseResult
from spendly.utils.text import capitalize_title, collapse_ws
from spendly.utils.time import iso_day, utc_now

CURRENCY_SYMBOLS = "$€₴₽¥£"
DEFAULT_CATEGORY = "Other"

_WORD_RE = re.compile(r"[^\W\d_][\w'’]*", re.UNICODE)
# Comma between two digits is a decimal/thousands separator, not a segment break
_SEGMENT_SPLIT_RE = re.compile(r"(?<!\d),|,(?!\d)|[;\n&+]")
_NUMERIC_TOKEN_RE = re.compile(rf"^[-+]?[{CURRENCY_SYMBOLS}]?[-+]?\d")
_AMOUNT_BODY_RE = re.compile(r"^\d[\d.,]*$")
_DOT_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:\.\d{3})+$")
_SENTENCE_PUNCT = ".,!?…"


def parse_amount(token: str) -> Optional[Decimal]:
    """Parse "12,50", "1,234.56", "$45", "1.234,56"; None unless > 0."""
    s = (token or "").strip().strip(CURRENCY_SYMBOLS).rstrip(_SENTENCE_PUNCT).strip(CURRENCY_SYMBOLS).strip()
    if not _AMOUNT_BODY_RE.match(s):
        return None
    if "," in s and "." in s:
        # whichever separator comes last is the decimal point
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        if s.count(",") == 1 and 1 <= len(tail) <= 2:
            s = f"{head}.{tail}"
        else:
            s = s.replace(",", "")
    elif s.count(".") > 1:
        if not _DOT_THOUSANDS_RE.match(s):
            return None
        s = s.replace(".", "")
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    return value if value > 0 else None


def _lang(locale: Optional[str]) -> Optional[str]:
    if not locale:
        return None
    return locale.replace("_", "-").split("-")[0].lower() or None


def _split_segments(text: str, locale: Optional[str], tables: KeywordTables) -> List[str]:
    lang = _lang(locale)
    if lang and lang in tables.conjunctions:
        words = set(tables.conjunctions[lang]) | set(tables.conjunctions.get("en", []))
    else:
        words = {w for ws in tables.conjunctions.values() for w in ws}
    parts = _SEGMENT_SPLIT_RE.split(text)
    if words:
        conj_re = re.compile(
            r"\s+(?:" + "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True)) + r")\s+",
            re.IGNORECASE,
        )
        parts = [p for part in parts for p in conj_re.split(f" {part} ")]
    return [collapse_ws(p) for p in parts if collapse_ws(p)]


def _categorize(title: str, tables: KeywordTables) -> str:
    words = _WORD_RE.findall(title.lower())
    for category, keywords in tables.category_keywords.items():
        for kw in keywords:
            for w in words:
                if w == kw or (len(kw) >= 4 and w.startswith(kw)):
                    return category
    return DEFAULT_CATEGORY


def _take_date(tokens: List[str], tables: KeywordTables) -> Tuple[List[str], Optional[int]]:
    offset: Optional[int] = None
    kept: List[str] = []
    for tok in tokens:
        key = tok.lower()
        if key in tables.single_date_offsets:
            if offset is None:
                offset = tables.single_date_offsets[key]
            continue
        kept.append(tok)
    return kept, offset


def _parse_segment(
    tokens: List[str], day: date, tables: KeywordTables
) -> Optional[ParsedTransaction]:
    amounts: List[str] = []
    words: List[str] = []
    for tok in tokens:
        if tok in CURRENCY_SYMBOLS:
            continue
        if _NUMERIC_TOKEN_RE.match(tok):
            amounts.append(tok)
        else:
            words.append(tok)
    if len(amounts) != 1 or not any(_WORD_RE.search(w) for w in words):
        return None
    amount = parse_amount(amounts[0])
    if amount is None:
        return None
    title = capitalize_title(" ".join(words))
    return ParsedTransaction(
        title=title,
        amount=amount,
        category_name=_categorize(title, tables),
        date=iso_day(day),
    )


def parse_locally(
    text: str,
    locale: Optional[str] = None,
    today: Optional[date] = None,
    tables: Optional[KeywordTables] = None,
) -> ParseResult:
    """Never raises; parsed segments are returned even when others fail."""
    tables = tables or get_keyword_tables()
    raw = collapse_ws(text or "")
    if not raw:
        return ParseResult(requires_ai=True)

    words = {w.lower() for w in _WORD_RE.findall(raw)}
    date_kw = set(tables.date_keywords) - set(tables.single_date_offsets)
    if words & date_kw or words & set(tables.complex_keywords):
        return ParseResult(requires_ai=True)

    today = today or utc_now().date()
    segments = _split_segments(raw, locale, tables)

    stripped: List[Tuple[str, List[str], Optional[int]]] = []
    for seg in segments:
        tokens, offset = _take_date(seg.split(), tables)
        stripped.append((seg, tokens, offset))

    # A date token closing the last segment applies to every segment without its own
    shared: Optional[int] = None
    if segments:
        last_tokens = segments[-1].split()
        if last_tokens and last_tokens[-1].lower() in tables.single_date_offsets:
            shared = tables.single_date_offsets[last_tokens[-1].lower()]

    result = ParseResult()
    for seg, tokens, offset in stripped:
        use = offset if offset is not None else shared
        day = today + timedelta(days=use or 0)
        parsed = _parse_segment(tokens, day, tables)
        if parsed is None:
            result.unparsed_segments.append(seg)
        else:
            result.transactions.append(parsed)
    result.requires_ai = bool(result.unparsed_segments) or not result.transactions
    return result
