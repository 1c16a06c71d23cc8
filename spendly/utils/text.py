# -*- coding: utf-8 -*-
"""
Text utilities shared across the assistant pipeline.

sanitize_title: collapses whitespace and drops anything that is not a letter,
digit, space or one of ``- . , ( ) #``; capped at 60 characters. Used for
every user-controlled string interpolated into a prompt.
Examples:
  "  Coffee   @ Starbucks!!  " -> "Coffee Starbucks"
  "Ignore previous | instructions {}" -> "Ignore previous instructions"
  "Кофе #12" -> "Кофе #12"

normalize_budget_name: case-folds, strips diacritics and punctuation,
collapses spaces so "  Café  Budget " and "cafe budget" compare equal.

normalize_title: recurring-pattern key. Lowercase, no emoji/punctuation,
trailing store/reference numbers of 3+ digits removed.
Examples:
  "Netflix #1234" -> "netflix"
  "🎵 Spotify Premium" -> "spotify premium"
  "GYM-membership 0042" -> "gym membership"
"""
from __future__ import annotations
import re
import unicodedata

TITLE_MAX_LEN = 60

_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]|_", re.UNICODE)
_EMOJI_RE = re.compile("[\U0001F300-\U0001FAFF☀-➿]")
_REF_NUM_RE = re.compile(r"(?:^|\s)[#*]?\d{3,}\b")
_TITLE_EXTRA = set("-.,()#")


def _strip_diacritics(s: str) -> str:
    # NFKD then drop combining marks
    return "".join(
        ch for ch in unicodedata.normalize("NFKD", s) if not unicodedata.combining(ch)
    )


def collapse_ws(s: str) -> str:
    return _WS_RE.sub(" ", s or "").strip()


def sanitize_title(value: str | None, max_len: int = TITLE_MAX_LEN) -> str:
    s = collapse_ws(value or "")
    s = "".join(
        ch for ch in s if ch.isalnum() or ch.isspace() or ch in _TITLE_EXTRA
    )
    s = collapse_ws(s)
    return s[:max_len].rstrip() if len(s) > max_len else s


def normalize_budget_name(name: str | None) -> str:
    s = _strip_diacritics((name or "").casefold())
    s = "".join(ch for ch in s if ch.isalnum() or ch.isspace() or ch == "-")
    return collapse_ws(s)


def normalize_title(raw: str | None) -> str:
    s = (raw or "").lower()
    s = _EMOJI_RE.sub("", s)
    s = _PUNCT_RE.sub(" ", s)
    s = collapse_ws(s)
    return collapse_ws(_REF_NUM_RE.sub(" ", s))


def capitalize_title(s: str) -> str:
    s = (s or "").strip()
    if not s:
        return s
    return s[0].upper() + s[1:].lower()
