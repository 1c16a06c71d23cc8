from __future__ import annotations

import re
from dataclasses import dataclass
from typing import AbstractSet, Optional

from spendly.core.keywords import COMPLEX_MESSAGE_LEN, KeywordTables, get_keyword_tables

DEFAULT_PROVIDER = "gemini"
HIGH_CAPABILITY_PROVIDER = "openai"
PROVIDERS = ("openai", "gemini")


@dataclass(frozen=True)
class ProviderChoice:
    provider: str
    reason: str  # preferred | complex | fallback | default


def is_complex_request(message: str, tables: Optional[KeywordTables] = None) -> bool:
    tables = tables or get_keyword_tables()
    text = (message or "").lower()
    if len(text) > COMPLEX_MESSAGE_LEN:
        return True
    if not tables.complexity_keywords:
        return False
    pattern = r"\b(?:" + "|".join(re.escape(k) for k in tables.complexity_keywords) + r")"
    return re.search(pattern, text) is not None


def select_provider(
    preferred: Optional[str],
    available: AbstractSet[str],
    complex_hint: bool,
) -> ProviderChoice:
    """Pure strategy: preferred if credentialed, else capability by complexity, else default."""
    pref = (preferred or "").strip().lower()
    if pref == "google":
        pref = "gemini"
    if pref in PROVIDERS and pref in available:
        return ProviderChoice(pref, "preferred")
    if complex_hint and HIGH_CAPABILITY_PROVIDER in available:
        return ProviderChoice(HIGH_CAPABILITY_PROVIDER, "complex")
    if DEFAULT_PROVIDER not in available and HIGH_CAPABILITY_PROVIDER in available:
        return ProviderChoice(HIGH_CAPABILITY_PROVIDER, "fallback")
    return ProviderChoice(DEFAULT_PROVIDER, "default")
