from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from statistics import median
from typing import Dict, Iterable, List, Optional

from spendly.models import RecurringCandidate, TxRecord
from spendly.utils.text import normalize_title
from spendly.utils.time import as_utc, iso_day, utc_now

MIN_WINDOW_DAYS = 90
MAX_WINDOW_DAYS = 180
MIN_OCCURRENCES = 3
MAX_CANDIDATES = 20

# cadence -> (min median gap, max median gap, forecast offset in days)
CADENCE_WINDOWS = {
    "weekly": (5, 9, 7),
    "monthly": (25, 35, 30),
}


def _infer_cadence(sorted_dates: List[date]) -> Optional[str]:
    if len(sorted_dates) < MIN_OCCURRENCES:
        return None
    gaps = [
        (sorted_dates[i] - sorted_dates[i - 1]).days
        for i in range(1, len(sorted_dates))
    ]
    mid = median(gaps)
    for cadence, (lo, hi, _) in CADENCE_WINDOWS.items():
        if lo <= mid <= hi:
            return cadence
    return None


def _most_common_budget(rows: List[TxRecord]) -> Optional[int]:
    # Counter keeps insertion order, so ties go to the first-seen id
    return Counter(r.budget_folder_id for r in rows).most_common(1)[0][0]


def find_recurring_candidates(
    transactions: Iterable[TxRecord],
    window_days: int = 120,
    now: Optional[datetime] = None,
) -> List[RecurringCandidate]:
    """
    Group expenses by normalized title; keep groups with a weekly or monthly
    rhythm. Returns at most 20 candidates, largest median amount first.
    """
    window = min(max(int(window_days), MIN_WINDOW_DAYS), MAX_WINDOW_DAYS)
    now = as_utc(now or utc_now())
    since = now - timedelta(days=window)

    groups: Dict[str, List[TxRecord]] = defaultdict(list)
    for t in transactions:
        if t.type != "expense":
            continue
        if not since <= as_utc(t.created_at) <= now:
            continue
        key = normalize_title(t.title)
        if not key:
            continue
        groups[key].append(t)

    out: List[RecurringCandidate] = []
    for key, rows in groups.items():
        if len(rows) < MIN_OCCURRENCES:
            continue
        rows = sorted(rows, key=lambda r: as_utc(r.created_at))
        dates = [as_utc(r.created_at).date() for r in rows]
        cadence = _infer_cadence(dates)
        if cadence is None:
            continue
        offset = CADENCE_WINDOWS[cadence][2]
        out.append(
            RecurringCandidate(
                title_pattern=key,
                budget_folder_id=_most_common_budget(rows),
                avg_amount=median([r.amount for r in rows]),
                cadence=cadence,
                next_due_date=iso_day(dates[-1] + timedelta(days=offset)),
                count=len(rows),
            )
        )

    out.sort(key=lambda c: c.avg_amount, reverse=True)
    return out[:MAX_CANDIDATES]
