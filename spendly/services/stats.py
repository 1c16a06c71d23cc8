"""
Pure aggregates over in-memory transaction records.

All ranges are computed in UTC and are half-open ``[start, end)``.
Amounts stay Decimal end to end; callers format for display.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from spendly.models import TxRecord
from spendly.utils.time import as_utc, utc_now

UNASSIGNED = "Unassigned"
UNKNOWN = "Unknown"

Range = Tuple[datetime, datetime]


def _midnight(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def get_week_range(now: Optional[datetime] = None) -> Range:
    """Monday 00:00 of the current week up to ``now``."""
    now = as_utc(now or utc_now())
    start = _midnight(now) - timedelta(days=now.weekday())
    return start, now


def get_last_week_range(week_start: datetime) -> Range:
    """The 7 days immediately preceding ``week_start``."""
    week_start = as_utc(week_start)
    return week_start - timedelta(days=7), week_start


def get_this_month_range(now: Optional[datetime] = None) -> Range:
    now = as_utc(now or utc_now())
    return _midnight(now).replace(day=1), now


def get_last_month_range(now: Optional[datetime] = None) -> Range:
    now = as_utc(now or utc_now())
    this_start = _midnight(now).replace(day=1)
    prev_start = (this_start - timedelta(days=1)).replace(day=1)
    return prev_start, this_start


def filter_by_date_range(
    txs: Iterable[TxRecord], start: datetime, end: datetime, inclusive_end: bool = False
) -> List[TxRecord]:
    """Half-open [start, end); current-period callers pass inclusive_end for [start, now]."""
    start, end = as_utc(start), as_utc(end)
    if inclusive_end:
        return [t for t in txs if start <= as_utc(t.created_at) <= end]
    return [t for t in txs if start <= as_utc(t.created_at) < end]


def _expenses(txs: Iterable[TxRecord]) -> List[TxRecord]:
    return [t for t in txs if t.type == "expense"]


def sum_expenses(txs: Iterable[TxRecord]) -> Decimal:
    return sum((t.amount for t in _expenses(txs)), Decimal("0"))


def budget_totals(
    txs: Iterable[TxRecord], budget_name_by_id: Mapping[int, str]
) -> Dict[str, Decimal]:
    """Expense totals per budget display name.

    Null budget ids land in "Unassigned", ids missing from the map in "Unknown",
    so the values always add up to ``sum_expenses(txs)``.
    """
    out: Dict[str, Decimal] = {}
    for t in _expenses(txs):
        if t.budget_folder_id is None:
            name = UNASSIGNED
        else:
            name = budget_name_by_id.get(t.budget_folder_id, UNKNOWN)
        out[name] = out.get(name, Decimal("0")) + t.amount
    return out


def top_expenses(txs: Sequence[TxRecord], n: int = 3) -> List[TxRecord]:
    """Largest expenses first; equal amounts keep their input order."""
    return sorted(_expenses(txs), key=lambda t: t.amount, reverse=True)[: max(n, 0)]


def compare_month_totals(
    this_month: Iterable[TxRecord], last_month: Iterable[TxRecord]
) -> Dict[str, Decimal]:
    total_this = sum_expenses(this_month)
    total_last = sum_expenses(last_month)
    return {"totalThis": total_this, "totalLast": total_last, "diff": total_this - total_last}


def sorted_totals(totals: Mapping[str, Decimal], limit: int = 10) -> List[Tuple[str, Decimal]]:
    return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:limit]


def period_range(period: str, now: Optional[datetime] = None) -> Optional[Range]:
    now = as_utc(now or utc_now())
    if period == "thisWeek":
        return get_week_range(now)
    if period == "lastWeek":
        return get_last_week_range(get_week_range(now)[0])
    if period == "thisMonth":
        return get_this_month_range(now)
    if period == "lastMonth":
        return get_last_month_range(now)
    return None


def period_transactions(
    txs: Iterable[TxRecord], period: str, now: Optional[datetime] = None
) -> List[TxRecord]:
    """Rows inside a named period; current periods include ``now`` itself."""
    rng = period_range(period, now)
    if rng is None:
        return []
    return filter_by_date_range(txs, rng[0], rng[1], inclusive_end=period.startswith("this"))
