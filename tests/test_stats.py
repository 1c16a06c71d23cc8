from datetime import datetime, timezone
from decimal import Decimal

from spendly.models import TxRecord
from spendly.services import stats

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


def tx(i, amount, created_at, budget=None, type="expense", title="t"):
    return TxRecord(
        id=i, title=title, amount=Decimal(str(amount)), type=type,
        budget_folder_id=budget, created_at=created_at,
    )


def test_week_ranges_start_monday_utc():
    start, end = stats.get_week_range(NOW)
    assert start == datetime(2026, 10, 12, tzinfo=timezone.utc)
    assert end == NOW
    last_start, last_end = stats.get_last_week_range(start)
    assert last_start == datetime(2026, 10, 5, tzinfo=timezone.utc)
    assert last_end == start


def test_month_ranges_cross_year():
    jan = datetime(2026, 1, 20, 8, 0, tzinfo=timezone.utc)
    start, end = stats.get_last_month_range(jan)
    assert start == datetime(2025, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert stats.get_this_month_range(jan)[0] == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_filter_is_half_open():
    start = datetime(2026, 10, 5, tzinfo=timezone.utc)
    end = datetime(2026, 10, 12, tzinfo=timezone.utc)
    rows = [tx(1, 1, start), tx(2, 1, end), tx(3, 1, datetime(2026, 10, 11, 23, 59, tzinfo=timezone.utc))]
    assert [t.id for t in stats.filter_by_date_range(rows, start, end)] == [1, 3]


def test_current_period_includes_now():
    rows = [tx(1, 5, NOW)]
    assert [t.id for t in stats.period_transactions(rows, "thisWeek", NOW)] == [1]


def test_budget_totals_add_up_to_sum_of_expenses():
    rows = [
        tx(1, "10.00", NOW, budget=1),
        tx(2, "5.50", NOW, budget=None),
        tx(3, "2.25", NOW, budget=99),
        tx(4, "100", NOW, budget=1, type="income"),
        tx(5, "1.25", NOW, budget=1),
    ]
    totals = stats.budget_totals(rows, {1: "Food"})
    assert totals == {
        "Food": Decimal("11.25"),
        stats.UNASSIGNED: Decimal("5.50"),
        stats.UNKNOWN: Decimal("2.25"),
    }
    assert sum(totals.values()) == stats.sum_expenses(rows) == Decimal("19.00")


def test_top_expenses_is_stable_for_ties():
    rows = [tx(1, 5, NOW), tx(2, 9, NOW), tx(3, 5, NOW), tx(4, 50, NOW, type="income")]
    assert [t.id for t in stats.top_expenses(rows, 3)] == [2, 1, 3]


def test_compare_month_totals():
    this = [tx(1, "120", NOW)]
    last = [tx(2, "80", NOW), tx(3, "10", NOW, type="income")]
    assert stats.compare_month_totals(this, last) == {
        "totalThis": Decimal("120"),
        "totalLast": Decimal("80"),
        "diff": Decimal("40"),
    }
