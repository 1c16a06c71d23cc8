from datetime import date
from decimal import Decimal

import pytest

from spendly.services.local_parser import parse_amount, parse_locally

TODAY = date(2026, 10, 14)


@pytest.mark.parametrize(
    "token,expected",
    [
        ("12,50", Decimal("12.50")),
        ("1,234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("$45", Decimal("45")),
        ("4.50", Decimal("4.50")),
        ("1,234", Decimal("1234")),
        ("4.50.", Decimal("4.50")),
        ("12!", Decimal("12")),
        ("1.234.567", Decimal("1234567")),
    ],
)
def test_parse_amount_formats(token, expected):
    assert parse_amount(token) == expected


@pytest.mark.parametrize("token", ["0", "0,00", "-5", "abc", "", "4.50.25", "12.5.3"])
def test_parse_amount_rejects_zero_negative_and_garbage(token):
    assert parse_amount(token) is None


def test_single_item():
    res = parse_locally("Coffee 4.50", today=TODAY)
    assert not res.requires_ai
    assert res.unparsed_segments == []
    [tx] = res.transactions
    assert tx.title == "Coffee"
    assert tx.amount == Decimal("4.50")
    assert tx.category_name == "Food"
    assert tx.date == "2026-10-14"
    assert tx.type == "expense"


def test_comma_list_with_trailing_date_applies_to_every_item():
    res = parse_locally("taxi 12, lunch 8,50 yesterday", today=TODAY)
    assert not res.requires_ai
    assert [(t.title, t.amount, t.category_name, t.date) for t in res.transactions] == [
        ("Taxi", Decimal("12"), "Transport", "2026-10-13"),
        ("Lunch", Decimal("8.50"), "Food", "2026-10-13"),
    ]


def test_russian_conjunction_split():
    res = parse_locally("кофе 150 и такси 300", locale="ru-RU", today=TODAY)
    assert not res.requires_ai
    assert [(t.amount, t.category_name) for t in res.transactions] == [
        (Decimal("150"), "Food"),
        (Decimal("300"), "Transport"),
    ]


def test_free_form_verbs_go_to_the_model():
    res = parse_locally("I spent 20 on coffee", today=TODAY)
    assert res.requires_ai
    assert res.transactions == []


def test_relative_dates_go_to_the_model():
    res = parse_locally("pizza 12 last friday", today=TODAY)
    assert res.requires_ai
    assert res.transactions == []


def test_partial_parse_keeps_good_segments():
    res = parse_locally("movie 9; hello", today=TODAY)
    assert res.requires_ai
    assert [t.title for t in res.transactions] == ["Movie"]
    assert res.transactions[0].category_name == "Entertainment"
    assert res.unparsed_segments == ["hello"]


def test_unknown_category_defaults_to_other():
    res = parse_locally("widget 3", today=TODAY)
    assert res.transactions[0].category_name == "Other"


def test_empty_text_requires_ai():
    res = parse_locally("   ", today=TODAY)
    assert res.requires_ai
    assert res.transactions == []


def test_parse_is_idempotent():
    a = parse_locally("taxi 12, lunch 8,50 yesterday", today=TODAY)
    b = parse_locally("taxi 12, lunch 8,50 yesterday", today=TODAY)
    assert a == b


def test_full_stop_after_amount_is_not_a_separator():
    [tx] = parse_locally("Coffee 4.50.", today=TODAY).transactions
    assert tx.title == "Coffee"
    assert tx.amount == Decimal("4.50")
