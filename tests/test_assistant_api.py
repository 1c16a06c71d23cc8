from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from freezegun import freeze_time

from spendly.providers.errors import ProviderHTTPError
from spendly.services.actions import MSG_ADDED, MSG_AMOUNT_INVALID, MSG_CANCELED, MSG_RULE_LIMIT, MSG_RULE_SAVED
from spendly.services.assistant import MSG_PROVIDER_FAILED
from spendly.services.commands import ADD_FORMAT_HINT
from spendly.services.prompt_builder import DEFAULT_SYSTEM, PROMPT_VERSION
from spendly.services.usage import UsageMeta


@pytest.fixture(autouse=True)
def _frozen_now():
    # Wednesday; this week starts 2026-10-12
    with freeze_time("2026-10-14 12:00:00", real_asyncio=True):
        yield


def ask(client, user_id, message="", headers=None, **extra):
    return client.post("/assistant", json={"userId": user_id, "message": message, **extra}, headers=headers or {})


def utc(month, day, hour=10):
    return datetime(2026, month, day, hour, tzinfo=timezone.utc)


# --- canonical bypass ------------------------------------------------------


def test_empty_last_week_answered_without_provider(client, repo, user, budgets, add_tx, fake_opener):
    add_tx(user.id, "Market", "40", utc(9, 10), budgets["Groceries"])

    res = ask(client, user.id, "How much did I spend last week?")

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["kind"] == "canonical"
    assert body["period"] == "lastWeek"
    assert body["text"] == "No expenses recorded last week."
    assert body["totals"] == {"expenses": 0.0}
    assert body["meta"]["promptVersion"] == PROMPT_VERSION
    assert res.headers["X-Bypass"] == "true"
    assert res.headers["X-Provider"] == "canonical"
    assert res.headers["X-Period"] == "lastWeek"
    assert res.headers["X-Currency"] == "USD"
    assert res.headers["X-Request-Id"]
    assert fake_opener.calls == []

    [row] = repo.usage_rows(user.id)
    assert row.bypass_used is True
    assert row.success is True
    assert row.provider == "canonical"
    assert row.period == "lastWeek"


def test_canonical_reply_localized_for_russian(client, user, budgets, fake_opener):
    res = ask(client, user.id, "Сколько я потратил за эту неделю?", headers={"Accept-Language": "ru-RU,ru;q=0.9"})
    assert res.status_code == 200
    assert res.json()["text"] == "За эту неделю расходов не найдено."
    assert res.headers["X-Locale"] == "ru-RU"
    assert res.headers["X-Currency"] == "RUB"


# --- provider path ---------------------------------------------------------


def test_provider_stream_with_headers_and_usage_row(client, repo, user, budgets, add_tx, fake_opener):
    add_tx(user.id, "Market", "40", utc(10, 13), budgets["Groceries"])

    res = ask(client, user.id, "How much did I spend this week?")

    assert res.status_code == 200
    assert res.text == "Hello there"
    assert res.headers["content-type"].startswith("text/plain")
    assert res.headers["X-Provider"] == "gemini"
    assert res.headers["X-Model"] == "gemini-2.5-flash"
    assert res.headers["X-Bypass"] == "false"
    assert res.headers["X-Period"] == "thisWeek"

    [call] = fake_opener.calls
    assert call["system"] == DEFAULT_SYSTEM
    assert call["prompt"].endswith("User: How much did I spend this week?")
    assert "TotalThisWeek: $40.00." in call["prompt"]
    assert fake_opener.closed

    [row] = repo.usage_rows(user.id)
    assert row.success is True
    assert row.response_length == len("Hello there")
    assert row.provider == "gemini"
    assert row.request_type == "chat"


def test_preferred_provider_from_env(client, monkeypatch, user, fake_opener):
    monkeypatch.setenv("AI_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    res = ask(client, user.id, "tell me something about my money")
    assert res.headers["X-Provider"] == "openai"
    assert res.headers["X-Model"] == "gpt-4-turbo"
    assert fake_opener.calls[0]["provider"] == "openai"


def test_provider_failure_returns_500_and_logs_row(client, repo, user, fake_opener):
    fake_opener.error = ProviderHTTPError("gemini", "HTTP 429 after 3 attempts", status=429)

    res = ask(client, user.id, "tell me something about my money")

    assert res.status_code == 500
    assert res.json() == {"error": "provider_rate_limited", "message": MSG_PROVIDER_FAILED}
    [row] = repo.usage_rows(user.id)
    assert row.success is False
    assert row.block_reason == "provider_error"


# --- rejections ------------------------------------------------------------


def test_unknown_user_rejected_without_usage_row(client, repo, fake_opener):
    res = ask(client, "ghost", "hello")
    assert res.status_code == 401
    assert res.json()["error"] == "unauthorized"
    assert repo.usage_rows("ghost") == []


def test_inactive_user_rejected(client, make_user, fake_opener):
    make_user("u-off", is_active=False)
    assert ask(client, "u-off", "hello").status_code == 401


def test_empty_message_rejected(client, repo, user, fake_opener):
    res = ask(client, user.id, "   ")
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_request"
    assert repo.usage_rows(user.id) == []


def test_missing_user_id_is_a_400(client):
    res = client.post("/assistant", json={"message": "hi"})
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_request"


def test_daily_limit_blocks_free_user(client, monkeypatch, repo, user, usage_logger, fake_opener):
    monkeypatch.setenv("FREE_DAILY_LIMIT", "2")
    for _ in range(2):
        usage_logger.record(UsageMeta(user_id=user.id, provider="gemini", model="m"), success=True)

    res = ask(client, user.id, "hello", enableLimits=True)

    assert res.status_code == 429
    assert res.json() == {
        "error": "limit_reached",
        "message": "Daily limit reached (2 requests). Please try again tomorrow.",
    }
    assert res.headers["X-Daily-Limit"] == "2"
    assert fake_opener.calls == []
    rows = repo.usage_rows(user.id)
    assert len(rows) == 3
    assert rows[-1].block_reason == "limit"
    assert rows[-1].success is False


def test_daily_limit_ignores_pro_users(client, monkeypatch, make_user, usage_logger, fake_opener):
    monkeypatch.setenv("FREE_DAILY_LIMIT", "1")
    pro = make_user("u-pro", is_pro=True)
    usage_logger.record(UsageMeta(user_id=pro.id, provider="gemini", model="m"), success=True)

    res = ask(client, pro.id, "hello", enableLimits=True, isPro=False)

    assert res.status_code == 200
    assert len(fake_opener.calls) == 1


# --- commands and pending actions ------------------------------------------


def test_add_command_proposes_action(client, repo, user, budgets, fake_opener):
    res = ask(client, user.id, 'Add "Milk" 12.99 to groceries budget')

    assert res.status_code == 200
    body = res.json()
    assert body["kind"] == "action"
    assert body["action"] == {
        "type": "add_transaction",
        "title": "Milk",
        "amount": 12.99,
        "budget_folder_id": budgets["Groceries"].id,
        "budget_name": "Groceries",
    }
    assert body["message"] == 'Confirm adding $12.99 "Milk" to Groceries? Reply Yes/No.'
    assert fake_opener.calls == []
    [row] = repo.usage_rows(user.id)
    assert row.request_type == "action"


def test_add_command_unknown_budget(client, user, budgets, fake_opener):
    res = ask(client, user.id, "add 5 to Travel budget")
    assert res.json() == {
        "kind": "message",
        "message": 'Budget "Travel" was not found. Please check the name or create it.',
        "ok": None,
    }


def test_malformed_add_gets_format_hint(client, user, budgets, fake_opener):
    res = ask(client, user.id, "add coffee please")
    assert res.json()["message"] == ADD_FORMAT_HINT
    assert fake_opener.calls == []


def test_confirm_add_inserts_transaction(client, repo, user, budgets, fake_opener):
    payload = {"title": "Milk", "amount": 12.99, "budget_folder_id": budgets["Groceries"].id}

    res = ask(client, user.id, confirm=True, actionType="add_transaction", actionPayload=payload)

    assert res.status_code == 200
    assert res.json() == {"kind": "message", "message": MSG_ADDED, "ok": True}
    [tx] = repo.recent_transactions(user.id, 10)
    assert tx.title == "Milk"
    assert tx.amount == Decimal("12.99")
    assert tx.type == "expense"
    assert fake_opener.calls == []


def test_confirm_add_with_zero_amount(client, repo, user, budgets, fake_opener):
    payload = {"type": "add_transaction", "title": "Milk", "amount": 0, "budget_folder_id": budgets["Groceries"].id}
    res = ask(client, user.id, confirm=True, actionPayload=payload)
    assert res.json() == {"kind": "message", "message": MSG_AMOUNT_INVALID, "ok": False}
    assert repo.recent_transactions(user.id, 10) == []


def test_cancel_discards_action(client, repo, user, budgets, fake_opener):
    payload = {"type": "add_transaction", "title": "Milk", "amount": 3, "budget_folder_id": budgets["Groceries"].id}
    res = ask(client, user.id, cancel=True, actionPayload=payload)
    assert res.json()["message"] == MSG_CANCELED
    assert repo.recent_transactions(user.id, 10) == []


def test_invalid_pending_action_is_a_400(client, user, fake_opener):
    res = ask(client, user.id, confirm=True, actionPayload={"type": "add_transaction", "amount": "abc"})
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_action"


def test_save_recurring_flow(client, repo, user, budgets, monthly_netflix, fake_opener):
    res = ask(client, user.id, "save as recurring netflix")
    body = res.json()
    assert body["kind"] == "action"
    action = body["action"]
    assert action["type"] == "save_recurring_rule"
    assert action["title_pattern"] == "netflix"
    assert action["cadence"] == "monthly"
    assert action["next_due_date"] == "2026-10-31"
    assert action["budget_folder_id"] == budgets["Subscriptions"].id

    res = ask(client, user.id, confirm=True, actionPayload=action)
    assert res.json() == {"kind": "message", "message": MSG_RULE_SAVED, "ok": True}
    [rule] = repo.list_rules(user.id)
    assert rule.title_pattern == "netflix"
    assert rule.avg_amount == Decimal("15.99")
    assert rule.next_due_date == date(2026, 10, 31)


def test_save_recurring_respects_free_cap(client, repo, user, budgets, fake_opener):
    for pattern in ("rent", "gym"):
        repo.upsert_recurring_rule(user.id, pattern, None, Decimal("10"), "monthly", date(2026, 11, 1))
    action = {
        "type": "save_recurring_rule",
        "title_pattern": "netflix",
        "avg_amount": 15.99,
        "cadence": "monthly",
        "next_due_date": "2026-10-31",
    }
    res = ask(client, user.id, confirm=True, actionPayload=action)
    assert res.json() == {"kind": "message", "message": MSG_RULE_LIMIT.format(limit=2), "ok": False}
    assert len(repo.list_rules(user.id)) == 2


def test_parse_endpoint_uses_local_parser(client):
    res = client.post("/assistant/parse", json={"text": "taxi 12, lunch 8,50"})
    assert res.status_code == 200
    body = res.json()
    assert body["requires_ai"] is False
    assert [t["amount"] for t in body["transactions"]] == [12.0, 8.5]
    assert body["transactions"][0]["date"] == "2026-10-14"
