from datetime import date
from decimal import Decimal


def rule_body(pattern="Netflix #1234", amount=15.99, **kw):
    return {
        "title_pattern": pattern,
        "avg_amount": amount,
        "cadence": "monthly",
        "next_due_date": "2026-11-01",
        **kw,
    }


def test_create_list_patch_delete(client, user, budgets):
    params = {"userId": user.id}
    res = client.post("/recurring-rules", params=params, json=rule_body(budget_folder_id=budgets["Subscriptions"].id))
    assert res.status_code == 200, res.text
    created = res.json()
    assert created["title_pattern"] == "netflix"
    assert created["avg_amount"] == 15.99
    assert created["active"] is True

    listed = client.get("/recurring-rules", params=params).json()
    assert listed["total"] == 1
    assert listed["items"][0]["id"] == created["id"]

    res = client.patch(f"/recurring-rules/{created['id']}", params=params, json={"cadence": "weekly", "active": False})
    assert res.status_code == 200
    assert res.json()["cadence"] == "weekly"
    assert res.json()["active"] is False

    res = client.delete(f"/recurring-rules/{created['id']}", params=params)
    assert res.json() == {"ok": True, "deleted": created["id"]}
    assert client.get("/recurring-rules", params=params).json()["total"] == 0


def test_upsert_same_pattern_updates_in_place(client, repo, user):
    params = {"userId": user.id}
    client.post("/recurring-rules", params=params, json=rule_body("Netflix"))
    client.post("/recurring-rules", params=params, json=rule_body("netflix!", amount=17.99))
    [rule] = repo.list_rules(user.id)
    assert rule.avg_amount == Decimal("17.99")


def test_free_plan_cap_returns_403(client, user):
    params = {"userId": user.id}
    for name in ("Rent", "Gym"):
        assert client.post("/recurring-rules", params=params, json=rule_body(name)).status_code == 200
    res = client.post("/recurring-rules", params=params, json=rule_body("Spotify"))
    assert res.status_code == 403
    assert res.json()["error"] == "limitReached"
    # updating an existing pattern is still allowed at the cap
    assert client.post("/recurring-rules", params=params, json=rule_body("rent", amount=950)).status_code == 200


def test_pro_user_has_no_cap(client, repo, make_user):
    pro = make_user("u-pro", is_pro=True)
    for name in ("Rent", "Gym", "Spotify"):
        assert client.post("/recurring-rules", params={"userId": pro.id}, json=rule_body(name)).status_code == 200
    assert len(repo.list_rules(pro.id)) == 3


def test_rules_are_scoped_to_user(client, repo, user, make_user):
    other = make_user("u-other")
    rule = repo.upsert_recurring_rule(other.id, "rent", None, Decimal("900"), "monthly", date(2026, 11, 1))
    assert client.get("/recurring-rules", params={"userId": user.id}).json()["total"] == 0
    assert client.delete(f"/recurring-rules/{rule.id}", params={"userId": user.id}).status_code == 404
    assert client.patch(f"/recurring-rules/{rule.id}", params={"userId": user.id}, json={"active": False}).status_code == 404


def test_validation_and_auth(client, user, budgets):
    assert client.get("/recurring-rules", params={"userId": "ghost"}).status_code == 401
    assert client.post("/recurring-rules", params={"userId": user.id}, json=rule_body(amount=0)).status_code == 400
    res = client.post("/recurring-rules", params={"userId": user.id}, json=rule_body(budget_folder_id=9999))
    assert res.status_code == 404
