from spendly.providers.errors import ProviderConfigError


def test_llm_health_reports_configuration(client, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
    body = client.get("/llm/health").json()
    assert body["ok"] is True
    assert body["status"] == {"openai": "not_configured", "gemini": "configured"}
    assert body["selected"]["provider"] == "gemini"
    assert "probe" not in body


def test_llm_health_probe_round_trip(client, fake_opener):
    fake_opener.chunks = ["po", "ng"]
    body = client.get("/llm/health", params={"probe": 1}).json()
    assert body["probe"] == {"ok": True, "chars": 4}
    assert fake_opener.calls[0]["prompt"].endswith("pong")


def test_llm_health_probe_failure(client, fake_opener):
    fake_opener.error = ProviderConfigError("gemini", "GOOGLE_API_KEY is not configured")
    body = client.get("/llm/health", params={"probe": 1}).json()
    assert body["ok"] is False
    assert body["probe"] == {"ok": False, "error": "provider_unavailable"}


def test_metrics_exposition(client, user, fake_opener):
    client.post("/assistant", json={"userId": user.id, "message": "hello"})
    res = client.get("/metrics")
    assert res.status_code == 200
    assert "assistant_requests_total" in res.text
    assert "assistant_usage_rows_total" in res.text


def test_request_id_propagated(client):
    res = client.get("/healthz", headers={"X-Request-ID": "rid-123"})
    assert res.headers["X-Request-ID"] == "rid-123"
    assert client.get("/healthz").headers["X-Request-ID"]
