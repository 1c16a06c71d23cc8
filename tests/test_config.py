from spendly.config import get_settings


def test_gemini_key_alias_read_per_instance(monkeypatch):
    assert get_settings().GOOGLE_API_KEY is None
    monkeypatch.setenv("GEMINI_API_KEY", "gm-key")
    s = get_settings()
    assert s.GOOGLE_API_KEY == "gm-key"
    assert "gemini" in s.available_providers()


def test_primary_google_key_wins(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "gm-key")
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
    assert get_settings().GOOGLE_API_KEY == "g-key"


def test_env_falls_back_to_app_env(monkeypatch):
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.setenv("APP_ENV", "prod")
    assert get_settings().ENV == "prod"
