import os
from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(name, default)


def _alias(primary: str, *fallbacks: str, default: str | None = None) -> str | None:
    """
    Get env var with fallback aliases. Primary name wins if present.
    Example: _alias("GOOGLE_API_KEY", "GEMINI_API_KEY")
    """
    val = _env(primary)
    if val:
        return val
    for fb in fallbacks:
        v = _env(fb)
        if v:
            return v
    return default


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./data/spendly.db"
    ENV: str = Field(default_factory=lambda: _alias("ENV", "APP_ENV", default="dev"))  # dev | staging | prod

    # Provider selection & credentials
    AI_PROVIDER: str = ""  # "openai" | "gemini" | "" (auto)
    OPENAI_API_KEY: str | None = None
    GOOGLE_API_KEY: str | None = Field(default_factory=lambda: _alias("GOOGLE_API_KEY", "GEMINI_API_KEY"))
    OPENAI_MODEL: str = "gpt-4-turbo"
    GEMINI_MODEL: str = "gemini-2.5-flash"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1"

    # Gemini retry loop
    GEMINI_MAX_RETRIES: int = 3
    GEMINI_TIMEOUT_SEC: float = 30.0
    GEMINI_BACKOFF_SEC: float = 1.5

    # Simulated incremental delivery for non-streaming providers
    STREAM_CHUNK_SIZE: int = 40
    STREAM_CHUNK_DELAY_SEC: float = 0.06

    # Pipeline limits
    MAX_PROMPT_CHARS: int = 4000
    FREE_DAILY_LIMIT: int = 10
    FREE_RECURRING_RULES_LIMIT: int = 2
    CONTEXT_TX_LIMIT: int = 200
    RECURRING_WINDOW_DAYS: int = 120
    USE_RECURRING_MEMORY: bool = False

    # Insights sibling feature
    INSIGHTS_CACHE_TTL_SEC: int = 3600

    # Optional JSON file overriding keyword tables (intent/period/category)
    ASSISTANT_KEYWORDS_FILE: str | None = None

    LLM_DEBUG: bool = False
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("GOOGLE_API_KEY")
    @classmethod
    def _gemini_key_alias(cls, v: str | None) -> str | None:
        # GOOGLE_API_KEY set but blank still falls back to GEMINI_API_KEY
        return v if v and v.strip() else _alias("GOOGLE_API_KEY", "GEMINI_API_KEY")

    def available_providers(self) -> set[str]:
        out: set[str] = set()
        if self.OPENAI_API_KEY and self.OPENAI_API_KEY.strip():
            out.add("openai")
        if self.GOOGLE_API_KEY and self.GOOGLE_API_KEY.strip():
            out.add("gemini")
        return out

    def model_for(self, provider: str) -> str:
        return self.OPENAI_MODEL if provider == "openai" else self.GEMINI_MODEL


settings = Settings()


def get_settings() -> Settings:
    """Fresh settings snapshot (env is re-read so tests can monkeypatch)."""
    return Settings()
