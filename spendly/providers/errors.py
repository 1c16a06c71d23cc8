from __future__ import annotations

from typing import Optional


class ProviderError(Exception):
    """Base class for failures reaching an LLM provider."""

    code = "provider_error"

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderConfigError(ProviderError):
    """Provider selected but its credentials are missing."""

    code = "provider_unavailable"


class ProviderHTTPError(ProviderError):
    """Non-2xx answer (after retries, where the provider retries)."""

    @property
    def code(self) -> str:  # type: ignore[override]
        if self.status == 429:
            return "provider_rate_limited"
        if self.status in (502, 503, 504):
            return "provider_unavailable"
        return "provider_error"


class ProviderNetworkError(ProviderError):
    """Connection refused, DNS failure or timeout."""

    code = "provider_unavailable"
