"""
Uniform entry point over the concrete providers.

``open_text_stream`` performs the network request before returning, so the
orchestrator can turn any failure into a clean 500 instead of a broken
partial stream.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import httpx

from spendly.config import Settings, get_settings
from spendly.metrics import assistant_provider_calls_total
from spendly.providers.errors import ProviderConfigError, ProviderError
from spendly.providers.gemini import Sleep, open_gemini_stream
from spendly.providers.openai_stream import open_openai_stream

_log = logging.getLogger(__name__)


async def open_text_stream(
    provider: str,
    *,
    model: str,
    prompt: str,
    system: Optional[str] = None,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[Sleep] = None,
) -> AsyncIterator[str]:
    s = settings or get_settings()
    if s.LLM_DEBUG:
        _log.debug(
            "llm_stream.open provider=%s model=%s prompt_chars=%s system_chars=%s sample=%r",
            provider, model, len(prompt), len(system or ""), prompt[:200],
        )
    try:
        if provider == "openai":
            stream = await open_openai_stream(
                model=model,
                prompt=prompt,
                system=system,
                api_key=s.OPENAI_API_KEY,
                base_url=s.OPENAI_BASE_URL,
                transport=transport,
            )
        elif provider == "gemini":
            kwargs = {}
            if sleep is not None:
                kwargs["sleep"] = sleep
            stream = await open_gemini_stream(
                model=model,
                prompt=prompt,
                system=system,
                api_key=s.GOOGLE_API_KEY,
                base_url=s.GEMINI_BASE_URL,
                max_attempts=s.GEMINI_MAX_RETRIES,
                timeout=s.GEMINI_TIMEOUT_SEC,
                backoff=s.GEMINI_BACKOFF_SEC,
                chunk_size=s.STREAM_CHUNK_SIZE,
                chunk_delay=s.STREAM_CHUNK_DELAY_SEC,
                transport=transport,
                **kwargs,
            )
        else:
            raise ProviderConfigError(provider, f"unknown provider {provider!r}")
    except ProviderConfigError:
        assistant_provider_calls_total.labels(provider=provider, outcome="config").inc()
        raise
    except ProviderError:
        assistant_provider_calls_total.labels(provider=provider, outcome="error").inc()
        raise
    assistant_provider_calls_total.labels(provider=provider, outcome="ok").inc()
    return stream
