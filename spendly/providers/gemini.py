"""
Gemini generateContent with a bounded retry loop.

429/503 and timeouts are retried up to ``max_attempts`` times. The delay
honors a ``Retry-After`` header or a ``RetryInfo.retryDelay`` detail in the
error body, else linear backoff with jitter. The API is not incremental, so
the finished text is re-emitted in fixed-size chunks with a small delay.
"""

from __future__ import annotations

import asyncio
import email.utils as eut
import logging
import random
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from spendly.providers.errors import ProviderConfigError, ProviderHTTPError, ProviderNetworkError
from spendly.utils.request_ctx import get_request_id

_log = logging.getLogger(__name__)

PROVIDER = "gemini"
RETRY_STATUSES = {429, 503}
MAX_RETRY_DELAY_SEC = 30.0
EMPTY_SENTINEL = "LLM provider returned empty text candidates."

GENERATION_CONFIG = {
    "temperature": 0.3,
    "topP": 0.9,
    "candidateCount": 1,
    "maxOutputTokens": 1024,
}

Sleep = Callable[[float], Awaitable[Any]]


def _parse_retry_after(v: Optional[str]) -> Optional[float]:
    if not v:
        return None
    try:
        return float(v)
    except ValueError:
        try:
            dt = eut.parsedate_to_datetime(v)
            return max(0.0, dt.timestamp() - time.time())
        except (TypeError, ValueError):
            return None


def _retry_info_delay(res: httpx.Response) -> Optional[float]:
    """``error.details[].retryDelay`` ("12s", "0.5s") from a google.rpc.RetryInfo."""
    try:
        details = (res.json().get("error") or {}).get("details") or []
    except ValueError:
        return None
    for d in details:
        if str(d.get("@type", "")).endswith("RetryInfo") and d.get("retryDelay"):
            raw = str(d["retryDelay"]).strip().rstrip("s")
            try:
                return float(raw)
            except ValueError:
                return None
    return None


def retry_delay(res: Optional[httpx.Response], attempt: int, backoff: float) -> float:
    hinted = None
    if res is not None:
        hinted = _parse_retry_after(res.headers.get("Retry-After"))
        if hinted is None:
            hinted = _retry_info_delay(res)
    if hinted is not None and hinted >= 0:
        return min(MAX_RETRY_DELAY_SEC, hinted)
    wait = backoff * attempt
    return min(MAX_RETRY_DELAY_SEC, wait + random.uniform(0, max(0.0, wait * 0.3)))


def extract_text(data: Dict[str, Any]) -> str:
    """Joined text parts of the first candidate, or the empty-output sentinel."""
    candidates = data.get("candidates") or []
    parts = []
    if candidates:
        content = candidates[0].get("content") or {}
        parts = [p.get("text", "") for p in content.get("parts") or [] if isinstance(p, dict)]
    text = "".join(parts).strip()
    if text:
        return text
    blocked = (data.get("promptFeedback") or {}).get("blockReason")
    msg = EMPTY_SENTINEL
    if blocked:
        msg += f" Blocked: {blocked}."
    return f"{msg} Candidates: {len(candidates)}."


async def _chunked(text: str, size: int, delay: float) -> AsyncIterator[str]:
    size = max(1, size)
    for i in range(0, len(text), size):
        if i and delay > 0:
            await asyncio.sleep(delay)
        yield text[i : i + size]


async def open_gemini_stream(
    *,
    model: str,
    prompt: str,
    system: Optional[str] = None,
    api_key: Optional[str],
    base_url: str = "https://generativelanguage.googleapis.com/v1",
    max_attempts: int = 3,
    timeout: float = 30.0,
    backoff: float = 1.5,
    chunk_size: int = 40,
    chunk_delay: float = 0.06,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Sleep = asyncio.sleep,
) -> AsyncIterator[str]:
    if not api_key or not api_key.strip():
        raise ProviderConfigError(PROVIDER, "GOOGLE_API_KEY is not configured")

    url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
    parts = ([{"text": system}] if system else []) + [{"text": prompt}]
    payload = {"contents": [{"role": "user", "parts": parts}], "generationConfig": GENERATION_CONFIG}
    rid = get_request_id() or "-"
    attempts = max(1, int(max_attempts))
    _log.info("llm_stream.gemini start rid=%s model=%s attempts=%s", rid, model, attempts)

    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport) as client:
        attempt = 0
        while True:
            attempt += 1
            res: Optional[httpx.Response] = None
            try:
                res = await client.post(url, params={"key": api_key.strip()}, json=payload)
            except httpx.TimeoutException as exc:
                if attempt >= attempts:
                    _log.error("llm_stream.gemini timeout exhausted rid=%s attempts=%s", rid, attempt)
                    raise ProviderHTTPError(PROVIDER, f"timeout after {attempt} attempts", status=504) from exc
            except httpx.HTTPError as exc:
                _log.error("llm_stream.gemini connection error rid=%s error=%s", rid, exc)
                raise ProviderNetworkError(PROVIDER, f"request failed: {exc}") from exc

            if res is not None and res.status_code < 400:
                try:
                    data = res.json()
                except ValueError as exc:
                    raise ProviderHTTPError(PROVIDER, "invalid JSON body", status=res.status_code) from exc
                text = extract_text(data)
                _log.info("llm_stream.gemini success rid=%s attempt=%s chars=%s", rid, attempt, len(text))
                return _chunked(text, chunk_size, chunk_delay)

            if res is not None and res.status_code not in RETRY_STATUSES:
                body = res.text[:300]
                _log.error("llm_stream.gemini HTTP error rid=%s status=%s body=%s", rid, res.status_code, body)
                raise ProviderHTTPError(PROVIDER, f"HTTP {res.status_code}: {body}", status=res.status_code)

            if res is not None and attempt >= attempts:
                _log.error(
                    "llm_stream.gemini retries exhausted rid=%s status=%s attempts=%s",
                    rid, res.status_code, attempt,
                )
                raise ProviderHTTPError(
                    PROVIDER, f"HTTP {res.status_code} after {attempt} attempts", status=res.status_code
                )

            wait = retry_delay(res, attempt, backoff)
            _log.warning(
                "llm_stream.gemini retry rid=%s attempt=%s status=%s wait=%.2f",
                rid, attempt, res.status_code if res is not None else "timeout", wait,
            )
            await sleep(wait)
