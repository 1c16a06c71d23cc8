"""
OpenAI chat-completions streaming (SSE).

The HTTP request and status check happen inside ``open_openai_stream`` so a
missing key, refused connection or non-2xx answer raises before the caller
sees a single chunk. The returned iterator owns the response and client and
closes both when exhausted or closed early.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Dict, List, Optional

import httpx

from spendly.providers.errors import ProviderConfigError, ProviderHTTPError, ProviderNetworkError
from spendly.providers.gemini import EMPTY_SENTINEL
from spendly.utils.request_ctx import get_request_id

_log = logging.getLogger(__name__)

PROVIDER = "openai"


def _messages(prompt: str, system: Optional[str]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    if system:
        out.append({"role": "system", "content": system})
    out.append({"role": "user", "content": prompt})
    return out


def _chat_url(base: str) -> str:
    root = base.rstrip("/")
    if not root.endswith("/v1"):
        root = f"{root}/v1"
    return f"{root}/chat/completions"


async def _iter_sse(
    res: httpx.Response, client: httpx.AsyncClient, rid: str
) -> AsyncIterator[str]:
    emitted = 0
    try:
        async for line in res.aiter_lines():
            if not line or line.startswith(":"):
                continue
            if not line.startswith("data:"):
                continue
            data_str = line[5:].strip()
            if data_str == "[DONE]":
                break
            try:
                chunk = json.loads(data_str)
            except json.JSONDecodeError:
                continue
            choices = chunk.get("choices") or [{}]
            content = (choices[0].get("delta") or {}).get("content")
            if content:
                emitted += len(content)
                yield content
        if emitted == 0:
            _log.warning("llm_stream.openai empty rid=%s", rid)
            yield EMPTY_SENTINEL
        _log.info("llm_stream.openai success rid=%s chars=%s", rid, emitted)
    except httpx.HTTPError as exc:
        _log.error("llm_stream.openai stream error rid=%s error=%s", rid, exc)
        raise ProviderNetworkError(PROVIDER, f"stream interrupted: {exc}") from exc
    finally:
        await res.aclose()
        await client.aclose()


async def open_openai_stream(
    *,
    model: str,
    prompt: str,
    system: Optional[str] = None,
    api_key: Optional[str],
    base_url: str = "https://api.openai.com/v1",
    timeout: float = 60.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[str]:
    if not api_key or not api_key.strip():
        raise ProviderConfigError(PROVIDER, "OPENAI_API_KEY is not configured")

    url = _chat_url(base_url)
    payload = {"model": model, "stream": True, "messages": _messages(prompt, system)}
    headers = {"Authorization": f"Bearer {api_key.strip()}", "Content-Type": "application/json"}
    rid = get_request_id() or "-"
    _log.info("llm_stream.openai start rid=%s model=%s url=%s", rid, model, url)

    client = httpx.AsyncClient(
        timeout=httpx.Timeout(10.0, read=timeout), transport=transport
    )
    try:
        res = await client.send(client.build_request("POST", url, json=payload, headers=headers), stream=True)
    except httpx.HTTPError as exc:
        await client.aclose()
        _log.error("llm_stream.openai connection error rid=%s url=%s error=%s", rid, url, exc)
        raise ProviderNetworkError(PROVIDER, f"request failed: {exc}") from exc

    if res.status_code >= 400:
        body = (await res.aread()).decode("utf-8", "replace")[:300]
        await res.aclose()
        await client.aclose()
        _log.error(
            "llm_stream.openai HTTP error rid=%s status=%s body=%s", rid, res.status_code, body
        )
        raise ProviderHTTPError(PROVIDER, f"HTTP {res.status_code}: {body}", status=res.status_code)

    return _iter_sse(res, client, rid)
