from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from spendly.config import get_settings
from spendly.deps.services import get_stream_opener
from spendly.providers.errors import ProviderError
from spendly.services.routing import select_provider

log = logging.getLogger(__name__)

router = APIRouter(prefix="/llm", tags=["llm"])

PING_PROMPT = "Reply with the single word: pong"


@router.get("/health")
async def llm_health(
    probe: bool = Query(False, description="Send a short round-trip through the chosen provider"),
    opener=Depends(get_stream_opener),
):
    s = get_settings()
    available = s.available_providers()
    choice = select_provider(s.AI_PROVIDER, available, complex_hint=False)
    status = {p: ("configured" if p in available else "not_configured") for p in ("openai", "gemini")}
    out = {
        "ok": bool(available),
        "status": status,
        "selected": {"provider": choice.provider, "reason": choice.reason, "model": s.model_for(choice.provider)},
    }
    if not probe:
        return out

    model = s.model_for(choice.provider)
    try:
        chunks = await opener(choice.provider, model=model, prompt=PING_PROMPT, settings=s)
        text = "".join([piece async for piece in chunks])
    except ProviderError as exc:
        log.warning("llm_health.probe_failed provider=%s code=%s error=%s", choice.provider, exc.code, exc)
        out["ok"] = False
        out["probe"] = {"ok": False, "error": exc.code}
        return out
    out["probe"] = {"ok": bool(text.strip()), "chars": len(text)}
    return out
