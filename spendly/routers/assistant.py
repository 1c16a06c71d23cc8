from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from spendly.deps.services import get_repo, get_stream_opener, get_usage_logger
from spendly.repositories.finance_repository import FinanceRepository
from spendly.schemas.assistant import (
    ActionReply,
    AssistantRequest,
    AssistantResult,
    CanonicalReply,
    MessageReply,
    RejectedReply,
    StreamReply,
)
from spendly.services.assistant import AssistantService
from spendly.services.local_parser import parse_locally
from spendly.services.usage import UsageLogger

log = logging.getLogger(__name__)

router = APIRouter(prefix="/assistant", tags=["assistant"])


def render_result(result: AssistantResult):
    """Map a pipeline result onto an HTTP response."""
    reply, headers = result.reply, result.meta.headers()
    if isinstance(reply, StreamReply):
        return StreamingResponse(
            reply.chunks, media_type="text/plain; charset=utf-8", headers=headers
        )
    if isinstance(reply, RejectedReply):
        return JSONResponse(
            {"error": reply.error, "message": reply.message},
            status_code=reply.status_code,
            headers=headers,
        )
    if isinstance(reply, (ActionReply, MessageReply, CanonicalReply)):
        return JSONResponse(reply.model_dump(mode="json"), headers=headers)
    raise TypeError(f"unexpected reply {type(reply).__name__}")


@router.post("")
async def assistant(
    body: AssistantRequest,
    accept_language: Optional[str] = Header(None),
    repo: FinanceRepository = Depends(get_repo),
    usage: UsageLogger = Depends(get_usage_logger),
    opener=Depends(get_stream_opener),
):
    service = AssistantService(repo, usage, stream_opener=opener)
    result = await service.handle(body, accept_language=accept_language)
    return render_result(result)


class ParseRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)
    locale: Optional[str] = None


@router.post("/parse")
def parse(body: ParseRequest):
    """Local quick-add parser; no model call, nothing persisted."""
    result = parse_locally(body.text, locale=body.locale)
    return {
        "transactions": [
            {
                "title": t.title,
                "amount": float(t.amount),
                "category_name": t.category_name,
                "date": t.date,
                "type": t.type,
            }
            for t in result.transactions
        ],
        "requires_ai": result.requires_ai,
        "unparsed_segments": list(result.unparsed_segments),
    }
