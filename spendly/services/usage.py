"""
Usage accounting side channel.

Every assistant request that gets past verification writes exactly one
``ai_usage_logs`` row. Rows for streamed answers are written when the stream
ends (completed, canceled by the client, or failed mid-way), long after the
request-scoped session is gone, so the logger opens its own sessions.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spendly.metrics import assistant_stream_chars, assistant_usage_rows_total
from spendly.repositories.finance_repository import FinanceRepository

log = logging.getLogger(__name__)


@dataclass
class UsageMeta:
    user_id: str
    provider: str
    model: str
    request_type: str = "chat"
    prompt_length: int = 0
    intent: Optional[str] = None
    period: Optional[str] = None
    bypass_used: bool = False


class UsageLogger:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def record(
        self,
        meta: UsageMeta,
        *,
        success: bool,
        response_length: int = 0,
        error_message: Optional[str] = None,
        block_reason: Optional[str] = None,
    ) -> None:
        db = self._session_factory()
        try:
            FinanceRepository(db).insert_usage(
                user_id=meta.user_id,
                provider=meta.provider,
                model=meta.model,
                request_type=meta.request_type,
                prompt_length=meta.prompt_length,
                response_length=response_length,
                success=success,
                error_message=error_message[:1000] if error_message else None,
                block_reason=block_reason,
                intent=meta.intent,
                period=meta.period,
                bypass_used=meta.bypass_used,
            )
            assistant_usage_rows_total.labels(
                request_type=meta.request_type, success=str(success).lower()
            ).inc()
        except SQLAlchemyError:
            db.rollback()
            log.exception(
                "usage.write_failed user=%s provider=%s block_reason=%s",
                meta.user_id, meta.provider, block_reason,
            )
        finally:
            db.close()

    def count_since(self, user_id: str, since: datetime) -> int:
        db = self._session_factory()
        try:
            return FinanceRepository(db).count_usage_since(user_id, since)
        finally:
            db.close()


async def stream_with_usage(
    chunks: AsyncIterator[str], meta: UsageMeta, logger: UsageLogger
) -> AsyncIterator[str]:
    """Pass chunks through, then write one row for how the stream ended."""
    chars = 0
    block_reason: Optional[str] = "client_canceled"
    error: Optional[str] = None
    try:
        async for piece in chunks:
            chars += len(piece)
            yield piece
        block_reason = None
    except (asyncio.CancelledError, GeneratorExit):
        block_reason = "client_canceled"
        raise
    except Exception as exc:
        block_reason = "provider_error"
        error = str(exc)
        log.error("usage.stream_failed user=%s provider=%s error=%s", meta.user_id, meta.provider, exc)
        raise
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as exc:
                log.warning("usage.stream_close_failed provider=%s error=%s", meta.provider, exc)
        assistant_stream_chars.observe(chars)
        logger.record(
            meta,
            success=block_reason is None,
            response_length=chars,
            error_message=error,
            block_reason=block_reason,
        )
