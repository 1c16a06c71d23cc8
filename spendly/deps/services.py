"""FastAPI dependencies wiring repositories and services to a request.

Tests swap any of these through ``app.dependency_overrides``.
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from spendly.config import get_settings
from spendly.db import get_db, get_session_factory
from spendly.providers.gateway import open_text_stream
from spendly.repositories.finance_repository import FinanceRepository
from spendly.services.auth import Principal, verify_principal
from spendly.services.usage import UsageLogger
from spendly.utils.ttl_cache import TTLCache


def get_repo(db: Session = Depends(get_db)) -> FinanceRepository:
    return FinanceRepository(db)


def get_usage_logger() -> UsageLogger:
    return UsageLogger(get_session_factory())


def get_stream_opener():
    return open_text_stream


@lru_cache(maxsize=1)
def get_insights_cache() -> TTLCache:
    return TTLCache(get_settings().INSIGHTS_CACHE_TTL_SEC)


def require_principal(
    user_id: str = Query(..., alias="userId", min_length=1, max_length=64),
    repo: FinanceRepository = Depends(get_repo),
) -> Principal:
    principal = verify_principal(repo, user_id)
    if principal is None:
        raise HTTPException(401, "Unknown or inactive user.")
    return principal
