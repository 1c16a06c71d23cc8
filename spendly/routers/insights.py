from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from spendly.deps.services import get_insights_cache, get_repo, require_principal
from spendly.repositories.finance_repository import FinanceRepository
from spendly.schemas.insights import SpendingInsights
from spendly.services.auth import Principal
from spendly.services.insights import InsightsService
from spendly.utils.time import as_utc
from spendly.utils.ttl_cache import TTLCache

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("", response_model=SpendingInsights)
def insights(
    start: datetime = Query(...),
    end: datetime = Query(...),
    principal: Principal = Depends(require_principal),
    repo: FinanceRepository = Depends(get_repo),
    cache: TTLCache = Depends(get_insights_cache),
):
    start, end = as_utc(start), as_utc(end)
    if end < start:
        raise HTTPException(400, "end must not be before start")
    return InsightsService(repo, cache).get(principal.user_id, start, end)
