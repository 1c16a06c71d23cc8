from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from spendly.config import get_settings
from spendly.models import BudgetRecord, TxRecord, UserContext
from spendly.repositories.finance_repository import FinanceRepository
from spendly.services.recurring import find_recurring_candidates
from spendly.services.stats import filter_by_date_range, get_last_month_range
from spendly.utils.time import utc_now

log = logging.getLogger(__name__)


def load_budgets(repo: FinanceRepository, user_id: str) -> List[BudgetRecord]:
    """Budgets only, ordered by name (enough for command parsing)."""
    return [BudgetRecord.from_orm(b) for b in repo.list_budgets(user_id)]


def prepare_user_context(
    repo: FinanceRepository,
    user_id: str,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
    use_recurring: Optional[bool] = None,
) -> UserContext:
    """Budgets plus the newest ``limit`` transactions.

    ``last_month_txs`` is derived from that window only; older rows of the
    previous month are not fetched.
    """
    settings = get_settings()
    limit = limit if limit is not None else settings.CONTEXT_TX_LIMIT
    use_recurring = settings.USE_RECURRING_MEMORY if use_recurring is None else use_recurring
    now = now or utc_now()

    budgets = load_budgets(repo, user_id)
    txs = [TxRecord.from_orm(t) for t in repo.recent_transactions(user_id, limit)]
    start, end = get_last_month_range(now)
    last_month = filter_by_date_range(txs, start, end)

    candidates = []
    if use_recurring:
        candidates = find_recurring_candidates(
            txs, window_days=settings.RECURRING_WINDOW_DAYS, now=now
        )
    log.debug(
        "context.built user=%s budgets=%d txs=%d last_month=%d recurring=%d",
        user_id,
        len(budgets),
        len(txs),
        len(last_month),
        len(candidates),
    )
    return UserContext(
        budgets=budgets,
        last_transactions=txs,
        last_month_txs=last_month,
        recurring_candidates=candidates,
    )
