from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from spendly.repositories.finance_repository import FinanceRepository


@dataclass(frozen=True)
class Principal:
    user_id: str
    is_pro: bool


def verify_principal(repo: FinanceRepository, user_id: Optional[str]) -> Optional[Principal]:
    """Known, active user or None. Privilege comes from the store, never the caller."""
    if not user_id or not user_id.strip():
        return None
    user = repo.get_user(user_id.strip())
    if user is None or not user.is_active:
        return None
    return Principal(user_id=user.id, is_pro=bool(user.is_pro))
