"""In-memory records passed between pipeline stages (never persisted directly)."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

TxType = Literal["expense", "income"]
Cadence = Literal["weekly", "monthly"]


@dataclass(frozen=True)
class TxRecord:
    id: int
    title: str
    amount: Decimal
    type: str
    budget_folder_id: Optional[int]
    created_at: datetime

    @classmethod
    def from_orm(cls, row) -> "TxRecord":
        from spendly.utils.time import as_utc

        return cls(
            id=row.id,
            title=row.title or "",
            amount=Decimal(row.amount),
            type=row.type,
            budget_folder_id=row.budget_folder_id,
            created_at=as_utc(row.created_at),
        )


@dataclass(frozen=True)
class BudgetRecord:
    id: int
    name: str
    type: str = "expense"
    emoji: Optional[str] = None
    amount: Decimal = Decimal("0")

    @classmethod
    def from_orm(cls, row) -> "BudgetRecord":
        return cls(
            id=row.id,
            name=row.name,
            type=row.type,
            emoji=row.emoji,
            amount=Decimal(row.amount or 0),
        )


@dataclass(frozen=True)
class RecurringCandidate:
    title_pattern: str
    budget_folder_id: Optional[int]
    avg_amount: Decimal
    cadence: str
    next_due_date: str  # YYYY-MM-DD
    count: int


@dataclass
class UserContext:
    budgets: List[BudgetRecord] = field(default_factory=list)
    last_transactions: List[TxRecord] = field(default_factory=list)  # newest first
    last_month_txs: List[TxRecord] = field(default_factory=list)
    recurring_candidates: List[RecurringCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedTransaction:
    title: str
    amount: Decimal
    category_name: str
    date: str  # YYYY-MM-DD
    type: str = "expense"


@dataclass
class ParseResult:
    transactions: List[ParsedTransaction] = field(default_factory=list)
    requires_ai: bool = False
    unparsed_segments: List[str] = field(default_factory=list)
