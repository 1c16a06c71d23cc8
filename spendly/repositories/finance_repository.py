"""
Finance repository: every read and write the assistant performs against the
relational store goes through here (budgets, transactions, recurring rules,
usage logs, users).

Handles the dialect difference for upserts (Postgres vs SQLite for tests).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from spendly.orm_models import AiUsageLog, BudgetFolder, RecurringRule, Transaction, User
from spendly.utils.time import utc_now

RULE_PATCH_FIELDS = ("budget_folder_id", "avg_amount", "cadence", "next_due_date", "active")


def is_postgres(db: Session) -> bool:
    """Check if connected to Postgres (vs SQLite)."""
    return db.bind.dialect.name.startswith("postgres")  # type: ignore


class FinanceRepository:
    """Repository for assistant-facing finance data."""

    def __init__(self, db: Session):
        self.db = db
        self._is_postgres = is_postgres(db)

    # --- users ---------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    # --- budgets -------------------------------------------------------------

    def list_budgets(self, user_id: str) -> List[BudgetFolder]:
        stmt = (
            select(BudgetFolder)
            .where(BudgetFolder.user_id == user_id)
            .order_by(BudgetFolder.name.asc(), BudgetFolder.id.asc())
        )
        return list(self.db.scalars(stmt))

    def get_budget(self, user_id: str, budget_id: int) -> Optional[BudgetFolder]:
        stmt = select(BudgetFolder).where(
            BudgetFolder.id == budget_id, BudgetFolder.user_id == user_id
        )
        return self.db.scalars(stmt).first()

    # --- transactions --------------------------------------------------------

    def recent_transactions(self, user_id: str, limit: int) -> List[Transaction]:
        """Newest first, capped at ``limit`` rows."""
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def transactions_between(
        self, user_id: str, start: datetime, end: datetime, inclusive_end: bool = False
    ) -> List[Transaction]:
        upper = Transaction.created_at <= end if inclusive_end else Transaction.created_at < end
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.created_at >= start,
                upper,
            )
            .order_by(Transaction.created_at.asc(), Transaction.id.asc())
        )
        return list(self.db.scalars(stmt))

    def insert_transaction(
        self,
        user_id: str,
        title: str,
        amount: Decimal,
        type: str,
        budget_folder_id: Optional[int],
        created_at: Optional[datetime] = None,
    ) -> Transaction:
        txn = Transaction(
            user_id=user_id,
            title=title,
            amount=amount,
            type=type,
            budget_folder_id=budget_folder_id,
            created_at=created_at or utc_now(),
        )
        self.db.add(txn)
        self.db.commit()
        self.db.refresh(txn)
        return txn

    # --- recurring rules -----------------------------------------------------

    def list_rules(self, user_id: str) -> List[RecurringRule]:
        stmt = (
            select(RecurringRule)
            .where(RecurringRule.user_id == user_id)
            .order_by(RecurringRule.created_at.asc(), RecurringRule.id.asc())
        )
        return list(self.db.scalars(stmt))

    def get_rule(self, user_id: str, rule_id: int) -> Optional[RecurringRule]:
        stmt = select(RecurringRule).where(
            RecurringRule.id == rule_id, RecurringRule.user_id == user_id
        )
        return self.db.scalars(stmt).first()

    def get_rule_by_pattern(self, user_id: str, title_pattern: str) -> Optional[RecurringRule]:
        stmt = select(RecurringRule).where(
            RecurringRule.user_id == user_id, RecurringRule.title_pattern == title_pattern
        )
        return self.db.scalars(stmt).first()

    def count_rules(self, user_id: str) -> int:
        stmt = select(func.count(RecurringRule.id)).where(RecurringRule.user_id == user_id)
        return int(self.db.scalar(stmt) or 0)

    def upsert_recurring_rule(
        self,
        user_id: str,
        title_pattern: str,
        budget_folder_id: Optional[int],
        avg_amount: Decimal,
        cadence: str,
        next_due_date: date,
    ) -> RecurringRule:
        """Insert or update keyed on (user_id, title_pattern)."""
        now = utc_now()
        values: Dict[str, Any] = dict(
            user_id=user_id,
            title_pattern=title_pattern,
            budget_folder_id=budget_folder_id,
            avg_amount=avg_amount,
            cadence=cadence,
            next_due_date=next_due_date,
            active=True,
            created_at=now,
            updated_at=now,
        )
        insert = pg_insert if self._is_postgres else sqlite_insert
        stmt = insert(RecurringRule).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RecurringRule.user_id, RecurringRule.title_pattern],
            set_={
                "budget_folder_id": stmt.excluded.budget_folder_id,
                "avg_amount": stmt.excluded.avg_amount,
                "cadence": stmt.excluded.cadence,
                "next_due_date": stmt.excluded.next_due_date,
                "active": True,
                "updated_at": now,
            },
        )
        self.db.execute(stmt)
        self.db.commit()
        rule = self.get_rule_by_pattern(user_id, title_pattern)
        assert rule is not None
        self.db.refresh(rule)
        return rule

    def update_rule(
        self, user_id: str, rule_id: int, patch: Dict[str, Any]
    ) -> Optional[RecurringRule]:
        rule = self.get_rule(user_id, rule_id)
        if rule is None:
            return None
        for key, value in patch.items():
            if key in RULE_PATCH_FIELDS:
                setattr(rule, key, value)
        rule.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete_rule(self, user_id: str, rule_id: int) -> bool:
        rule = self.get_rule(user_id, rule_id)
        if rule is None:
            return False
        self.db.delete(rule)
        self.db.commit()
        return True

    # --- usage log -----------------------------------------------------------

    def insert_usage(self, **row: Any) -> AiUsageLog:
        entry = AiUsageLog(**row)
        self.db.add(entry)
        self.db.commit()
        return entry

    def count_usage_since(self, user_id: str, since: datetime) -> int:
        stmt = select(func.count(AiUsageLog.id)).where(
            AiUsageLog.user_id == user_id, AiUsageLog.created_at >= since
        )
        return int(self.db.scalar(stmt) or 0)

    def usage_rows(self, user_id: str) -> List[AiUsageLog]:
        stmt = (
            select(AiUsageLog)
            .where(AiUsageLog.user_id == user_id)
            .order_by(AiUsageLog.id.asc())
        )
        return list(self.db.scalars(stmt))

    def rule_exists(self, user_id: str, title_pattern: str) -> Tuple[bool, int]:
        """(pattern already stored, total rules) for cap checks."""
        return (
            self.get_rule_by_pattern(user_id, title_pattern) is not None,
            self.count_rules(user_id),
        )
