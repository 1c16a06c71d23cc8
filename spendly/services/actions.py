"""Execution of confirmed pending actions (the "user clicked Yes" path)."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from spendly.repositories.finance_repository import FinanceRepository
from spendly.schemas.assistant import AddTransactionAction, MessageReply, SaveRecurringRuleAction
from spendly.services.auth import Principal
from spendly.services.rules import RuleBudgetNotFound, RuleLimitReached, save_rule
from spendly.utils.text import sanitize_title

log = logging.getLogger(__name__)

MSG_AMOUNT_INVALID = "Amount must be greater than zero."
MSG_BUDGET_NOT_SELECTED = "Selected budget was not found. Please choose an existing budget."
MSG_BUDGET_MISSING = "Budget folder not found. Please refresh and try again."
MSG_ADD_FAILED = "Failed to add transaction. Please try again."
MSG_ADDED = "Transaction added successfully!"
MSG_RULE_SAVED = "Recurring rule saved."
MSG_RULE_FAILED = "Failed to save recurring rule."
MSG_RULE_LIMIT = "Free plan allows up to {limit} recurring rules. Upgrade to save more."
MSG_CANCELED = "Action canceled."


def execute_add_transaction(
    repo: FinanceRepository, principal: Principal, action: AddTransactionAction
) -> MessageReply:
    if Decimal(action.amount) <= 0:
        return MessageReply(message=MSG_AMOUNT_INVALID, ok=False)
    if action.budget_folder_id is None:
        return MessageReply(message=MSG_BUDGET_NOT_SELECTED, ok=False)
    budget = repo.get_budget(principal.user_id, action.budget_folder_id)
    if budget is None:
        return MessageReply(message=MSG_BUDGET_MISSING, ok=False)
    try:
        txn = repo.insert_transaction(
            user_id=principal.user_id,
            title=sanitize_title(action.title) or "Transaction",
            amount=Decimal(action.amount),
            type=budget.type,
            budget_folder_id=budget.id,
        )
    except SQLAlchemyError:
        repo.db.rollback()
        log.exception("actions.add_failed user=%s budget=%s", principal.user_id, budget.id)
        return MessageReply(message=MSG_ADD_FAILED, ok=False)
    log.info("actions.added user=%s txn=%s budget=%s", principal.user_id, txn.id, budget.id)
    return MessageReply(message=MSG_ADDED, ok=True)


def execute_save_recurring(
    repo: FinanceRepository,
    principal: Principal,
    action: SaveRecurringRuleAction,
    free_limit: int,
) -> MessageReply:
    if Decimal(action.avg_amount) <= 0:
        return MessageReply(message=MSG_AMOUNT_INVALID, ok=False)
    try:
        rule = save_rule(
            repo,
            principal.user_id,
            principal.is_pro,
            title_pattern=action.title_pattern,
            budget_folder_id=action.budget_folder_id,
            avg_amount=action.avg_amount,
            cadence=action.cadence,
            next_due_date=action.next_due_date,
            free_limit=free_limit,
        )
    except RuleLimitReached as exc:
        return MessageReply(message=MSG_RULE_LIMIT.format(limit=exc.limit), ok=False)
    except RuleBudgetNotFound:
        return MessageReply(message=MSG_BUDGET_NOT_SELECTED, ok=False)
    except (ValueError, SQLAlchemyError):
        repo.db.rollback()
        log.exception("actions.rule_failed user=%s pattern=%s", principal.user_id, action.title_pattern)
        return MessageReply(message=MSG_RULE_FAILED, ok=False)
    log.info("actions.rule_saved user=%s rule=%s cadence=%s", principal.user_id, rule.id, rule.cadence)
    return MessageReply(message=MSG_RULE_SAVED, ok=True)


def execute_action(
    repo: FinanceRepository, principal: Principal, action, free_limit: int
) -> MessageReply:
    if isinstance(action, AddTransactionAction):
        return execute_add_transaction(repo, principal, action)
    if isinstance(action, SaveRecurringRuleAction):
        return execute_save_recurring(repo, principal, action, free_limit)
    raise TypeError(f"unsupported action {type(action).__name__}")
