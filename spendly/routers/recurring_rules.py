from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import JSONResponse

from spendly.config import get_settings
from spendly.deps.services import get_repo, require_principal
from spendly.repositories.finance_repository import FinanceRepository
from spendly.schemas.recurring_rules import RuleIn, RuleListResponse, RuleOut, RulePatch
from spendly.services.auth import Principal
from spendly.services.rules import RuleBudgetNotFound, RuleLimitReached, save_rule

log = logging.getLogger(__name__)

router = APIRouter(prefix="/recurring-rules", tags=["recurring-rules"])


@router.get("", response_model=RuleListResponse)
def list_rules(
    principal: Principal = Depends(require_principal),
    repo: FinanceRepository = Depends(get_repo),
):
    rules = repo.list_rules(principal.user_id)
    return RuleListResponse(items=[RuleOut.model_validate(r) for r in rules], total=len(rules))


@router.post("")
def upsert_rule(
    body: RuleIn,
    principal: Principal = Depends(require_principal),
    repo: FinanceRepository = Depends(get_repo),
):
    try:
        rule = save_rule(
            repo,
            principal.user_id,
            principal.is_pro,
            title_pattern=body.title_pattern,
            budget_folder_id=body.budget_folder_id,
            avg_amount=body.avg_amount,
            cadence=body.cadence,
            next_due_date=body.next_due_date,
            free_limit=get_settings().FREE_RECURRING_RULES_LIMIT,
        )
    except RuleLimitReached as exc:
        log.info("recurring_rules.limit user=%s limit=%s", principal.user_id, exc.limit)
        return JSONResponse({"error": exc.code, "message": str(exc)}, status_code=403)
    except RuleBudgetNotFound:
        raise HTTPException(404, "Budget folder not found")
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    log.info("recurring_rules.saved user=%s rule=%s", principal.user_id, rule.id)
    return RuleOut.model_validate(rule).model_dump(mode="json")


@router.patch("/{rule_id}")
def patch_rule(
    body: RulePatch,
    rule_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_principal),
    repo: FinanceRepository = Depends(get_repo),
):
    patch = body.model_dump(exclude_unset=True)
    budget_id = patch.get("budget_folder_id")
    if budget_id is not None and repo.get_budget(principal.user_id, budget_id) is None:
        raise HTTPException(404, "Budget folder not found")
    rule = repo.update_rule(principal.user_id, rule_id, patch)
    if rule is None:
        raise HTTPException(404, "Rule not found")
    return RuleOut.model_validate(rule).model_dump(mode="json")


@router.delete("/{rule_id}")
def delete_rule(
    rule_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_principal),
    repo: FinanceRepository = Depends(get_repo),
):
    if not repo.delete_rule(principal.user_id, rule_id):
        raise HTTPException(404, "Rule not found")
    return {"ok": True, "deleted": rule_id}
