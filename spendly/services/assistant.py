"""
Assistant request pipeline.

Verifying -> RateLimitCheck -> Triage -> {LocalAction, CanonicalBypass,
ProviderCall} -> Responded, with Rejected (400/401/429/500) as the other
terminal state. Triage order, first match wins:

1. confirm/cancel of a client-held pending action
2. "add <amount> to <budget> budget" -> confirmation proposal
3. something that looks like a failed add -> format hint
4. "save as recurring" -> confirmation proposal
5. empty this/last week -> canonical answer, no model call
6. prompt + provider stream

Every branch past verification writes exactly one usage row.
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from pydantic import ValidationError

from spendly.config import Settings, get_settings
from spendly.core.keywords import get_keyword_tables
from spendly.metrics import assistant_requests_total
from spendly.models import BudgetRecord, TxRecord
from spendly.providers.errors import ProviderError
from spendly.providers.gateway import open_text_stream
from spendly.repositories.finance_repository import FinanceRepository
from spendly.schemas.assistant import (
    ActionReply,
    AddTransactionAction,
    AssistantRequest,
    AssistantResult,
    CanonicalMeta,
    CanonicalReply,
    MessageReply,
    RejectedReply,
    ResponseMeta,
    SaveRecurringRuleAction,
    StreamReply,
    parse_pending_action,
)
from spendly.services.actions import MSG_CANCELED, execute_action
from spendly.services.auth import Principal, verify_principal
from spendly.services.canonical import get_canonical_empty_reply
from spendly.services.commands import (
    ADD_FORMAT_HINT,
    budget_not_found_message,
    confirm_add_message,
    confirm_recurring_message,
    looks_like_add_attempt,
    parse_add_command,
    parse_save_recurring_command,
)
from spendly.services.context import load_budgets, prepare_user_context
from spendly.services.intent import detect_intent, detect_period
from spendly.services.prompt_builder import DEFAULT_SYSTEM, PROMPT_VERSION, compose_llm_prompt, currency_symbol
from spendly.services.recurring import find_recurring_candidates
from spendly.services.routing import is_complex_request, select_provider
from spendly.services.usage import UsageLogger, UsageMeta, stream_with_usage
from spendly.utils.request_ctx import get_request_id
from spendly.utils.time import utc_day_start, utc_now

log = logging.getLogger(__name__)

# Prompts shorter than this are sent as the system directive instead
SHORT_PROMPT_CHARS = 128

MODEL_ACTION = "canonical_action"
MODEL_PRE = "canonical_pre"
MODEL_CANONICAL = "canonical"
PROVIDER_LOCAL = "local"

MSG_PROVIDER_FAILED = "The assistant is temporarily unavailable. Please try again in a moment."

StreamOpener = Callable[..., Awaitable]


def parse_locale(accept_language: Optional[str]) -> str:
    """First tag of Accept-Language ("ru-RU,ru;q=0.9" -> "ru-RU"), default en-US."""
    first = (accept_language or "").split(",")[0].split(";")[0].strip()
    return first or "en-US"


def currency_for(locale: str) -> str:
    return "RUB" if locale.lower().startswith("ru") else "USD"


class AssistantService:
    def __init__(
        self,
        repo: FinanceRepository,
        usage: UsageLogger,
        settings: Optional[Settings] = None,
        stream_opener: StreamOpener = open_text_stream,
    ):
        self.repo = repo
        self.usage = usage
        self.settings = settings or get_settings()
        self.open_stream = stream_opener

    # --- helpers -------------------------------------------------------------

    def _record(
        self,
        principal: Principal,
        meta: ResponseMeta,
        *,
        provider: str,
        model: str,
        request_type: str,
        success: bool,
        prompt_length: int,
        response_length: int = 0,
        bypass_used: bool = False,
        block_reason: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self.usage.record(
            UsageMeta(
                user_id=principal.user_id,
                provider=provider,
                model=model,
                request_type=request_type,
                prompt_length=prompt_length,
                intent=meta.intent,
                period=meta.period,
                bypass_used=bypass_used,
            ),
            success=success,
            response_length=response_length,
            error_message=error_message,
            block_reason=block_reason,
        )

    def _local(
        self,
        principal: Principal,
        meta: ResponseMeta,
        reply,
        *,
        route: str,
        request_type: str,
        model: str,
        prompt_length: int,
        bypass_used: bool = False,
        success: bool = True,
    ) -> AssistantResult:
        meta.provider, meta.model = PROVIDER_LOCAL, model
        self._record(
            principal,
            meta,
            provider=PROVIDER_LOCAL,
            model=model,
            request_type=request_type,
            success=success,
            prompt_length=prompt_length,
            response_length=len(reply.model_dump_json()),
            bypass_used=bypass_used,
        )
        assistant_requests_total.labels(route=route).inc()
        return AssistantResult(reply, meta)

    @staticmethod
    def _rejected(meta: ResponseMeta, status: int, error: str, message: str) -> AssistantResult:
        assistant_requests_total.labels(route="rejected").inc()
        return AssistantResult(RejectedReply(status_code=status, error=error, message=message), meta)

    # --- pipeline ------------------------------------------------------------

    async def handle(
        self,
        req: AssistantRequest,
        accept_language: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AssistantResult:
        s = self.settings
        now = now or utc_now()
        locale = parse_locale(accept_language)
        currency = currency_for(locale)
        message = (req.message or "")[: s.MAX_PROMPT_CHARS]
        meta = ResponseMeta(
            request_id=get_request_id() or str(uuid.uuid4()),
            prompt_version=PROMPT_VERSION,
            locale=locale,
            currency=currency,
        )

        if not message.strip() and not req.resolves_pending:
            return self._rejected(meta, 400, "invalid_request", "message is required")

        principal = verify_principal(self.repo, req.user_id)
        if principal is None:
            return self._rejected(meta, 401, "unauthorized", "Unknown or inactive user.")

        meta.intent = detect_intent(message)
        meta.period = detect_period(message)

        if req.enable_limits and not principal.is_pro:
            limit = s.FREE_DAILY_LIMIT
            used = self.usage.count_since(principal.user_id, utc_day_start(now))
            meta.daily_limit, meta.usage_used = limit, used + 1
            if used >= limit:
                reason = f"Daily limit reached ({limit} requests). Please try again tomorrow."
                self._record(
                    principal, meta,
                    provider="none", model="none", request_type="chat",
                    success=False, prompt_length=len(message),
                    block_reason="limit", error_message=reason,
                )
                log.info("assistant.limit rid=%s user=%s used=%s", meta.request_id, principal.user_id, used)
                return self._rejected(meta, 429, "limit_reached", reason)

        if req.resolves_pending:
            return self._resolve_pending(req, principal, meta, len(message))

        budgets = load_budgets(self.repo, principal.user_id)
        result = self._triage_commands(message, principal, meta, budgets, now)
        if result is not None:
            return result

        ctx = prepare_user_context(self.repo, principal.user_id, now=now)
        prompt = compose_llm_prompt(
            ctx, message, locale=locale, currency=currency, max_chars=s.MAX_PROMPT_CHARS, now=now
        )
        if s.LLM_DEBUG:
            log.debug(
                "assistant.prompt rid=%s chars=%s sample=%r", meta.request_id, len(prompt), prompt[:200]
            )

        canonical = get_canonical_empty_reply(ctx, message, locale=locale, now=now)
        if canonical.should_bypass:
            return self._canonical(principal, meta, canonical.period, canonical.message, prompt)

        return await self._provider_call(principal, meta, message, prompt)

    def _resolve_pending(
        self, req: AssistantRequest, principal: Principal, meta: ResponseMeta, prompt_length: int
    ) -> AssistantResult:
        try:
            action = parse_pending_action(req.action_type, req.action_payload or {})
        except ValidationError as exc:
            log.info("assistant.bad_action rid=%s errors=%s", meta.request_id, exc.error_count())
            return self._rejected(meta, 400, "invalid_action", "actionPayload is not a valid pending action")

        if req.cancel and not req.confirm:
            reply = MessageReply(message=MSG_CANCELED, ok=True)
            return self._local(
                principal, meta, reply,
                route="cancel", request_type="action", model=MODEL_ACTION, prompt_length=prompt_length,
            )

        reply = execute_action(self.repo, principal, action, self.settings.FREE_RECURRING_RULES_LIMIT)
        log.info(
            "assistant.confirm rid=%s user=%s type=%s ok=%s",
            meta.request_id, principal.user_id, action.type, reply.ok,
        )
        return self._local(
            principal, meta, reply,
            route="confirm", request_type="action", model=MODEL_ACTION,
            prompt_length=prompt_length, success=bool(reply.ok),
        )

    def _triage_commands(
        self,
        message: str,
        principal: Principal,
        meta: ResponseMeta,
        budgets: List[BudgetRecord],
        now: datetime,
    ) -> Optional[AssistantResult]:
        symbol = currency_symbol(meta.currency)
        parsed = parse_add_command(message, budgets)
        if parsed is not None:
            if parsed.budget_folder_id is None:
                reply = MessageReply(message=budget_not_found_message(parsed.budget_name))
                return self._local(
                    principal, meta, reply,
                    route="hint", request_type="hint", model=MODEL_PRE,
                    prompt_length=len(message), bypass_used=True,
                )
            action = AddTransactionAction(
                title=parsed.title,
                amount=parsed.amount,
                budget_folder_id=parsed.budget_folder_id,
                budget_name=parsed.budget_name,
            )
            reply = ActionReply(action=action, message=confirm_add_message(parsed, symbol))
            return self._local(
                principal, meta, reply,
                route="action", request_type="action", model=MODEL_ACTION, prompt_length=len(message),
            )

        if looks_like_add_attempt(message):
            reply = MessageReply(message=ADD_FORMAT_HINT)
            return self._local(
                principal, meta, reply,
                route="hint", request_type="hint", model=MODEL_PRE,
                prompt_length=len(message), bypass_used=True,
            )

        lower = message.lower()
        if any(t in lower for t in get_keyword_tables().save_recurring_triggers):
            # Explicit request: scan history even when recurring memory is off for prompts
            txs = [
                TxRecord.from_orm(t)
                for t in self.repo.recent_transactions(principal.user_id, self.settings.CONTEXT_TX_LIMIT)
            ]
            candidates = find_recurring_candidates(
                txs, window_days=self.settings.RECURRING_WINDOW_DAYS, now=now
            )
            cand = parse_save_recurring_command(message, candidates)
            if cand is not None:
                action = SaveRecurringRuleAction(
                    title_pattern=cand.title_pattern,
                    budget_folder_id=cand.budget_folder_id,
                    avg_amount=cand.avg_amount,
                    cadence=cand.cadence,
                    next_due_date=cand.next_due_date,
                )
                reply = ActionReply(action=action, message=confirm_recurring_message(cand, symbol))
                return self._local(
                    principal, meta, reply,
                    route="action", request_type="action", model=MODEL_ACTION, prompt_length=len(message),
                )
        return None

    def _canonical(
        self, principal: Principal, meta: ResponseMeta, period: str, text: str, prompt: str
    ) -> AssistantResult:
        meta.bypass, meta.period = True, period
        meta.provider, meta.model = MODEL_CANONICAL, MODEL_CANONICAL
        reply = CanonicalReply(
            period=period,
            currency=meta.currency,
            totals={"expenses": 0},
            text=text,
            meta=CanonicalMeta(
                promptVersion=PROMPT_VERSION, locale=meta.locale, tokensApprox=round(len(prompt) / 4)
            ),
        )
        self._record(
            principal, meta,
            provider=MODEL_CANONICAL, model=MODEL_CANONICAL, request_type="chat",
            success=True, prompt_length=len(prompt),
            response_length=len(json.dumps(reply.model_dump(mode="json"))), bypass_used=True,
        )
        log.info("assistant.bypass rid=%s user=%s period=%s", meta.request_id, principal.user_id, period)
        assistant_requests_total.labels(route="canonical").inc()
        return AssistantResult(reply, meta)

    async def _provider_call(
        self, principal: Principal, meta: ResponseMeta, message: str, prompt: str
    ) -> AssistantResult:
        s = self.settings
        short = len(prompt.strip()) < SHORT_PROMPT_CHARS
        system = prompt if short else DEFAULT_SYSTEM
        user_text = message if short else prompt

        choice = select_provider(s.AI_PROVIDER, s.available_providers(), is_complex_request(message))
        model = s.model_for(choice.provider)
        meta.provider, meta.model = choice.provider, model
        usage_meta = UsageMeta(
            user_id=principal.user_id,
            provider=choice.provider,
            model=model,
            request_type="chat",
            prompt_length=len(prompt),
            intent=meta.intent,
            period=meta.period,
        )
        log.info(
            "assistant.provider rid=%s user=%s provider=%s model=%s reason=%s prompt_chars=%s",
            meta.request_id, principal.user_id, choice.provider, model, choice.reason, len(prompt),
        )
        try:
            chunks = await self.open_stream(
                choice.provider, model=model, prompt=user_text, system=system, settings=s
            )
        except ProviderError as exc:
            self.usage.record(
                usage_meta, success=False, error_message=str(exc), block_reason="provider_error"
            )
            log.error(
                "assistant.provider_failed rid=%s provider=%s status=%s error=%s",
                meta.request_id, choice.provider, exc.status, exc,
            )
            return self._rejected(meta, 500, exc.code, MSG_PROVIDER_FAILED)

        assistant_requests_total.labels(route="provider").inc()
        return AssistantResult(
            StreamReply(
                chunks=stream_with_usage(chunks, usage_meta, self.usage),
                provider=choice.provider,
                model=model,
            ),
            meta,
        )
