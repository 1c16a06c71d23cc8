from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, AsyncIterator, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, TypeAdapter

# Decimal on the way in, JSON number on the way out
Money = Annotated[
    Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")
]


class AssistantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    is_pro: Optional[bool] = Field(None, alias="isPro")  # informational; users.is_pro decides
    enable_limits: bool = Field(False, alias="enableLimits")
    message: str = ""
    confirm: bool = False
    cancel: bool = False
    action_type: Optional[Literal["add_transaction", "save_recurring_rule"]] = Field(
        None, alias="actionType"
    )
    action_payload: Optional[Dict[str, Any]] = Field(None, alias="actionPayload")

    @property
    def resolves_pending(self) -> bool:
        return bool((self.confirm or self.cancel) and self.action_payload)


class AddTransactionAction(BaseModel):
    type: Literal["add_transaction"] = "add_transaction"
    title: str = Field(..., min_length=1, max_length=60)
    amount: Money  # positivity checked at execution for a friendly message
    budget_folder_id: Optional[int] = None
    budget_name: str = ""


class SaveRecurringRuleAction(BaseModel):
    type: Literal["save_recurring_rule"] = "save_recurring_rule"
    title_pattern: str = Field(..., min_length=1, max_length=128)
    budget_folder_id: Optional[int] = None
    avg_amount: Money
    cadence: Literal["weekly", "monthly"]
    next_due_date: date


PendingAction = Annotated[
    Union[AddTransactionAction, SaveRecurringRuleAction], Field(discriminator="type")
]
pending_action_adapter: TypeAdapter = TypeAdapter(PendingAction)


def parse_pending_action(action_type: Optional[str], payload: Dict[str, Any]):
    """Validate a client-held action; ``actionType`` fills a missing ``type``."""
    data = dict(payload)
    if "type" not in data and action_type:
        data["type"] = action_type
    return pending_action_adapter.validate_python(data)


# --- replies ---------------------------------------------------------------


class ActionReply(BaseModel):
    kind: Literal["action"] = "action"
    action: PendingAction
    message: str


class MessageReply(BaseModel):
    kind: Literal["message"] = "message"
    message: str
    ok: Optional[bool] = None


class CanonicalMeta(BaseModel):
    promptVersion: str
    locale: str
    tokensApprox: int


class CanonicalReply(BaseModel):
    kind: Literal["canonical"] = "canonical"
    intent: Literal["summary"] = "summary"
    period: str
    currency: str
    totals: Dict[str, Money]
    breakdown: List[Dict[str, Any]] = Field(default_factory=list)
    topExpenses: List[Dict[str, Any]] = Field(default_factory=list)
    text: str
    meta: CanonicalMeta


class RejectedReply(BaseModel):
    kind: Literal["rejected"] = "rejected"
    status_code: int = Field(..., exclude=True)
    error: str
    message: str


@dataclass
class StreamReply:
    """Provider text stream; headers go out before the first chunk."""

    chunks: AsyncIterator[str]
    provider: str
    model: str


JsonReply = Annotated[
    Union[ActionReply, MessageReply, CanonicalReply, RejectedReply],
    Field(discriminator="kind"),
]
AssistantReply = Union[ActionReply, MessageReply, CanonicalReply, RejectedReply, StreamReply]


@dataclass
class ResponseMeta:
    provider: str = "none"
    model: str = "none"
    request_id: str = ""
    prompt_version: str = ""
    intent: str = "unknown"
    period: str = "unknown"
    locale: str = "en-US"
    currency: str = "USD"
    bypass: bool = False
    daily_limit: Optional[int] = None
    usage_used: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        out = {
            "X-Provider": self.provider,
            "X-Model": self.model,
            "X-Request-Id": self.request_id,
            "X-Prompt-Version": self.prompt_version,
            "X-Intent": self.intent,
            "X-Period": self.period,
            "X-Locale": self.locale,
            "X-Currency": self.currency,
            "X-Bypass": "true" if self.bypass else "false",
        }
        if self.daily_limit is not None:
            out["X-Daily-Limit"] = str(self.daily_limit)
            out["X-Usage-Used"] = str(min(self.usage_used or 0, self.daily_limit))
        return out


@dataclass
class AssistantResult:
    reply: AssistantReply
    meta: ResponseMeta = field(default_factory=ResponseMeta)
