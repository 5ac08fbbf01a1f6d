"""Operator-authored dynamic rule models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from support_mas.schemas.routing_schema import HandlerId
from support_mas.utils import utc_now


class RuleActionType(str, Enum):
    ESCALATE = "escalate"
    BLOCK = "block"
    REDIRECT = "redirect"
    MODIFY_RESPONSE = "modify_response"


class RuleTrigger(BaseModel):
    """Lowercase keywords; any one substring hit fires the rule."""
    keywords: list[str]


class RuleAction(BaseModel):
    type: RuleActionType
    reason: Optional[str] = None
    tag: Optional[str] = None
    target_handler: Optional[HandlerId] = None


class DynamicRule(BaseModel):
    """A runtime override evaluated before standard routing.

    The original prompt is retained for audit. Rules are soft-deleted by
    clearing ``active``; they are never removed while traces may refer
    to them.
    """
    id: str
    prompt: str
    trigger: RuleTrigger
    action: RuleAction
    created_at: datetime = Field(default_factory=utc_now)
    active: bool = True
