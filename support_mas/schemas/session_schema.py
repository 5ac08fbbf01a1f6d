"""Customer, session and escalation data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from support_mas.schemas.routing_schema import HandlerId, Intent
from support_mas.schemas.tool_schema import ToolCallRecord
from support_mas.utils import utc_now


class SessionStatus(str, Enum):
    """Conversation lifecycle status. ESCALATED is terminal."""
    ACTIVE = "active"
    ESCALATED = "escalated"


class EscalationTrigger(str, Enum):
    """Why a session was handed to a human."""
    EXPLICIT_REQUEST = "explicit_request"
    DYNAMIC_RULE = "dynamic_rule"
    INTENT_DIVERSITY = "intent_diversity"
    TOOL_FAILURES = "tool_failures"
    RESPONSE_FAILURE = "response_failure"


class MessageRole(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"


class CustomerInfo(BaseModel):
    """Customer identity captured once at session start."""
    email: str
    first_name: str
    last_name: str
    shopify_customer_id: str


class ChatMessage(BaseModel):
    role: MessageRole
    text: str
    timestamp: datetime = Field(default_factory=utc_now)


class EscalationSummary(BaseModel):
    """Structured handoff record for the human taking over."""
    session_id: str
    customer_email: str
    reason: str
    trigger: EscalationTrigger
    message_count: int
    tool_call_count: int
    distinct_intents: list[Intent]
    mentioned_order_numbers: list[str]
    current_handler: Optional[HandlerId] = None
    rule_tag: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class SessionContext(BaseModel):
    """Accumulated conversation context."""
    mentioned_order_numbers: list[str] = Field(default_factory=list)
    mentioned_emails: list[str] = Field(default_factory=list)
    intent_history: list[Intent] = Field(default_factory=list)
    escalated: bool = False
    escalation_reason: Optional[str] = None
    escalation_summary: Optional[EscalationSummary] = None
    current_handler: Optional[HandlerId] = None
    tool_failure_count: int = 0


class Session(BaseModel):
    """
    One conversation.

    Owned by SessionMemory; every other component only ever sees copies.
    """
    id: str
    customer: CustomerInfo
    status: SessionStatus = SessionStatus.ACTIVE
    messages: list[ChatMessage] = Field(default_factory=list)
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)
    context: SessionContext = Field(default_factory=SessionContext)
    created_at: datetime = Field(default_factory=utc_now)
