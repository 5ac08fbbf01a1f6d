"""Trace event models for the per-session observable timeline."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from support_mas.utils import utc_now


class TraceEventType(str, Enum):
    MESSAGE = "MESSAGE"
    ROUTING = "ROUTING"
    TOOL_CALL = "TOOL_CALL"
    ESCALATION = "ESCALATION"


class TraceEvent(BaseModel):
    """An immutable fact about one session."""

    model_config = ConfigDict(frozen=True)

    type: TraceEventType
    timestamp: datetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)


class SessionTrace(BaseModel):
    """Full ordered timeline for one session."""

    session_id: str
    timeline: list[TraceEvent] = Field(default_factory=list)
