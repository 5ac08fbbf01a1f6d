"""Contracts exchanged with the response generator and the commerce tool client."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from support_mas.utils import utc_now


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the response generator."""
    handle: str
    params: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """What the tool client returns for one call."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class ToolCallRecord(BaseModel):
    """A completed tool call as stored on the session."""
    handle: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    output: Optional[Any] = None
    success: bool
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class GeneratedReply(BaseModel):
    """Free text plus zero or more tool requests from the response generator."""
    text: str
    tool_requests: list[ToolCallRequest] = Field(default_factory=list)
