"""
Contracts for the external collaborators the orchestrator drives.

The response generator decides free-text replies and which tools to call;
the tool client performs the commerce operation. Both are asynchronous
and may fail. Implementations live outside the core (see
``support_mas.tools`` for the offline reference doubles).
"""

from typing import Protocol

from support_mas.agents.handlers import HandlerSpec
from support_mas.schemas.session_schema import ChatMessage, CustomerInfo
from support_mas.schemas.tool_schema import GeneratedReply, ToolCallRequest, ToolResult


class ResponseGenerationError(Exception):
    """Raised by a response generator that could not produce a reply."""


class ResponseGenerator(Protocol):
    async def generate(
        self,
        history: list[ChatMessage],
        handler: HandlerSpec,
        customer: CustomerInfo,
    ) -> GeneratedReply:
        """Produce a reply for the last customer message in ``history``.

        Only tools declared by ``handler`` may be requested.
        """
        ...


class ToolClient(Protocol):
    async def call(self, request: ToolCallRequest) -> ToolResult:
        """Execute a validated tool request."""
        ...
