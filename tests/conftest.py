"""Shared test fixtures and helpers."""

import asyncio
from dataclasses import replace
from typing import Optional

import pytest

from support_mas.agents.handlers import HandlerSpec
from support_mas.agents.registry import HandlerRegistry
from support_mas.config import AppConfig
from support_mas.conversation.dynamic_rules import DynamicRuleStore
from support_mas.runtime.collaborators import ResponseGenerationError
from support_mas.runtime.memory import SessionMemory
from support_mas.runtime.orchestrator import Orchestrator
from support_mas.runtime.tracing import Tracer
from support_mas.schemas.session_schema import ChatMessage, CustomerInfo
from support_mas.schemas.tool_schema import GeneratedReply, ToolCallRequest, ToolResult
from support_mas.tools.commerce import MockCommerceClient
from support_mas.tools.responder import KeywordResponseGenerator


def make_customer(
    email: str = "baki@lookfor.ai",
    first_name: str = "Baki",
    last_name: str = "Test",
    shopify_customer_id: str = "cust_baki",
) -> CustomerInfo:
    """Helper to create a CustomerInfo with sensible defaults."""
    return CustomerInfo(
        email=email,
        first_name=first_name,
        last_name=last_name,
        shopify_customer_id=shopify_customer_id,
    )


def make_config(response_retries: int = 1) -> AppConfig:
    """Default config with a different retry count."""
    base = AppConfig()
    return replace(base, runtime=replace(base.runtime, response_retries=response_retries))


class ScriptedResponder:
    """Returns the same reply every time and records what it was given."""

    def __init__(self, text: str = "Scripted reply", tool_requests: Optional[list[ToolCallRequest]] = None,
                 delay: float = 0.0) -> None:
        self.text = text
        self.tool_requests = tool_requests or []
        self.delay = delay
        self.calls: list[tuple[list[ChatMessage], HandlerSpec]] = []

    async def generate(self, history, handler, customer) -> GeneratedReply:
        self.calls.append((list(history), handler))
        if self.delay:
            await asyncio.sleep(self.delay)
        return GeneratedReply(text=self.text, tool_requests=list(self.tool_requests))


class RaisingResponder:
    """Always fails with a recoverable error."""

    def __init__(self, exc: Exception = ResponseGenerationError("model unavailable")) -> None:
        self.exc = exc
        self.attempts = 0

    async def generate(self, history, handler, customer) -> GeneratedReply:
        self.attempts += 1
        raise self.exc


class FailingToolClient:
    """Every tool call reports a failure."""

    def __init__(self, error: str = "upstream unavailable") -> None:
        self.error = error
        self.calls: list[ToolCallRequest] = []

    async def call(self, request: ToolCallRequest) -> ToolResult:
        self.calls.append(request)
        return ToolResult(success=False, error=self.error)


class RecordingToolClient:
    """Every tool call succeeds with an echo of its params."""

    def __init__(self) -> None:
        self.calls: list[ToolCallRequest] = []

    async def call(self, request: ToolCallRequest) -> ToolResult:
        self.calls.append(request)
        return ToolResult(success=True, data=dict(request.params))


def build_test_orchestrator(
    responder=None,
    tool_client=None,
    memory: Optional[SessionMemory] = None,
    tracer: Optional[Tracer] = None,
    rules: Optional[DynamicRuleStore] = None,
    config: Optional[AppConfig] = None,
    **kwargs,
) -> Orchestrator:
    """Isolated orchestrator graph; offline collaborators unless overridden."""
    return Orchestrator(
        responder=responder or KeywordResponseGenerator(),
        tool_client=tool_client or MockCommerceClient(),
        memory=memory or SessionMemory(),
        rules=rules or DynamicRuleStore(),
        tracer=tracer or Tracer(),
        config=config or AppConfig(),
        **kwargs,
    )


@pytest.fixture
def customer():
    return make_customer()


@pytest.fixture
def memory():
    return SessionMemory()


@pytest.fixture
def tracer():
    return Tracer()


@pytest.fixture
def rule_store():
    return DynamicRuleStore()


@pytest.fixture
def registry():
    return HandlerRegistry()


@pytest.fixture
def commerce():
    return MockCommerceClient()


@pytest.fixture
def orchestrator():
    return build_test_orchestrator()


@pytest.fixture
def session_id(orchestrator, customer):
    return orchestrator.start_session(customer)
