"""
Orchestrator: sequences every decision for one inbound message.

    extract entities -> classify intent (+ dynamic rule lookup)
      -> escalation governor (may short-circuit)
      -> router -> response generator + tool client
      -> session memory commit -> trace flush

All stores are injected, so tests build isolated graphs and the process
builds one through ``build_orchestrator``. Messages for the same session
are serialized with a per-session asyncio.Lock; different sessions run
concurrently. External calls are awaited before any state is written,
memory writes for a step run inside ``SessionMemory.transaction`` and
trace events are buffered and flushed only after that commit succeeds.

Usage:
    orchestrator = build_orchestrator()
    session_id = orchestrator.start_session(customer)
    reply = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")
"""

from __future__ import annotations

import asyncio
import weakref
from typing import Any, Optional

from pydantic import BaseModel, Field

from support_mas.agents.handlers import HandlerSpec
from support_mas.agents.registry import HandlerRegistry
from support_mas.config import AppConfig, settings
from support_mas.conversation.dynamic_rules import DynamicRuleStore
from support_mas.conversation.entity_extractor import ExtractedEntities, extract_entities
from support_mas.conversation.escalation import EscalationDecision, EscalationGovernor
from support_mas.conversation.intent_classifier import IntentClassifier
from support_mas.conversation.router import Router
from support_mas.logging_context import get_session_logger, session_scope
from support_mas.runtime.collaborators import (
    ResponseGenerationError,
    ResponseGenerator,
    ToolClient,
)
from support_mas.runtime.memory import SessionMemory
from support_mas.runtime.tracing import Tracer
from support_mas.schemas.routing_schema import HandlerId, Intent, RouteDecision
from support_mas.schemas.rule_schema import DynamicRule, RuleActionType
from support_mas.schemas.session_schema import (
    ChatMessage,
    CustomerInfo,
    EscalationSummary,
    MessageRole,
    Session,
    SessionStatus,
)
from support_mas.schemas.tool_schema import (
    GeneratedReply,
    ToolCallRecord,
    ToolCallRequest,
    ToolResult,
)
from support_mas.schemas.trace_schema import TraceEvent, TraceEventType

logger = get_session_logger(__name__)


class OrchestratorReply(BaseModel):
    """Decision bundle returned to the caller for one message."""

    message: str
    escalated: bool = False
    tools_called: list[str] = Field(default_factory=list)
    intent: Optional[Intent] = None
    handler: Optional[HandlerId] = None
    blocked: bool = False
    tags: list[str] = Field(default_factory=list)


def _event(event_type: TraceEventType, **data: Any) -> TraceEvent:
    return TraceEvent(type=event_type, data=data)


class Orchestrator:
    """Composition root for the orchestration engine."""

    def __init__(
        self,
        responder: ResponseGenerator,
        tool_client: ToolClient,
        memory: Optional[SessionMemory] = None,
        rules: Optional[DynamicRuleStore] = None,
        tracer: Optional[Tracer] = None,
        classifier: Optional[IntentClassifier] = None,
        governor: Optional[EscalationGovernor] = None,
        registry: Optional[HandlerRegistry] = None,
        config: AppConfig = settings,
    ) -> None:
        self.memory = memory or SessionMemory()
        self.rules = rules or DynamicRuleStore()
        self.tracer = tracer or Tracer()
        self.classifier = classifier or IntentClassifier()
        self.governor = governor or EscalationGovernor(
            intent_diversity_threshold=config.escalation.intent_diversity_threshold,
            max_tool_failures=config.escalation.max_tool_failures,
        )
        self.registry = registry or HandlerRegistry()
        self.router = Router(self.registry)
        self._responder = responder
        self._tool_client = tool_client
        self._config = config
        # Entries live only while a message for the session holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # --- Sessions ---

    def start_session(self, customer: CustomerInfo) -> str:
        return self.memory.create_session(customer)

    def get_session(self, session_id: str) -> Session:
        return self.memory.get_session(session_id)

    def get_trace(self, session_id: str) -> list[TraceEvent]:
        """Timeline for a known session; empty if nothing was recorded yet."""
        self.memory.get_session(session_id)
        trace = self.tracer.get_trace(session_id)
        return trace.timeline if trace else []

    def get_escalation_summary(self, session_id: str) -> Optional[EscalationSummary]:
        return self.memory.get_session(session_id).context.escalation_summary

    # --- Dynamic rules ---

    def add_rule(self, prompt: str) -> DynamicRule:
        return self.rules.add_rule(prompt)

    def list_rules(self) -> list[DynamicRule]:
        return self.rules.get_rules()

    def deactivate_rule(self, rule_id: str) -> bool:
        return self.rules.deactivate_rule(rule_id)

    # --- Message handling ---

    async def handle_message(self, session_id: str, text: str) -> OrchestratorReply:
        """Process one customer message.

        Raises:
            SessionNotFoundError: If the session id is unknown.
        """
        with session_scope(session_id):
            self.memory.get_session(session_id)
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = asyncio.Lock()
            async with lock:
                return await self._process(session_id, text)

    async def _process(self, session_id: str, text: str) -> OrchestratorReply:
        session = self.memory.get_session(session_id)
        if session.status == SessionStatus.ESCALATED:
            return self._acknowledge_escalated(session_id, text)

        entities = extract_entities(text)
        classification = self.classifier.classify_with_matches(text)
        intent = classification.intent
        rule = self.rules.check_message(text)
        events = [_event(TraceEventType.MESSAGE, role=MessageRole.CUSTOMER.value, text=text)]

        decision = self.governor.evaluate(
            text, rule, [*session.context.intent_history, intent]
        )
        if decision is not None:
            return self._escalate(session_id, decision, events, text, entities, intent)

        route = self.router.route(intent, rule, session.context.current_handler)
        events.append(self._routing_event(
            route, session.context.current_handler, rule, classification.matches.get(intent, [])
        ))
        logger.info(
            "Routed %s -> %s",
            intent.value, route.target_handler.value if route.target_handler else "blocked",
        )

        handoff = self.governor.check_handoff_route(route, rule)
        if handoff is not None:
            return self._escalate(session_id, handoff, events, text, entities, intent)

        if route.blocked:
            with self.memory.transaction(session_id):
                self._record_customer_turn(session_id, text, entities, intent)
            self.tracer.record_many(session_id, events)
            return OrchestratorReply(
                message=self._config.runtime.blocked_message,
                intent=intent,
                blocked=True,
            )

        handler = self.registry.get(route.target_handler)
        history = [*session.messages, ChatMessage(role=MessageRole.CUSTOMER, text=text)]
        try:
            reply = await self._generate(history, handler, session.customer)
        except Exception as exc:
            logger.exception("Response generation failed for %s", handler.id.value)
            decision = self.governor.response_failure(exc)
            return self._escalate(session_id, decision, events, text, entities, intent)

        records = await self._run_tools(reply.tool_requests, handler)
        tags = self._response_tags(rule)

        with self.memory.transaction(session_id):
            self._record_customer_turn(session_id, text, entities, intent)
            self.memory.set_current_handler(session_id, handler.id)
            for record in records:
                self.memory.append_tool_call(session_id, record)
            self.memory.append_message(session_id, MessageRole.AGENT, reply.text)

        for record in records:
            tool_data: dict[str, Any] = {"handle": record.handle, "success": record.success}
            if record.error:
                tool_data["error"] = record.error
            events.append(_event(TraceEventType.TOOL_CALL, **tool_data))
        events.append(_event(
            TraceEventType.MESSAGE,
            role=MessageRole.AGENT.value,
            text=reply.text,
            handler=handler.id.value,
            tags=tags,
        ))
        self.tracer.record_many(session_id, events)

        result = OrchestratorReply(
            message=reply.text,
            tools_called=[r.handle for r in records],
            intent=intent,
            handler=handler.id,
            tags=tags,
        )
        if any(not r.success for r in records):
            failures = self.memory.get_session(session_id).context.tool_failure_count
            failure_decision = self.governor.check_tool_failures(failures)
            if failure_decision is not None:
                ack = self._escalate(session_id, failure_decision, [])
                result.message = f"{reply.text}\n\n{ack.message}"
                result.escalated = True
        return result

    def _acknowledge_escalated(self, session_id: str, text: str) -> OrchestratorReply:
        with self.memory.transaction(session_id):
            self.memory.append_message(session_id, MessageRole.CUSTOMER, text)
        self.tracer.record(
            session_id,
            TraceEventType.MESSAGE,
            {"role": MessageRole.CUSTOMER.value, "text": text, "auto_reply": False},
        )
        logger.info("Session already escalated; auto-reply suppressed")
        return OrchestratorReply(message=self._config.escalation.ack_message, escalated=True)

    def _escalate(
        self,
        session_id: str,
        decision: EscalationDecision,
        events: list[TraceEvent],
        text: Optional[str] = None,
        entities: Optional[ExtractedEntities] = None,
        intent: Optional[Intent] = None,
    ) -> OrchestratorReply:
        """Commit an escalation step.

        The flag is committed first. Building the summary is a separate
        step whose failure is logged but leaves the flag in place.
        """
        with self.memory.transaction(session_id):
            if text is not None and entities is not None and intent is not None:
                self._record_customer_turn(session_id, text, entities, intent)
            self.memory.escalate(session_id, decision.reason, decision.trigger)

        summary: Optional[EscalationSummary] = None
        try:
            summary = self.governor.build_summary(self.memory.get_session(session_id), decision)
            self.memory.attach_escalation_summary(session_id, summary)
        except Exception:
            logger.exception("Escalation summary could not be built; flag kept")

        events.append(_event(
            TraceEventType.ESCALATION,
            reason=decision.reason,
            trigger=decision.trigger.value,
            rule_id=decision.rule_id,
            summary=summary.model_dump(mode="json") if summary else None,
        ))
        self.tracer.record_many(session_id, events)
        return OrchestratorReply(
            message=self._config.escalation.ack_message,
            escalated=True,
            intent=intent,
            tags=[decision.rule_tag] if decision.rule_tag else [],
        )

    def _record_customer_turn(
        self,
        session_id: str,
        text: str,
        entities: ExtractedEntities,
        intent: Intent,
    ) -> None:
        self.memory.append_message(session_id, MessageRole.CUSTOMER, text)
        self.memory.merge_entities(session_id, entities)
        self.memory.append_intent(session_id, intent)

    @staticmethod
    def _routing_event(
        route: RouteDecision,
        previous: Optional[HandlerId],
        rule: Optional[DynamicRule],
        keywords: list[str],
    ) -> TraceEvent:
        data: dict[str, Any] = {
            "from": previous.value if previous else None,
            "to": route.target_handler.value if route.target_handler else None,
            "intent": route.intent.value,
            "blocked": route.blocked,
            "continued": route.continued,
        }
        if keywords:
            data["keywords"] = keywords
        if route.rule_id:
            data["rule_id"] = route.rule_id
        if route.reason:
            data["reason"] = route.reason
        if rule is not None and rule.action.tag:
            data["tag"] = rule.action.tag
        return TraceEvent(type=TraceEventType.ROUTING, data=data)

    @staticmethod
    def _response_tags(rule: Optional[DynamicRule]) -> list[str]:
        if rule is not None and rule.action.type == RuleActionType.MODIFY_RESPONSE and rule.action.tag:
            return [rule.action.tag]
        return []

    async def _generate(
        self, history: list[ChatMessage], handler: HandlerSpec, customer: CustomerInfo
    ) -> GeneratedReply:
        """Call the response generator, retrying any failure it raises."""
        attempts = self._config.runtime.response_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._responder.generate(history, handler, customer)
            except Exception as exc:
                logger.warning(
                    "Response generation attempt %d/%d failed: %s", attempt, attempts, exc
                )
                if attempt == attempts:
                    raise
        raise ResponseGenerationError("Response generator was never attempted")

    async def _run_tools(
        self, requests: list[ToolCallRequest], handler: HandlerSpec
    ) -> list[ToolCallRecord]:
        records: list[ToolCallRecord] = []
        for request in requests:
            if not handler.allows_tool(request.handle):
                result = ToolResult(
                    success=False,
                    error=f"Tool '{request.handle}' is not available to {handler.id.value}",
                )
            else:
                try:
                    result = await self._tool_client.call(request)
                except Exception as exc:
                    logger.exception("Tool client raised for %s", request.handle)
                    result = ToolResult(success=False, error=str(exc) or type(exc).__name__)
            if not result.success:
                logger.warning("Tool %s failed: %s", request.handle, result.error)
            records.append(ToolCallRecord(
                handle=request.handle,
                inputs=request.params,
                output=result.data,
                success=result.success,
                error=result.error,
            ))
        return records


def build_orchestrator(
    responder: Optional[ResponseGenerator] = None,
    tool_client: Optional[ToolClient] = None,
    config: AppConfig = settings,
) -> Orchestrator:
    """Build the default process-scoped orchestrator graph.

    Falls back to the offline keyword responder and mock commerce client
    when no collaborators are supplied.
    """
    from support_mas.tools.commerce import MockCommerceClient
    from support_mas.tools.responder import KeywordResponseGenerator

    return Orchestrator(
        responder=responder or KeywordResponseGenerator(),
        tool_client=tool_client or MockCommerceClient(),
        config=config,
    )
