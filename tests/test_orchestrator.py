"""End-to-end tests for message handling through the orchestrator."""

import asyncio
import gc

import pytest

from support_mas.config import AppConfig
from support_mas.conversation.escalation import EscalationGovernor
from support_mas.runtime.memory import SessionMemory, SessionNotFoundError
from support_mas.schemas.routing_schema import HandlerId, Intent
from support_mas.schemas.session_schema import (
    EscalationTrigger,
    MessageRole,
    SessionStatus,
)
from support_mas.schemas.tool_schema import ToolCallRequest
from support_mas.schemas.trace_schema import TraceEventType
from tests.conftest import (
    FailingToolClient,
    RaisingResponder,
    RecordingToolClient,
    ScriptedResponder,
    build_test_orchestrator,
    make_config,
    make_customer,
)

CONFIG = AppConfig()
ACK = CONFIG.escalation.ack_message


def _types(orchestrator, session_id):
    return [e.type for e in orchestrator.get_trace(session_id)]


def _events(orchestrator, session_id, event_type):
    return [e for e in orchestrator.get_trace(session_id) if e.type == event_type]


class TestSessions:
    def test_start_session_returns_unique_ids(self, orchestrator, customer):
        assert orchestrator.start_session(customer) != orchestrator.start_session(customer)

    @pytest.mark.asyncio
    async def test_unknown_session_is_rejected(self, orchestrator):
        with pytest.raises(SessionNotFoundError):
            await orchestrator.handle_message("session_missing", "hello")
        assert orchestrator.memory.session_ids() == []

    def test_trace_of_unknown_session(self, orchestrator):
        with pytest.raises(SessionNotFoundError):
            orchestrator.get_trace("session_missing")

    def test_trace_of_fresh_session_is_empty(self, orchestrator, session_id):
        assert orchestrator.get_trace(session_id) == []

    def test_no_summary_before_escalation(self, orchestrator, session_id):
        assert orchestrator.get_escalation_summary(session_id) is None


class TestOrderStatus:
    @pytest.mark.asyncio
    async def test_order_lookup(self, orchestrator, session_id):
        reply = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")

        assert reply.intent == Intent.ORDER_STATUS
        assert reply.handler == HandlerId.ORDER_MANAGEMENT
        assert reply.tools_called == ["shopify_get_order_details"]
        assert not reply.escalated

        session = orchestrator.get_session(session_id)
        assert session.context.mentioned_order_numbers == ["#NP2001002"]
        assert session.context.intent_history == [Intent.ORDER_STATUS]
        assert session.context.current_handler == HandlerId.ORDER_MANAGEMENT
        assert [m.role for m in session.messages] == [MessageRole.CUSTOMER, MessageRole.AGENT]
        assert session.tool_calls[0].success
        assert session.tool_calls[0].inputs == {"order_number": "#NP2001002"}

    @pytest.mark.asyncio
    async def test_trace_order(self, orchestrator, session_id):
        await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")
        assert _types(orchestrator, session_id) == [
            TraceEventType.MESSAGE,
            TraceEventType.ROUTING,
            TraceEventType.TOOL_CALL,
            TraceEventType.MESSAGE,
        ]
        routing = _events(orchestrator, session_id, TraceEventType.ROUTING)[0]
        assert routing.data["from"] is None
        assert routing.data["to"] == "order_management"
        assert routing.data["intent"] == "order_status"
        assert routing.data["blocked"] is False
        assert routing.data["keywords"] == ["where is", "order"]
        tool = _events(orchestrator, session_id, TraceEventType.TOOL_CALL)[0]
        assert tool.data == {"handle": "shopify_get_order_details", "success": True}

    @pytest.mark.asyncio
    async def test_order_number_remembered_across_turns(self, orchestrator, session_id):
        await orchestrator.handle_message(session_id, "Order #NP2001002 is late")
        reply = await orchestrator.handle_message(session_id, "Has it shipped yet?")
        assert reply.tools_called == ["shopify_get_order_details"]
        session = orchestrator.get_session(session_id)
        assert session.tool_calls[-1].inputs == {"order_number": "#NP2001002"}
        assert len(session.messages) == 4

    @pytest.mark.asyncio
    async def test_timestamps_present(self, orchestrator, session_id):
        await orchestrator.handle_message(session_id, "Help me")
        events = orchestrator.get_trace(session_id)
        assert events
        assert all(e.timestamp is not None for e in events)


class TestExplicitEscalation:
    @pytest.mark.asyncio
    async def test_escalates_with_summary(self, orchestrator, session_id):
        reply = await orchestrator.handle_message(session_id, "I want to speak to a human")

        assert reply.escalated
        assert reply.message == ACK
        session = orchestrator.get_session(session_id)
        assert session.status == SessionStatus.ESCALATED
        assert session.context.escalated
        assert [m.text for m in session.messages] == ["I want to speak to a human"]

        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.EXPLICIT_REQUEST
        assert summary.customer_email == "baki@lookfor.ai"
        assert summary.message_count == 1

    @pytest.mark.asyncio
    async def test_escalation_trace_has_no_routing(self, orchestrator, session_id):
        await orchestrator.handle_message(session_id, "Let me talk to your manager")
        assert _types(orchestrator, session_id) == [TraceEventType.MESSAGE, TraceEventType.ESCALATION]
        escalation = _events(orchestrator, session_id, TraceEventType.ESCALATION)[0]
        assert escalation.data["trigger"] == "explicit_request"
        assert escalation.data["summary"]["session_id"] == session_id

    @pytest.mark.asyncio
    async def test_escalation_beats_block_rule(self, orchestrator, session_id):
        orchestrator.add_rule("Block all refund requests over $500")
        reply = await orchestrator.handle_message(session_id, "Refund me or get me a human")
        assert reply.escalated
        assert not reply.blocked

    @pytest.mark.asyncio
    async def test_representative_escalates(self, orchestrator, session_id):
        reply = await orchestrator.handle_message(session_id, "Can I get a representative please")

        assert reply.escalated
        assert reply.message == ACK
        assert orchestrator.get_session(session_id).status == SessionStatus.ESCALATED
        assert orchestrator.get_escalation_summary(session_id) is not None

        follow_up = await orchestrator.handle_message(session_id, "hello?")
        assert follow_up.message == ACK

    @pytest.mark.asyncio
    async def test_route_to_handoff_handler_escalates(self):
        # Phrase list without "representative": the classifier alone sends it to handoff.
        responder = ScriptedResponder()
        orchestrator = build_test_orchestrator(
            responder=responder, governor=EscalationGovernor(phrases=("human",))
        )
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "Can I get a representative please")

        assert reply.escalated
        assert reply.intent == Intent.ESCALATION_REQUEST
        assert responder.calls == []
        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.EXPLICIT_REQUEST
        assert _types(orchestrator, session_id) == [
            TraceEventType.MESSAGE, TraceEventType.ROUTING, TraceEventType.ESCALATION,
        ]
        routing = _events(orchestrator, session_id, TraceEventType.ROUTING)[0]
        assert routing.data["to"] == "escalation"


class TestAfterEscalation:
    @pytest.mark.asyncio
    async def test_auto_reply_stops(self, session_id, orchestrator):
        await orchestrator.handle_message(session_id, "I need a human")
        reply = await orchestrator.handle_message(session_id, "Are you there?")

        assert reply.escalated
        assert reply.message == ACK
        session = orchestrator.get_session(session_id)
        assert [m.role for m in session.messages] == [MessageRole.CUSTOMER, MessageRole.CUSTOMER]
        assert session.context.intent_history == [Intent.ESCALATION_REQUEST]

        last = orchestrator.get_trace(session_id)[-1]
        assert last.type == TraceEventType.MESSAGE
        assert last.data["auto_reply"] is False

    @pytest.mark.asyncio
    async def test_responder_not_called(self):
        responder = ScriptedResponder()
        orchestrator = build_test_orchestrator(responder=responder)
        session_id = orchestrator.start_session(make_customer())
        await orchestrator.handle_message(session_id, "transfer to a supervisor")
        await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")
        await orchestrator.handle_message(session_id, "hello?")
        assert responder.calls == []
        assert not _events(orchestrator, session_id, TraceEventType.ROUTING)


class TestIntentDiversity:
    @pytest.mark.asyncio
    async def test_third_distinct_intent_escalates(self, orchestrator, session_id):
        first = await orchestrator.handle_message(session_id, "Cancel my subscription")
        second = await orchestrator.handle_message(session_id, "Where is my order?")
        third = await orchestrator.handle_message(session_id, "I want a refund")

        assert not first.escalated
        assert not second.escalated
        assert third.escalated
        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.INTENT_DIVERSITY
        assert summary.distinct_intents == [
            Intent.SUBSCRIPTION_CANCEL, Intent.ORDER_STATUS, Intent.REFUND_REQUEST,
        ]

    @pytest.mark.asyncio
    async def test_repeated_intent_does_not_escalate(self, orchestrator, session_id):
        for _ in range(4):
            reply = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")
        assert not reply.escalated


class TestDynamicRules:
    @pytest.mark.asyncio
    async def test_block_rule(self, orchestrator, session_id):
        rule = orchestrator.add_rule("Block all refund requests over $500")
        reply = await orchestrator.handle_message(session_id, "I want a refund")

        assert reply.blocked
        assert reply.message == CONFIG.runtime.blocked_message
        assert reply.handler is None
        assert reply.tools_called == []

        session = orchestrator.get_session(session_id)
        assert [m.role for m in session.messages] == [MessageRole.CUSTOMER]
        assert session.context.intent_history == [Intent.REFUND_REQUEST]

        routing = _events(orchestrator, session_id, TraceEventType.ROUTING)[0]
        assert routing.data["blocked"] is True
        assert routing.data["rule_id"] == rule.id
        assert routing.data["to"] is None

    @pytest.mark.asyncio
    async def test_escalate_rule_with_tag(self, orchestrator, session_id):
        rule = orchestrator.add_rule(
            "If customer wants to update address, mark as NEEDS_ATTENTION and escalate"
        )
        reply = await orchestrator.handle_message(session_id, "Please update my address")

        assert reply.escalated
        assert reply.tags == ["NEEDS_ATTENTION"]
        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.DYNAMIC_RULE
        assert summary.rule_tag == "NEEDS_ATTENTION"
        escalation = _events(orchestrator, session_id, TraceEventType.ESCALATION)[0]
        assert escalation.data["rule_id"] == rule.id

    @pytest.mark.asyncio
    async def test_redirect_rule(self, orchestrator, session_id):
        rule = orchestrator.add_rule("Redirect shipping questions to product support")
        reply = await orchestrator.handle_message(session_id, "I have shipping questions")

        assert reply.handler == HandlerId.PRODUCT_SUPPORT
        routing = _events(orchestrator, session_id, TraceEventType.ROUTING)[0]
        assert routing.data["to"] == "product_support"
        assert routing.data["rule_id"] == rule.id

    @pytest.mark.asyncio
    async def test_redirect_to_handoff_escalates(self, orchestrator, session_id):
        rule = orchestrator.add_rule("Redirect billing complaints to the escalation team")
        assert rule.action.target_handler == HandlerId.ESCALATION

        reply = await orchestrator.handle_message(session_id, "I have billing complaints")

        assert reply.escalated
        assert reply.message == ACK
        assert orchestrator.memory.is_escalated(session_id)
        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.DYNAMIC_RULE
        escalation = _events(orchestrator, session_id, TraceEventType.ESCALATION)[0]
        assert escalation.data["rule_id"] == rule.id
        assert _events(orchestrator, session_id, TraceEventType.ROUTING)[0].data["rule_id"] == rule.id

    @pytest.mark.asyncio
    async def test_modify_response_tags_reply(self, orchestrator, session_id):
        orchestrator.add_rule("When customer mentions influencer, mark as VIP")
        reply = await orchestrator.handle_message(session_id, "I'm an influencer, any discount?")

        assert reply.tags == ["VIP"]
        assert not reply.escalated
        assert reply.handler == HandlerId.PRODUCT_SUPPORT
        agent_message = _events(orchestrator, session_id, TraceEventType.MESSAGE)[-1]
        assert agent_message.data["tags"] == ["VIP"]

    @pytest.mark.asyncio
    async def test_deactivated_rule_stops_applying(self, orchestrator, session_id):
        rule = orchestrator.add_rule("Block all refund requests over $500")
        assert orchestrator.deactivate_rule(rule.id)
        reply = await orchestrator.handle_message(session_id, "I want a refund for #NP2001001")
        assert not reply.blocked
        assert reply.handler == HandlerId.REFUNDS_RETURNS

    def test_list_rules(self, orchestrator):
        orchestrator.add_rule("For address requests, escalate")
        assert [r.trigger.keywords for r in orchestrator.list_rules()] == [["address"]]


class TestContinuity:
    @pytest.mark.asyncio
    async def test_stays_with_capable_handler(self, orchestrator, session_id):
        await orchestrator.handle_message(session_id, "Hello")
        reply = await orchestrator.handle_message(session_id, "Where is my order?")

        assert reply.handler == HandlerId.GENERAL_SUPPORT
        routing = _events(orchestrator, session_id, TraceEventType.ROUTING)[-1]
        assert routing.data["continued"] is True
        assert routing.data["from"] == "general_support"

    @pytest.mark.asyncio
    async def test_switches_when_handler_cannot_help(self, orchestrator, session_id):
        await orchestrator.handle_message(session_id, "Pause my subscription")
        reply = await orchestrator.handle_message(session_id, "I want a refund for #NP2001001")
        assert reply.handler == HandlerId.REFUNDS_RETURNS


class TestToolFailures:
    @pytest.mark.asyncio
    async def test_failures_escalate_at_threshold(self):
        tool_client = FailingToolClient()
        orchestrator = build_test_orchestrator(tool_client=tool_client)
        session_id = orchestrator.start_session(make_customer())

        first = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")
        assert not first.escalated
        assert orchestrator.get_session(session_id).context.tool_failure_count == 1

        second = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")
        assert second.escalated
        assert second.message.endswith(ACK)
        assert second.message.startswith("Hi Baki!")

        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.TOOL_FAILURES
        assert summary.tool_call_count == 2

        tool_events = _events(orchestrator, session_id, TraceEventType.TOOL_CALL)
        assert all(e.data["success"] is False for e in tool_events)
        assert tool_events[0].data["error"] == "upstream unavailable"
        assert _types(orchestrator, session_id)[-1] == TraceEventType.ESCALATION

    @pytest.mark.asyncio
    async def test_tool_outside_handler_is_refused(self):
        tool_client = RecordingToolClient()
        responder = ScriptedResponder(
            tool_requests=[ToolCallRequest(handle="skio_cancel_subscription", params={})]
        )
        orchestrator = build_test_orchestrator(responder=responder, tool_client=tool_client)
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "Where is my order?")

        assert tool_client.calls == []
        assert reply.tools_called == ["skio_cancel_subscription"]
        record = orchestrator.get_session(session_id).tool_calls[0]
        assert not record.success
        assert "not available to order_management" in record.error

    @pytest.mark.asyncio
    async def test_tool_client_exception_becomes_failure(self):
        class BrokenToolClient:
            async def call(self, request):
                raise ConnectionError("connection reset")

        orchestrator = build_test_orchestrator(tool_client=BrokenToolClient())
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")

        assert not reply.escalated
        record = orchestrator.get_session(session_id).tool_calls[0]
        assert not record.success
        assert record.error == "connection reset"

    @pytest.mark.asyncio
    async def test_any_tool_client_error_becomes_failure(self):
        class GarbledToolClient:
            async def call(self, request):
                raise ValueError("bad json from upstream")

        orchestrator = build_test_orchestrator(tool_client=GarbledToolClient())
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")

        assert reply.message.startswith("Hi Baki!")
        assert reply.tools_called == ["shopify_get_order_details"]
        session = orchestrator.get_session(session_id)
        assert [m.role for m in session.messages] == [MessageRole.CUSTOMER, MessageRole.AGENT]
        assert session.tool_calls[0].error == "bad json from upstream"
        tool_event = _events(orchestrator, session_id, TraceEventType.TOOL_CALL)[0]
        assert tool_event.data == {
            "handle": "shopify_get_order_details",
            "success": False,
            "error": "bad json from upstream",
        }


class TestResponseFailures:
    @pytest.mark.asyncio
    async def test_retries_then_escalates(self):
        responder = RaisingResponder()
        orchestrator = build_test_orchestrator(responder=responder, config=make_config(response_retries=1))
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "Where is my order?")

        assert responder.attempts == 2
        assert reply.escalated
        assert reply.message == ACK
        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.RESPONSE_FAILURE
        assert [m.text for m in orchestrator.get_session(session_id).messages] == ["Where is my order?"]

    @pytest.mark.asyncio
    async def test_no_retries(self):
        responder = RaisingResponder(asyncio.TimeoutError())
        orchestrator = build_test_orchestrator(responder=responder, config=make_config(response_retries=0))
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "hello")

        assert responder.attempts == 1
        assert reply.escalated

    @pytest.mark.asyncio
    async def test_unexpected_error_is_retried_then_escalates(self):
        responder = RaisingResponder(RuntimeError("LLM provider 503"))
        orchestrator = build_test_orchestrator(responder=responder, config=make_config(response_retries=1))
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "Where is my order?")

        assert responder.attempts == 2
        assert reply.escalated
        summary = orchestrator.get_escalation_summary(session_id)
        assert summary.trigger == EscalationTrigger.RESPONSE_FAILURE
        assert "LLM provider 503" in summary.reason
        assert [m.text for m in orchestrator.get_session(session_id).messages] == ["Where is my order?"]


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_failed_commit_leaves_no_trace(self):
        class BrokenMemory(SessionMemory):
            def set_current_handler(self, session_id, handler):
                raise RuntimeError("disk full")

        orchestrator = build_test_orchestrator(memory=BrokenMemory())
        session_id = orchestrator.start_session(make_customer())

        with pytest.raises(RuntimeError, match="disk full"):
            await orchestrator.handle_message(session_id, "Where is my order #NP2001002?")

        session = orchestrator.get_session(session_id)
        assert session.messages == []
        assert session.context.intent_history == []
        assert session.context.mentioned_order_numbers == []
        assert orchestrator.get_trace(session_id) == []

    @pytest.mark.asyncio
    async def test_summary_failure_keeps_escalation(self):
        class BrokenSummaryGovernor(EscalationGovernor):
            def build_summary(self, session, decision):
                raise ValueError("bad summary")

        orchestrator = build_test_orchestrator(governor=BrokenSummaryGovernor())
        session_id = orchestrator.start_session(make_customer())

        reply = await orchestrator.handle_message(session_id, "I want a human")

        assert reply.escalated
        assert orchestrator.memory.is_escalated(session_id)
        assert orchestrator.get_escalation_summary(session_id) is None
        escalation = _events(orchestrator, session_id, TraceEventType.ESCALATION)[0]
        assert escalation.data["summary"] is None


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_same_session_messages_are_serialized(self):
        responder = ScriptedResponder(delay=0.01)
        orchestrator = build_test_orchestrator(responder=responder)
        session_id = orchestrator.start_session(make_customer())

        await asyncio.gather(
            orchestrator.handle_message(session_id, "Hello"),
            orchestrator.handle_message(session_id, "Anyone?"),
        )

        roles = [m.role for m in orchestrator.get_session(session_id).messages]
        assert roles == [
            MessageRole.CUSTOMER, MessageRole.AGENT, MessageRole.CUSTOMER, MessageRole.AGENT,
        ]
        assert [len(history) for history, _ in responder.calls] == [1, 3]

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, orchestrator):
        first = orchestrator.start_session(make_customer())
        second = orchestrator.start_session(make_customer(email="ebrar@lookfor.ai", first_name="Ebrar"))

        await asyncio.gather(
            orchestrator.handle_message(first, "I want to speak to a human"),
            orchestrator.handle_message(second, "Where is my order #NP3001001?"),
        )

        assert orchestrator.memory.is_escalated(first)
        assert not orchestrator.memory.is_escalated(second)
        assert orchestrator.get_session(second).context.mentioned_order_numbers == ["#NP3001001"]

    @pytest.mark.asyncio
    async def test_session_lock_released_after_message(self, orchestrator, session_id):
        await asyncio.gather(
            orchestrator.handle_message(session_id, "Hello"),
            orchestrator.handle_message(session_id, "Anyone?"),
        )
        gc.collect()
        assert session_id not in orchestrator._locks
        assert len(orchestrator.get_session(session_id).messages) == 4
