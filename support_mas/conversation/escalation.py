"""
Escalation governor: decides when a conversation needs a human.

Triggers are evaluated in a fixed order and the first hit wins:
1. Explicit request: the customer asks for a person
2. Dynamic rule: an operator rule with an ESCALATE action matched
3. Intent diversity: the conversation has wandered across too many topics

Further hooks run after routing: one for routes that land on the human
handoff handler, and failure hooks for tools and the response generator.

The governor only decides and summarizes. Setting the flag is the job of
SessionMemory, driven by the orchestrator.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from support_mas.config import settings
from support_mas.schemas.routing_schema import HandlerId, Intent, RouteDecision
from support_mas.schemas.rule_schema import DynamicRule, RuleActionType
from support_mas.schemas.session_schema import (
    EscalationSummary,
    EscalationTrigger,
    Session,
)

logger = logging.getLogger(__name__)

EXPLICIT_ESCALATION_PHRASES: tuple[str, ...] = (
    "human", "manager", "supervisor", "real person",
    "speak to", "talk to", "transfer to", "representative",
)


@dataclass(frozen=True)
class EscalationDecision:
    """Outcome of an escalation check that fired."""
    trigger: EscalationTrigger
    reason: str
    rule_tag: Optional[str] = None
    rule_id: Optional[str] = None


def distinct_intents(intents: Iterable[Intent]) -> list[Intent]:
    """Distinct intents in first-seen order."""
    return list(dict.fromkeys(intents))


class EscalationGovernor:
    """Evaluates escalation triggers and builds the human handoff summary."""

    def __init__(
        self,
        phrases: tuple[str, ...] = EXPLICIT_ESCALATION_PHRASES,
        intent_diversity_threshold: int = settings.escalation.intent_diversity_threshold,
        max_tool_failures: int = settings.escalation.max_tool_failures,
    ) -> None:
        self.phrases = phrases
        self.intent_diversity_threshold = intent_diversity_threshold
        self.max_tool_failures = max_tool_failures

    def check_explicit_request(self, text: str) -> Optional[EscalationDecision]:
        lower = text.lower()
        for phrase in self.phrases:
            if phrase in lower:
                logger.info("Explicit escalation phrase detected: '%s'", phrase)
                return EscalationDecision(
                    trigger=EscalationTrigger.EXPLICIT_REQUEST,
                    reason=f"Customer requested a human ('{phrase}')",
                )
        return None

    def check_rule(self, rule: Optional[DynamicRule]) -> Optional[EscalationDecision]:
        if rule is None or rule.action.type != RuleActionType.ESCALATE:
            return None
        logger.info("Dynamic rule %s requires escalation", rule.id)
        return EscalationDecision(
            trigger=EscalationTrigger.DYNAMIC_RULE,
            reason=rule.action.reason or "Dynamic rule triggered",
            rule_tag=rule.action.tag,
            rule_id=rule.id,
        )

    def check_intent_diversity(self, intents: list[Intent]) -> Optional[EscalationDecision]:
        seen = distinct_intents(intents)
        if len(seen) < self.intent_diversity_threshold:
            return None
        logger.info("Intent diversity threshold reached: %s", [i.value for i in seen])
        return EscalationDecision(
            trigger=EscalationTrigger.INTENT_DIVERSITY,
            reason=(
                f"Conversation spans {len(seen)} distinct intents "
                f"(threshold {self.intent_diversity_threshold})"
            ),
        )

    def evaluate(
        self,
        text: str,
        rule: Optional[DynamicRule],
        intents: list[Intent],
    ) -> Optional[EscalationDecision]:
        """Run the message-level triggers in order.

        ``intents`` is the session's full intent history including the
        intent of the current message.
        """
        return (
            self.check_explicit_request(text)
            or self.check_rule(rule)
            or self.check_intent_diversity(intents)
        )

    def check_handoff_route(
        self,
        route: RouteDecision,
        rule: Optional[DynamicRule] = None,
    ) -> Optional[EscalationDecision]:
        """Escalation hook for routes that land on the human handoff handler.

        A REDIRECT rule pointing at the handoff handler escalates as a
        dynamic rule; any other route there came from the customer's own
        wording and counts as an explicit request.
        """
        if route.target_handler != HandlerId.ESCALATION:
            return None
        if (
            rule is not None
            and rule.action.type == RuleActionType.REDIRECT
            and route.rule_id == rule.id
        ):
            logger.info("Dynamic rule %s redirects to human handoff", rule.id)
            return EscalationDecision(
                trigger=EscalationTrigger.DYNAMIC_RULE,
                reason=rule.action.reason or "Dynamic rule triggered",
                rule_tag=rule.action.tag,
                rule_id=rule.id,
            )
        logger.info("Routed %s to human handoff", route.intent.value)
        return EscalationDecision(
            trigger=EscalationTrigger.EXPLICIT_REQUEST,
            reason=f"Customer routed to human handoff ({route.intent.value})",
        )

    def check_tool_failures(self, failure_count: int) -> Optional[EscalationDecision]:
        """Escalation hook for repeated tool failures within one session."""
        if failure_count < self.max_tool_failures:
            return None
        logger.warning("Tool failure threshold reached (%d)", failure_count)
        return EscalationDecision(
            trigger=EscalationTrigger.TOOL_FAILURES,
            reason=f"{failure_count} tool call(s) failed in this conversation",
        )

    def response_failure(self, error: Exception) -> EscalationDecision:
        return EscalationDecision(
            trigger=EscalationTrigger.RESPONSE_FAILURE,
            reason=f"Automated reply unavailable: {error}",
        )

    def build_summary(self, session: Session, decision: EscalationDecision) -> EscalationSummary:
        """Build the structured handoff record from a session snapshot."""
        return EscalationSummary(
            session_id=session.id,
            customer_email=session.customer.email,
            reason=decision.reason,
            trigger=decision.trigger,
            message_count=len(session.messages),
            tool_call_count=len(session.tool_calls),
            distinct_intents=distinct_intents(session.context.intent_history),
            mentioned_order_numbers=list(session.context.mentioned_order_numbers),
            current_handler=session.context.current_handler,
            rule_tag=decision.rule_tag,
        )
