"""
Router: picks the handler for a classified message.

Decision order:
  (a) BLOCK rule      -> no handler, blocked result carrying the rule reason
  (b) REDIRECT rule   -> the rule's target handler
  (c) routing table   -> default handler for the intent
  (d) continuity      -> stay with the current handler when it declares the
                         intent and differs from the table default
"""

import logging
from typing import Optional

from support_mas.agents.registry import HandlerRegistry
from support_mas.schemas.routing_schema import HandlerId, Intent, RouteDecision
from support_mas.schemas.rule_schema import DynamicRule, RuleActionType

logger = logging.getLogger(__name__)


class Router:
    """Combines intent, dynamic rule, and session continuity into a route."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry

    def route(
        self,
        intent: Intent,
        rule: Optional[DynamicRule] = None,
        current_handler: Optional[HandlerId] = None,
    ) -> RouteDecision:
        if rule is not None and rule.action.type == RuleActionType.BLOCK:
            logger.info("Message blocked by rule %s", rule.id)
            return RouteDecision(
                intent=intent,
                blocked=True,
                reason=rule.action.reason,
                rule_id=rule.id,
            )

        if rule is not None and rule.action.type == RuleActionType.REDIRECT:
            target = rule.action.target_handler
            if target is not None:
                self._registry.get(target)
                logger.info("Rule %s redirects to %s", rule.id, target.value)
                return RouteDecision(
                    intent=intent,
                    target_handler=target,
                    reason=rule.action.reason,
                    rule_id=rule.id,
                )

        default = self._registry.default_for(intent)
        rule_id = rule.id if rule is not None else None

        if (
            current_handler is not None
            and current_handler != default
            and self._registry.get(current_handler).can_handle(intent)
        ):
            logger.debug(
                "Continuity: staying with %s for %s (default %s)",
                current_handler.value, intent.value, default.value,
            )
            return RouteDecision(
                intent=intent,
                target_handler=current_handler,
                rule_id=rule_id,
                continued=True,
            )

        return RouteDecision(intent=intent, target_handler=default, rule_id=rule_id)
