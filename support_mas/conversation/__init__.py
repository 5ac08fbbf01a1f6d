from support_mas.conversation.dynamic_rules import (
    DynamicRuleStore,
    HeuristicPromptParser,
    RuleRejectedError,
)
from support_mas.conversation.entity_extractor import ExtractedEntities, extract_entities
from support_mas.conversation.escalation import EscalationDecision, EscalationGovernor
from support_mas.conversation.intent_classifier import IntentClassifier
from support_mas.conversation.router import Router
from support_mas.conversation.state_machine import (
    InvalidTransitionError,
    SessionStatusMachine,
)

__all__ = [
    "extract_entities",
    "ExtractedEntities",
    "IntentClassifier",
    "DynamicRuleStore",
    "HeuristicPromptParser",
    "RuleRejectedError",
    "EscalationGovernor",
    "EscalationDecision",
    "Router",
    "SessionStatusMachine",
    "InvalidTransitionError",
]
