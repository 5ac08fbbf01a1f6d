"""
Operator-authored dynamic rules, parsed from natural-language prompts.

Prompts such as "If customer wants to update address, mark as
NEEDS_ATTENTION and escalate" become a keyword trigger plus an action.
Parsing is a best-effort heuristic kept behind the ``RulePromptParser``
protocol so it can be swapped without touching matching or routing.

Matching: the first active rule, in the order
rules were added, with at least one keyword contained in the message
wins. There is no scoring.
"""

import logging
import re
import threading
import uuid
from typing import Optional, Protocol

from support_mas.agents.handlers import HANDLER_SPECS
from support_mas.schemas.routing_schema import HandlerId
from support_mas.schemas.rule_schema import (
    DynamicRule,
    RuleAction,
    RuleActionType,
    RuleTrigger,
)

logger = logging.getLogger(__name__)

# Clause extraction patterns, tried in order.
_TRIGGER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(
        r"if\s+(?:a\s+)?customers?\s+(?:wants?\s+to|asks?\s+to|requests?\s+to)\s+([^,.]+)",
        re.IGNORECASE,
    ),
    re.compile(r"when\s+(?:a\s+)?customers?\s+([^,.]+)", re.IGNORECASE),
    re.compile(r"for\s+([^,.]+?)\s+requests?\b", re.IGNORECASE),
]

_CLAUSE_STOP_WORDS = frozenset({
    "their", "the", "a", "an", "order", "orders", "subscription",
    "my", "his", "her", "its", "and", "or", "to", "for", "any", "all",
})

_FALLBACK_STOP_WORDS = frozenset({
    "if", "when", "do", "not", "don", "dont", "should", "must", "always",
    "never", "the", "a", "an", "all", "any", "and", "then", "that", "this",
    "with", "from", "please", "customer", "customers",
    "block", "escalate", "redirect", "route", "mark", "needs", "attention",
})

MIN_CLAUSE_TOKEN_LENGTH = 3
MIN_FALLBACK_TOKEN_LENGTH = 4
MAX_FALLBACK_KEYWORDS = 3

_TOKEN_RE = re.compile(r"[a-z0-9_]+")
_TAG_RE = re.compile(r"mark\s+(?:as\s+)?['\"]?([A-Za-z_]+)['\"]?", re.IGNORECASE)
_REDIRECT_TARGET_RE = re.compile(
    r"(?:redirect|route)\b.*?\bto\s+(?:the\s+)?([a-z_ ]+)",
    re.IGNORECASE,
)

_ESCALATE_MARKERS = ("escalate", "needs_attention")
_BLOCK_MARKERS = ("do not", "don't", "block")
_REDIRECT_MARKERS = ("redirect", "route to")


class RuleRejectedError(Exception):
    """Raised when a prompt cannot be turned into a usable rule."""

    def __init__(self, prompt: str, reason: str) -> None:
        super().__init__(reason)
        self.prompt = prompt
        self.reason = reason


class RulePromptParser(Protocol):
    """Strategy turning an operator prompt into a rule, or ``None``."""

    def parse(self, prompt: str) -> Optional[DynamicRule]:
        ...


def _unique(tokens: list[str]) -> list[str]:
    return list(dict.fromkeys(tokens))


class HeuristicPromptParser:
    """Phrase-pattern keyword extraction with a whole-prompt fallback."""

    def extract_keywords(self, prompt: str) -> list[str]:
        for pattern in _TRIGGER_PATTERNS:
            match = pattern.search(prompt)
            if match:
                tokens = _TOKEN_RE.findall(match.group(1).lower())
                keywords = [
                    t for t in tokens
                    if t not in _CLAUSE_STOP_WORDS and len(t) >= MIN_CLAUSE_TOKEN_LENGTH
                ]
                return _unique(keywords)

        tokens = _TOKEN_RE.findall(prompt.lower())
        keywords = [
            t for t in tokens
            if t not in _FALLBACK_STOP_WORDS
            and len(t) >= MIN_FALLBACK_TOKEN_LENGTH
            and not t.isdigit()
        ]
        return _unique(keywords)[:MAX_FALLBACK_KEYWORDS]

    def resolve_redirect_target(self, prompt: str) -> Optional[HandlerId]:
        match = _REDIRECT_TARGET_RE.search(prompt)
        if not match:
            return None
        target = match.group(1).strip().lower()
        for spec in HANDLER_SPECS:
            names = (spec.id.value, spec.id.value.replace("_", " "), *spec.aliases)
            if any(target.startswith(name) for name in names):
                return spec.id
        return None

    def parse_action(self, prompt: str) -> Optional[RuleAction]:
        lower = prompt.lower()
        tag_match = _TAG_RE.search(prompt)
        tag = tag_match.group(1).upper() if tag_match else None

        action_type: Optional[RuleActionType] = None
        reason = "Dynamic rule triggered"
        if any(m in lower for m in _ESCALATE_MARKERS):
            action_type = RuleActionType.ESCALATE
            reason = "Requires manual review per dynamic rule"
        if any(m in lower for m in _BLOCK_MARKERS):
            action_type = RuleActionType.BLOCK
            reason = "Action blocked by dynamic rule"
        if any(m in lower for m in _REDIRECT_MARKERS):
            target = self.resolve_redirect_target(prompt)
            if target is None:
                logger.warning("Redirect rule names no known handler: %r", prompt)
                return None
            return RuleAction(
                type=RuleActionType.REDIRECT,
                reason=f"Redirected to {target.value} by dynamic rule",
                tag=tag,
                target_handler=target,
            )

        if action_type is None:
            action_type = RuleActionType.MODIFY_RESPONSE if tag else RuleActionType.ESCALATE
        return RuleAction(type=action_type, reason=reason, tag=tag)

    def parse(self, prompt: str) -> Optional[DynamicRule]:
        if not prompt or not prompt.strip():
            return None
        keywords = self.extract_keywords(prompt)
        if not keywords:
            logger.warning("No trigger keywords extracted from prompt: %r", prompt)
            return None
        action = self.parse_action(prompt)
        if action is None:
            return None
        return DynamicRule(
            id=f"rule_{uuid.uuid4().hex[:12]}",
            prompt=prompt,
            trigger=RuleTrigger(keywords=keywords),
            action=action,
        )


class DynamicRuleStore:
    """
    Shared, read-mostly collection of dynamic rules.

    Writers take a lock; readers iterate over a snapshot of the list so a
    concurrent add or deactivate never breaks an in-flight match.
    """

    def __init__(self, parser: Optional[RulePromptParser] = None) -> None:
        self._parser: RulePromptParser = parser or HeuristicPromptParser()
        self._rules: list[DynamicRule] = []
        self._lock = threading.Lock()

    def parse_prompt(self, prompt: str) -> Optional[DynamicRule]:
        return self._parser.parse(prompt)

    def add_rule(self, prompt: str) -> DynamicRule:
        """Parse and store a rule.

        Raises:
            RuleRejectedError: If the prompt yields no usable rule.
        """
        rule = self._parser.parse(prompt)
        if rule is None or not rule.trigger.keywords:
            raise RuleRejectedError(
                prompt,
                "Prompt did not yield a usable rule: no trigger keywords "
                "or no known redirect target could be extracted.",
            )
        with self._lock:
            self._rules = [*self._rules, rule]
        logger.info(
            "Added rule %s (triggers: %s, action: %s%s)",
            rule.id,
            ", ".join(rule.trigger.keywords),
            rule.action.type.value,
            f", tag: {rule.action.tag}" if rule.action.tag else "",
        )
        return rule

    def check_message(self, text: str) -> Optional[DynamicRule]:
        """Return the first active rule with any keyword contained in ``text``."""
        lower = text.lower()
        for rule in self._rules:
            if not rule.active:
                continue
            if any(kw in lower for kw in rule.trigger.keywords):
                logger.info("Rule matched: %s", rule.id)
                return rule
        return None

    def get_rule(self, rule_id: str) -> Optional[DynamicRule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def get_rules(self) -> list[DynamicRule]:
        return [rule.model_copy() for rule in self._rules]

    def deactivate_rule(self, rule_id: str) -> bool:
        """Soft-delete a rule. Returns False if the id is unknown."""
        with self._lock:
            rule = self.get_rule(rule_id)
            if rule is None:
                return False
            rule.active = False
        logger.info("Deactivated rule %s", rule_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._rules = []
