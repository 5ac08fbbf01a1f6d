"""
Priority-weighted keyword intent classification.

Every intent in the table is tested for a case-insensitive substring hit
on any of its keywords. Among matching intents the highest priority
wins; equal priorities resolve to the intent listed first in the table.
Messages that match nothing fall back to GENERAL_INQUIRY.

Usage:
    classifier = IntentClassifier()
    classifier.classify("Where is my order #NP2001002?")  # Intent.ORDER_STATUS
"""

import logging
from dataclasses import dataclass, field

from support_mas.schemas.routing_schema import Intent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntentDefinition:
    """One row of the classification table."""
    intent: Intent
    priority: int
    keywords: tuple[str, ...] = ()


@dataclass
class ClassificationResult:
    """Winning intent plus every intent that had at least one keyword hit."""
    intent: Intent
    matches: dict[Intent, list[str]] = field(default_factory=dict)


FALLBACK_INTENT = Intent.GENERAL_INQUIRY

# Ordered high -> low priority. Order is also the tie-breaker.
INTENT_TABLE: list[IntentDefinition] = [
    IntentDefinition(Intent.ESCALATION_REQUEST, 15, (
        "human", "manager", "supervisor", "real person", "speak to",
        "talk to", "transfer to", "representative",
    )),
    IntentDefinition(Intent.SUBSCRIPTION_CANCEL, 10, (
        "cancel my subscription", "cancel subscription", "cancel the subscription",
        "stop my subscription", "end my subscription", "unsubscribe",
    )),
    IntentDefinition(Intent.SUBSCRIPTION_PAUSE, 10, (
        "pause", "skip", "postpone", "delay my next",
    )),
    IntentDefinition(Intent.REFUND_REQUEST, 8, (
        "refund", "money back", "reimburse", "charged twice",
    )),
    IntentDefinition(Intent.RETURN_REQUEST, 7, (
        "return", "send back", "send it back", "exchange",
    )),
    IntentDefinition(Intent.CANCEL_ORDER, 6, (
        "cancel my order", "cancel order", "cancel the order", "cancel it",
    )),
    IntentDefinition(Intent.SUBSCRIPTION_INQUIRY, 5, (
        "subscription", "subscribe", "renewal", "recurring", "next shipment",
    )),
    IntentDefinition(Intent.SHIPPING_ADDRESS, 4, (
        "address", "ship to", "deliver to", "moved",
    )),
    IntentDefinition(Intent.ORDER_STATUS, 3, (
        "where is", "order status", "tracking", "track", "shipped",
        "delivery", "arrive", "order",
    )),
    IntentDefinition(Intent.PRODUCT_INQUIRY, 2, (
        "product", "ingredient", "patch", "stickers", "how does", "safe for",
        "in stock",
    )),
    IntentDefinition(Intent.DISCOUNT_REQUEST, 2, (
        "discount", "coupon", "promo", "voucher", "sale",
    )),
    IntentDefinition(FALLBACK_INTENT, 1),
]

INTENT_PRIORITIES: dict[Intent, int] = {d.intent: d.priority for d in INTENT_TABLE}


class IntentClassifier:
    """Maps a message to exactly one intent from a fixed table."""

    def __init__(self, table: list[IntentDefinition] = INTENT_TABLE) -> None:
        self._table = table

    def classify_with_matches(self, text: str) -> ClassificationResult:
        lower = text.lower()
        matches: dict[Intent, list[str]] = {}
        best: IntentDefinition | None = None

        for defn in self._table:
            hits = [kw for kw in defn.keywords if kw in lower]
            if not hits:
                continue
            matches[defn.intent] = hits
            # Strictly greater keeps the earliest row on ties.
            if best is None or defn.priority > best.priority:
                best = defn

        intent = best.intent if best is not None else FALLBACK_INTENT
        logger.debug("Classified as %s (matches: %s)", intent.value, matches)
        return ClassificationResult(intent=intent, matches=matches)

    def classify(self, text: str) -> Intent:
        """Return the single highest-priority intent for ``text``."""
        return self.classify_with_matches(text).intent
