"""Tests for priority-weighted keyword intent classification."""

import pytest

from support_mas.conversation.intent_classifier import (
    FALLBACK_INTENT,
    INTENT_PRIORITIES,
    INTENT_TABLE,
    IntentClassifier,
    IntentDefinition,
)
from support_mas.schemas.routing_schema import Intent


@pytest.fixture
def classifier():
    return IntentClassifier()


class TestSingleIntents:
    @pytest.mark.parametrize("text, expected", [
        ("Where is my order #NP2001002?", Intent.ORDER_STATUS),
        ("I want a refund", Intent.REFUND_REQUEST),
        ("Please cancel my subscription", Intent.SUBSCRIPTION_CANCEL),
        ("Can I pause deliveries for a month?", Intent.SUBSCRIPTION_PAUSE),
        ("I'd like to return this", Intent.RETURN_REQUEST),
        ("I need to change my shipping address", Intent.SHIPPING_ADDRESS),
        ("Is the patch safe for toddlers?", Intent.PRODUCT_INQUIRY),
        ("Do you have a coupon?", Intent.DISCOUNT_REQUEST),
        ("Let me talk to a human", Intent.ESCALATION_REQUEST),
    ])
    def test_classifies(self, classifier, text, expected):
        assert classifier.classify(text) == expected

    def test_case_insensitive(self, classifier):
        assert classifier.classify("REFUND NOW") == Intent.REFUND_REQUEST


class TestPriority:
    def test_higher_priority_wins(self, classifier):
        # "order" (order_status, 3) vs "refund" (refund_request, 8)
        assert classifier.classify("Refund my order") == Intent.REFUND_REQUEST

    def test_escalation_beats_everything(self, classifier):
        assert classifier.classify("Cancel my subscription or get me a manager") == Intent.ESCALATION_REQUEST

    def test_cancel_order_beats_order_status(self, classifier):
        assert classifier.classify("Please cancel my order #NP3001002") == Intent.CANCEL_ORDER

    def test_tie_resolves_to_earlier_row(self):
        table = [
            IntentDefinition(Intent.PRODUCT_INQUIRY, 2, ("patch",)),
            IntentDefinition(Intent.DISCOUNT_REQUEST, 2, ("sale",)),
        ]
        classifier = IntentClassifier(table)
        assert classifier.classify("is the patch on sale") == Intent.PRODUCT_INQUIRY

    def test_matches_report_every_hit(self, classifier):
        result = classifier.classify_with_matches("Refund my order")
        assert result.intent == Intent.REFUND_REQUEST
        assert Intent.ORDER_STATUS in result.matches
        assert result.matches[Intent.REFUND_REQUEST] == ["refund"]


class TestFallback:
    def test_no_match_falls_back(self, classifier):
        assert classifier.classify("asdfasdf random text") == FALLBACK_INTENT

    def test_empty_message_falls_back(self, classifier):
        assert classifier.classify("") == Intent.GENERAL_INQUIRY

    def test_no_match_has_empty_matches(self, classifier):
        assert classifier.classify_with_matches("hello").matches == {}


class TestTable:
    def test_every_intent_has_a_priority(self):
        assert set(INTENT_PRIORITIES) == set(Intent)

    def test_table_is_ordered_by_priority(self):
        priorities = [d.priority for d in INTENT_TABLE]
        assert priorities == sorted(priorities, reverse=True)
