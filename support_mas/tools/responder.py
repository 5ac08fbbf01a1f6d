"""
Offline keyword response generator.

Stands in for the LLM-backed generator in the playground, the judge
harness and tests. It reads the last customer message, picks a canned
reply for the active handler and requests the tools that handler would
call. Order numbers are looked up in the whole conversation so a number
given earlier in the session is reused.
"""

import logging
from typing import Optional

from support_mas.agents.handlers import HandlerSpec
from support_mas.conversation.entity_extractor import extract_entities
from support_mas.schemas.routing_schema import HandlerId
from support_mas.schemas.session_schema import ChatMessage, CustomerInfo, MessageRole
from support_mas.schemas.tool_schema import GeneratedReply, ToolCallRequest

logger = logging.getLogger(__name__)

ASK_ORDER_NUMBER = "Could you share your order number? It starts with #NP."


def _last_customer_text(history: list[ChatMessage]) -> str:
    for message in reversed(history):
        if message.role == MessageRole.CUSTOMER:
            return message.text
    return ""


def _latest_order_number(history: list[ChatMessage]) -> Optional[str]:
    for message in reversed(history):
        if message.role != MessageRole.CUSTOMER:
            continue
        found = extract_entities(message.text).order_numbers
        if found:
            return found[-1]
    return None


def _has_any(text: str, *words: str) -> bool:
    return any(w in text for w in words)


class KeywordResponseGenerator:
    """Deterministic generator driven by handler id and message keywords."""

    async def generate(
        self,
        history: list[ChatMessage],
        handler: HandlerSpec,
        customer: CustomerInfo,
    ) -> GeneratedReply:
        text = _last_customer_text(history).lower()
        order_number = _latest_order_number(history)
        name = customer.first_name or "there"

        if handler.id == HandlerId.ORDER_MANAGEMENT:
            reply = self._orders(text, order_number, customer)
        elif handler.id == HandlerId.SUBSCRIPTIONS:
            reply = self._subscriptions(text, customer)
        elif handler.id == HandlerId.REFUNDS_RETURNS:
            reply = self._refunds(text, order_number)
        elif handler.id == HandlerId.PRODUCT_SUPPORT:
            reply = self._products(text, customer)
        elif handler.id == HandlerId.GENERAL_SUPPORT:
            reply = self._general(text, customer)
        else:
            reply = GeneratedReply(text="A member of our team will pick this up shortly.")

        requests = [r for r in reply.tool_requests if handler.allows_tool(r.handle)]
        logger.debug(
            "Generated reply for %s with tools %s",
            handler.id.value, [r.handle for r in requests],
        )
        return GeneratedReply(text=f"Hi {name}! {reply.text}", tool_requests=requests)

    @staticmethod
    def _orders(text: str, order_number: Optional[str], customer: CustomerInfo) -> GeneratedReply:
        if order_number is None:
            if _has_any(text, "cancel", "address"):
                return GeneratedReply(text=ASK_ORDER_NUMBER)
            return GeneratedReply(
                text="Here are your recent orders. Which one are you asking about?",
                tool_requests=[ToolCallRequest(
                    handle="shopify_get_customer_orders",
                    params={"email": customer.email},
                )],
            )
        if "cancel" in text:
            return GeneratedReply(
                text=f"I've requested the cancellation of order {order_number}.",
                tool_requests=[ToolCallRequest(
                    handle="shopify_cancel_order",
                    params={"order_number": order_number},
                )],
            )
        if "address" in text:
            return GeneratedReply(
                text=f"I can update the address on {order_number}. "
                     "Please send the full new shipping address.",
            )
        return GeneratedReply(
            text=f"Let me check order {order_number} for you.",
            tool_requests=[ToolCallRequest(
                handle="shopify_get_order_details",
                params={"order_number": order_number},
            )],
        )

    @staticmethod
    def _subscriptions(text: str, customer: CustomerInfo) -> GeneratedReply:
        params = {"email": customer.email}
        if _has_any(text, "cancel", "unsubscribe", "stop"):
            return GeneratedReply(
                text="I've cancelled your subscription. You won't be charged again.",
                tool_requests=[ToolCallRequest(handle="skio_cancel_subscription", params=params)],
            )
        if "skip" in text:
            return GeneratedReply(
                text="Done, your next shipment is skipped.",
                tool_requests=[ToolCallRequest(handle="skio_skip_next_order", params=params)],
            )
        if _has_any(text, "pause", "hold"):
            return GeneratedReply(
                text="Your subscription is now paused.",
                tool_requests=[ToolCallRequest(handle="skio_pause_subscription", params=params)],
            )
        return GeneratedReply(
            text="Here are the details of your subscription.",
            tool_requests=[ToolCallRequest(handle="skio_get_subscriptions", params=params)],
        )

    @staticmethod
    def _refunds(text: str, order_number: Optional[str]) -> GeneratedReply:
        if order_number is None:
            return GeneratedReply(text=ASK_ORDER_NUMBER)
        params = {"order_number": order_number}
        if _has_any(text, "return", "send back", "exchange"):
            return GeneratedReply(
                text=f"I've opened a return for order {order_number}. "
                     "You'll get a label by email.",
                tool_requests=[ToolCallRequest(handle="shopify_create_return", params=params)],
            )
        return GeneratedReply(
            text=f"I've issued a refund for order {order_number}. "
                 "It can take 5-10 business days to appear.",
            tool_requests=[
                ToolCallRequest(handle="shopify_get_order_details", params=params),
                ToolCallRequest(handle="shopify_refund_order", params=params),
            ],
        )

    @staticmethod
    def _products(text: str, customer: CustomerInfo) -> GeneratedReply:
        if _has_any(text, "discount", "coupon", "promo", "code"):
            return GeneratedReply(
                text="Here's a 10% discount code for your next order.",
                tool_requests=[ToolCallRequest(
                    handle="shopify_create_discount_code",
                    params={"email": customer.email},
                )],
            )
        return GeneratedReply(
            text="Here's what I found about our patches.",
            tool_requests=[ToolCallRequest(
                handle="shopify_get_product_details",
                params={"query": text},
            )],
        )

    @staticmethod
    def _general(text: str, customer: CustomerInfo) -> GeneratedReply:
        if "order" in text:
            return GeneratedReply(
                text="Let me pull up your orders.",
                tool_requests=[ToolCallRequest(
                    handle="shopify_get_customer_orders",
                    params={"email": customer.email},
                )],
            )
        return GeneratedReply(text="Thanks for reaching out. How can I help you today?")
