"""
The closed set of conversational handlers.

Each handler declares the intents it can service and the tool handles it
is allowed to invoke. The declared intent set drives session continuity
in the router; the tool set is what the response generator is offered
and what the orchestrator validates tool requests against.
"""

from dataclasses import dataclass

from support_mas.prompts.system_prompts import (
    ESCALATION_PROMPT,
    GENERAL_SUPPORT_PROMPT,
    ORDER_MANAGEMENT_PROMPT,
    PRODUCT_SUPPORT_PROMPT,
    REFUNDS_RETURNS_PROMPT,
    SUBSCRIPTIONS_PROMPT,
)
from support_mas.schemas.routing_schema import HandlerId, Intent


@dataclass(frozen=True)
class HandlerSpec:
    """Static description of one handler."""

    id: HandlerId
    display_name: str
    intents: frozenset[Intent]
    tools: tuple[str, ...]
    instructions: str
    aliases: tuple[str, ...] = ()

    def can_handle(self, intent: Intent) -> bool:
        return intent in self.intents

    def allows_tool(self, handle: str) -> bool:
        return handle in self.tools


HANDLER_SPECS: tuple[HandlerSpec, ...] = (
    HandlerSpec(
        id=HandlerId.ORDER_MANAGEMENT,
        display_name="Order Management",
        intents=frozenset({
            Intent.ORDER_STATUS,
            Intent.CANCEL_ORDER,
            Intent.SHIPPING_ADDRESS,
            Intent.RETURN_REQUEST,
            Intent.GENERAL_INQUIRY,
        }),
        tools=(
            "shopify_get_customer_orders",
            "shopify_get_order_details",
            "shopify_cancel_order",
            "shopify_update_order_shipping_address",
        ),
        instructions=ORDER_MANAGEMENT_PROMPT,
        aliases=("order management", "orders", "order team", "wismo"),
    ),
    HandlerSpec(
        id=HandlerId.SUBSCRIPTIONS,
        display_name="Subscriptions",
        intents=frozenset({
            Intent.SUBSCRIPTION_CANCEL,
            Intent.SUBSCRIPTION_PAUSE,
            Intent.SUBSCRIPTION_INQUIRY,
            Intent.SHIPPING_ADDRESS,
            Intent.DISCOUNT_REQUEST,
            Intent.GENERAL_INQUIRY,
        }),
        tools=(
            "skio_get_subscriptions",
            "skio_pause_subscription",
            "skio_skip_next_order",
            "skio_cancel_subscription",
        ),
        instructions=SUBSCRIPTIONS_PROMPT,
        aliases=("subscription", "subscriptions team", "retention"),
    ),
    HandlerSpec(
        id=HandlerId.REFUNDS_RETURNS,
        display_name="Refunds & Returns",
        intents=frozenset({
            Intent.REFUND_REQUEST,
            Intent.RETURN_REQUEST,
            Intent.CANCEL_ORDER,
            Intent.GENERAL_INQUIRY,
        }),
        tools=(
            "shopify_get_order_details",
            "shopify_refund_order",
            "shopify_create_return",
        ),
        instructions=REFUNDS_RETURNS_PROMPT,
        aliases=("refunds", "returns", "refund team"),
    ),
    HandlerSpec(
        id=HandlerId.PRODUCT_SUPPORT,
        display_name="Product Support",
        intents=frozenset({
            Intent.PRODUCT_INQUIRY,
            Intent.DISCOUNT_REQUEST,
            Intent.GENERAL_INQUIRY,
        }),
        tools=(
            "shopify_get_product_details",
            "shopify_create_discount_code",
        ),
        instructions=PRODUCT_SUPPORT_PROMPT,
        aliases=("product", "products", "product team"),
    ),
    HandlerSpec(
        id=HandlerId.GENERAL_SUPPORT,
        display_name="General Support",
        intents=frozenset({
            Intent.GENERAL_INQUIRY,
            Intent.ORDER_STATUS,
            Intent.PRODUCT_INQUIRY,
        }),
        tools=(
            "shopify_get_customer_orders",
        ),
        instructions=GENERAL_SUPPORT_PROMPT,
        aliases=("general", "general support", "support"),
    ),
    HandlerSpec(
        id=HandlerId.ESCALATION,
        display_name="Human Handoff",
        intents=frozenset({Intent.ESCALATION_REQUEST}),
        tools=(),
        instructions=ESCALATION_PROMPT,
        aliases=("human", "humans", "escalation", "manual review"),
    ),
)

INTENT_TO_HANDLER: dict[Intent, HandlerId] = {
    Intent.ESCALATION_REQUEST: HandlerId.ESCALATION,
    Intent.SUBSCRIPTION_CANCEL: HandlerId.SUBSCRIPTIONS,
    Intent.SUBSCRIPTION_PAUSE: HandlerId.SUBSCRIPTIONS,
    Intent.SUBSCRIPTION_INQUIRY: HandlerId.SUBSCRIPTIONS,
    Intent.REFUND_REQUEST: HandlerId.REFUNDS_RETURNS,
    Intent.RETURN_REQUEST: HandlerId.REFUNDS_RETURNS,
    Intent.CANCEL_ORDER: HandlerId.ORDER_MANAGEMENT,
    Intent.SHIPPING_ADDRESS: HandlerId.ORDER_MANAGEMENT,
    Intent.ORDER_STATUS: HandlerId.ORDER_MANAGEMENT,
    Intent.PRODUCT_INQUIRY: HandlerId.PRODUCT_SUPPORT,
    Intent.DISCOUNT_REQUEST: HandlerId.PRODUCT_SUPPORT,
    Intent.GENERAL_INQUIRY: HandlerId.GENERAL_SUPPORT,
}
