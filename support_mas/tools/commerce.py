"""
Mock commerce tool client.

In production, these handles would call the Shopify Admin API and the
Skio subscription API. Here they run against an in-memory catalog seeded
with two test customers so the orchestrator can be exercised offline:

    baki@lookfor.ai   2 orders, ACTIVE subscription
    ebrar@lookfor.ai  2 orders, PAUSED subscription
"""

import copy
import logging
import uuid
from typing import Any, Callable, Optional, TypedDict

from support_mas.schemas.tool_schema import ToolCallRequest, ToolResult
from support_mas.utils import normalize_email, utc_now

logger = logging.getLogger(__name__)


class OrderRecord(TypedDict):
    """Order as stored in the mock store."""

    order_number: str
    email: str
    status: str
    fulfillment_status: str
    tracking_url: str
    items: list[str]
    total: float
    shipping_address: str


class SubscriptionRecord(TypedDict):
    """Subscription as stored in the mock store."""

    subscription_id: str
    email: str
    status: str
    product: str
    next_order_date: str


_SEED_ORDERS: dict[str, OrderRecord] = {
    "#NP2001001": {
        "order_number": "#NP2001001",
        "email": "baki@lookfor.ai",
        "status": "delivered",
        "fulfillment_status": "fulfilled",
        "tracking_url": "https://track.example.com/NP2001001",
        "items": ["BuzzPatch Mosquito Stickers x2"],
        "total": 39.98,
        "shipping_address": "Carrer de Mallorca 401, Barcelona",
    },
    "#NP2001002": {
        "order_number": "#NP2001002",
        "email": "baki@lookfor.ai",
        "status": "in_transit",
        "fulfillment_status": "fulfilled",
        "tracking_url": "https://track.example.com/NP2001002",
        "items": ["ZenPatch Mood Stickers x1"],
        "total": 24.99,
        "shipping_address": "Carrer de Mallorca 401, Barcelona",
    },
    "#NP3001001": {
        "order_number": "#NP3001001",
        "email": "ebrar@lookfor.ai",
        "status": "delivered",
        "fulfillment_status": "fulfilled",
        "tracking_url": "https://track.example.com/NP3001001",
        "items": ["SleepyPatch x3"],
        "total": 59.97,
        "shipping_address": "Passeig de Gracia 92, Barcelona",
    },
    "#NP3001002": {
        "order_number": "#NP3001002",
        "email": "ebrar@lookfor.ai",
        "status": "processing",
        "fulfillment_status": "unfulfilled",
        "tracking_url": "",
        "items": ["FocusPatch x1"],
        "total": 19.99,
        "shipping_address": "Passeig de Gracia 92, Barcelona",
    },
}

_SEED_SUBSCRIPTIONS: dict[str, SubscriptionRecord] = {
    "baki@lookfor.ai": {
        "subscription_id": "sub_baki_001",
        "email": "baki@lookfor.ai",
        "status": "ACTIVE",
        "product": "BuzzPatch Monthly",
        "next_order_date": "2026-11-01",
    },
    "ebrar@lookfor.ai": {
        "subscription_id": "sub_ebrar_001",
        "email": "ebrar@lookfor.ai",
        "status": "PAUSED",
        "product": "SleepyPatch Monthly",
        "next_order_date": "2026-12-01",
    },
}

_PRODUCTS: dict[str, str] = {
    "buzzpatch": "Plant-based mosquito repellent stickers, 60 per pack, suitable from age 0+.",
    "zenpatch": "Mood calming stickers with essential oils, 60 per pack.",
    "sleepypatch": "Sleep promoting stickers with lavender and mandarin, 24 per pack.",
    "focuspatch": "Focus stickers with peppermint and eucalyptus, 24 per pack.",
}


def _normalize_order_number(value: str) -> str:
    value = value.strip().upper()
    return value if value.startswith("#") else f"#{value}"


def _missing(params: dict[str, Any], *names: str) -> Optional[ToolResult]:
    missing = [n for n in names if not str(params.get(n) or "").strip()]
    if missing:
        return ToolResult(
            success=False,
            error=f"Missing required parameter(s): {', '.join(missing)}.",
        )
    return None


class MockCommerceClient:
    """In-memory stand-in for the commerce tool client."""

    def __init__(self) -> None:
        self._orders: dict[str, OrderRecord] = copy.deepcopy(_SEED_ORDERS)
        self._subscriptions: dict[str, SubscriptionRecord] = copy.deepcopy(_SEED_SUBSCRIPTIONS)
        self._handlers: dict[str, Callable[[dict[str, Any]], ToolResult]] = {
            "shopify_get_customer_orders": self.get_customer_orders,
            "shopify_get_order_details": self.get_order_details,
            "shopify_cancel_order": self.cancel_order,
            "shopify_update_order_shipping_address": self.update_shipping_address,
            "shopify_refund_order": self.refund_order,
            "shopify_create_return": self.create_return,
            "shopify_get_product_details": self.get_product_details,
            "shopify_create_discount_code": self.create_discount_code,
            "skio_get_subscriptions": self.get_subscription,
            "skio_pause_subscription": self.pause_subscription,
            "skio_skip_next_order": self.skip_next_order,
            "skio_cancel_subscription": self.cancel_subscription,
        }

    @property
    def handles(self) -> list[str]:
        return list(self._handlers)

    async def call(self, request: ToolCallRequest) -> ToolResult:
        handler = self._handlers.get(request.handle)
        if handler is None:
            return ToolResult(success=False, error=f"Unknown tool handle: {request.handle}")
        result = handler(request.params)
        logger.debug("Tool %s -> success=%s", request.handle, result.success)
        return result

    def _find_order(self, params: dict[str, Any]) -> tuple[Optional[OrderRecord], Optional[ToolResult]]:
        error = _missing(params, "order_number")
        if error:
            return None, error
        number = _normalize_order_number(params["order_number"])
        order = self._orders.get(number)
        if order is None:
            return None, ToolResult(success=False, error=f"Order {number} not found.")
        return order, None

    def _find_subscription(
        self, params: dict[str, Any]
    ) -> tuple[Optional[SubscriptionRecord], Optional[ToolResult]]:
        error = _missing(params, "email")
        if error:
            return None, error
        email = normalize_email(params["email"])
        subscription = self._subscriptions.get(email)
        if subscription is None:
            return None, ToolResult(success=False, error=f"No subscription found for {email}.")
        return subscription, None

    def get_customer_orders(self, params: dict[str, Any]) -> ToolResult:
        error = _missing(params, "email")
        if error:
            return error
        email = normalize_email(params["email"])
        orders = [dict(o) for o in self._orders.values() if o["email"] == email]
        return ToolResult(success=True, data={"orders": orders})

    def get_order_details(self, params: dict[str, Any]) -> ToolResult:
        order, error = self._find_order(params)
        if error:
            return error
        return ToolResult(success=True, data=dict(order))

    def cancel_order(self, params: dict[str, Any]) -> ToolResult:
        order, error = self._find_order(params)
        if error:
            return error
        if order["fulfillment_status"] == "fulfilled":
            return ToolResult(
                success=False,
                error=f"Order {order['order_number']} has already shipped and cannot be cancelled.",
            )
        order["status"] = "cancelled"
        logger.info("Order cancelled: %s", order["order_number"])
        return ToolResult(success=True, data={"order_number": order["order_number"], "status": "cancelled"})

    def update_shipping_address(self, params: dict[str, Any]) -> ToolResult:
        order, error = self._find_order(params)
        if error:
            return error
        error = _missing(params, "address")
        if error:
            return error
        if order["fulfillment_status"] == "fulfilled":
            return ToolResult(
                success=False,
                error=f"Order {order['order_number']} has shipped; the address can no longer change.",
            )
        order["shipping_address"] = params["address"].strip()
        return ToolResult(success=True, data=dict(order))

    def refund_order(self, params: dict[str, Any]) -> ToolResult:
        order, error = self._find_order(params)
        if error:
            return error
        if order["status"] == "refunded":
            return ToolResult(success=False, error=f"Order {order['order_number']} is already refunded.")
        order["status"] = "refunded"
        logger.info("Order refunded: %s", order["order_number"])
        return ToolResult(
            success=True,
            data={"order_number": order["order_number"], "amount": order["total"]},
        )

    def create_return(self, params: dict[str, Any]) -> ToolResult:
        order, error = self._find_order(params)
        if error:
            return error
        if order["status"] != "delivered":
            return ToolResult(
                success=False,
                error=f"Order {order['order_number']} has not been delivered yet.",
            )
        return ToolResult(
            success=True,
            data={
                "order_number": order["order_number"],
                "return_id": f"RET-{uuid.uuid4().hex[:6].upper()}",
            },
        )

    def get_product_details(self, params: dict[str, Any]) -> ToolResult:
        query = str(params.get("query") or "").lower()
        matches = {name: desc for name, desc in _PRODUCTS.items() if name in query}
        return ToolResult(success=True, data={"products": matches or dict(_PRODUCTS)})

    def create_discount_code(self, params: dict[str, Any]) -> ToolResult:
        error = _missing(params, "email")
        if error:
            return error
        code = f"NATPAT-{uuid.uuid4().hex[:6].upper()}"
        return ToolResult(
            success=True,
            data={"code": code, "percent_off": 10, "created_at": utc_now().isoformat()},
        )

    def get_subscription(self, params: dict[str, Any]) -> ToolResult:
        subscription, error = self._find_subscription(params)
        if error:
            return error
        return ToolResult(success=True, data=dict(subscription))

    def pause_subscription(self, params: dict[str, Any]) -> ToolResult:
        subscription, error = self._find_subscription(params)
        if error:
            return error
        if subscription["status"] == "CANCELLED":
            return ToolResult(success=False, error="Cancelled subscriptions cannot be paused.")
        subscription["status"] = "PAUSED"
        return ToolResult(success=True, data=dict(subscription))

    def skip_next_order(self, params: dict[str, Any]) -> ToolResult:
        subscription, error = self._find_subscription(params)
        if error:
            return error
        if subscription["status"] != "ACTIVE":
            return ToolResult(success=False, error="Only active subscriptions can skip an order.")
        return ToolResult(success=True, data={**subscription, "skipped": subscription["next_order_date"]})

    def cancel_subscription(self, params: dict[str, Any]) -> ToolResult:
        subscription, error = self._find_subscription(params)
        if error:
            return error
        subscription["status"] = "CANCELLED"
        logger.info("Subscription cancelled: %s", subscription["subscription_id"])
        return ToolResult(success=True, data=dict(subscription))
