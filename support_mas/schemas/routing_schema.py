"""Intent and handler identifiers plus the router's decision model."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Intent(str, Enum):
    """What a customer message is asking for."""

    ESCALATION_REQUEST = "escalation_request"
    SUBSCRIPTION_CANCEL = "subscription_cancel"
    SUBSCRIPTION_PAUSE = "subscription_pause"
    REFUND_REQUEST = "refund_request"
    RETURN_REQUEST = "return_request"
    CANCEL_ORDER = "cancel_order"
    SUBSCRIPTION_INQUIRY = "subscription_inquiry"
    SHIPPING_ADDRESS = "shipping_address"
    ORDER_STATUS = "order_status"
    PRODUCT_INQUIRY = "product_inquiry"
    DISCOUNT_REQUEST = "discount_request"
    GENERAL_INQUIRY = "general_inquiry"


class HandlerId(str, Enum):
    """The closed set of conversational handlers."""

    ORDER_MANAGEMENT = "order_management"
    SUBSCRIPTIONS = "subscriptions"
    REFUNDS_RETURNS = "refunds_returns"
    PRODUCT_SUPPORT = "product_support"
    GENERAL_SUPPORT = "general_support"
    ESCALATION = "escalation"


class RouteDecision(BaseModel):
    """Outcome of routing one message."""

    intent: Intent
    target_handler: Optional[HandlerId] = None
    blocked: bool = False
    reason: Optional[str] = None
    rule_id: Optional[str] = None
    continued: bool = False
