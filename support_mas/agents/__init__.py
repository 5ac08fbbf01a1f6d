from support_mas.agents.handlers import HANDLER_SPECS, INTENT_TO_HANDLER, HandlerSpec
from support_mas.agents.registry import HandlerConfigError, HandlerRegistry

__all__ = [
    "HANDLER_SPECS", "INTENT_TO_HANDLER", "HandlerSpec",
    "HandlerRegistry", "HandlerConfigError",
]
