"""
Handler registry: the handler set resolved once at startup.

All handler references (routing table entries, redirect rule targets,
session continuity) go through the registry. Construction fails fast if
the routing table points at a handler that does not exist or that does
not declare the intent it is the default for, so a bad table is caught
when the process starts instead of on the first unlucky message.
"""

import logging
from typing import Iterable, Optional

from support_mas.agents.handlers import HANDLER_SPECS, INTENT_TO_HANDLER, HandlerSpec
from support_mas.schemas.routing_schema import HandlerId, Intent

logger = logging.getLogger(__name__)


class HandlerConfigError(ValueError):
    """Raised when the handler set and routing table disagree."""


class HandlerRegistry:
    """Validated lookup of handler specs and default intent routing."""

    def __init__(
        self,
        specs: Iterable[HandlerSpec] = HANDLER_SPECS,
        routing_table: Optional[dict[Intent, HandlerId]] = None,
    ) -> None:
        self._specs: dict[HandlerId, HandlerSpec] = {}
        for spec in specs:
            if spec.id in self._specs:
                raise HandlerConfigError(f"Handler '{spec.id.value}' registered twice")
            self._specs[spec.id] = spec
        self._routing = dict(routing_table if routing_table is not None else INTENT_TO_HANDLER)
        self._validate()
        logger.debug("Handler registry ready: %s", [h.value for h in self._specs])

    def _validate(self) -> None:
        for intent in Intent:
            handler_id = self._routing.get(intent)
            if handler_id is None:
                raise HandlerConfigError(f"No default handler for intent '{intent.value}'")
            spec = self._specs.get(handler_id)
            if spec is None:
                raise HandlerConfigError(
                    f"Intent '{intent.value}' routes to unregistered handler '{handler_id.value}'"
                )
            if not spec.can_handle(intent):
                raise HandlerConfigError(
                    f"Handler '{handler_id.value}' is the default for '{intent.value}' "
                    "but does not declare it"
                )

    def get(self, handler_id: HandlerId) -> HandlerSpec:
        """Return the spec for a handler.

        Raises:
            KeyError: If the handler is not registered.
        """
        if handler_id not in self._specs:
            registered = [h.value for h in self._specs]
            raise KeyError(f"Handler '{handler_id}' not registered. Available: {registered}")
        return self._specs[handler_id]

    def default_for(self, intent: Intent) -> HandlerId:
        return self._routing[intent]

    def handler_ids(self) -> list[HandlerId]:
        return list(self._specs)
