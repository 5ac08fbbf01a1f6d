"""
Tracer: append-only per-session event log.

Records MESSAGE, ROUTING, TOOL_CALL and ESCALATION events with a UTC
timestamp. The tracer never inspects, reorders or drops events; it is a
pure log written only by the orchestrator.
"""

from typing import Any, Iterable, Optional

from support_mas.logging_context import get_session_logger
from support_mas.schemas.trace_schema import SessionTrace, TraceEvent, TraceEventType

logger = get_session_logger(__name__)


class Tracer:
    """Holds one ordered timeline per session id."""

    def __init__(self) -> None:
        self._timelines: dict[str, list[TraceEvent]] = {}

    def record(
        self,
        session_id: str,
        event_type: TraceEventType,
        data: Optional[dict[str, Any]] = None,
    ) -> TraceEvent:
        event = TraceEvent(type=event_type, data=data or {})
        self.record_many(session_id, [event])
        return event

    def record_many(self, session_id: str, events: Iterable[TraceEvent]) -> None:
        """Append a step's buffered events in one go, preserving their order."""
        batch = list(events)
        self._timelines.setdefault(session_id, []).extend(batch)
        for event in batch:
            logger.debug("TRACE %s %s", event.type.value, event.data)

    def get_trace(self, session_id: str) -> Optional[SessionTrace]:
        """Return the full timeline, or None if the session never produced an event."""
        timeline = self._timelines.get(session_id)
        if timeline is None:
            return None
        return SessionTrace(session_id=session_id, timeline=list(timeline))

    def clear(self) -> None:
        self._timelines.clear()
