"""
Session memory: sole owner of conversation state.

Every mutation of a Session goes through this class. Readers get deep
copies, so nothing outside SessionMemory can change a session behind its
back. ``transaction`` gives the orchestrator all-or-nothing writes for a
single message step.

Usage:
    memory = SessionMemory()
    session_id = memory.create_session(customer)
    with memory.transaction(session_id):
        memory.append_message(session_id, MessageRole.CUSTOMER, "Hi")
        memory.append_intent(session_id, Intent.GENERAL_INQUIRY)
"""

import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from support_mas.conversation.entity_extractor import ExtractedEntities
from support_mas.conversation.state_machine import SessionStatusMachine
from support_mas.schemas.routing_schema import HandlerId, Intent
from support_mas.schemas.session_schema import (
    ChatMessage,
    CustomerInfo,
    EscalationSummary,
    EscalationTrigger,
    MessageRole,
    Session,
    SessionStatus,
)
from support_mas.schemas.tool_schema import ToolCallRecord
from support_mas.utils import normalize_email

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when an operation references an unknown session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session '{self.session_id}' not found"


def _merge_unique(target: list[str], values: list[str]) -> None:
    """Set-union ``values`` into ``target`` keeping first-seen order."""
    for value in values:
        if value not in target:
            target.append(value)


class SessionMemory:
    """In-process store of sessions keyed by id."""

    def __init__(self, status_machine: Optional[SessionStatusMachine] = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._status_machine = status_machine or SessionStatusMachine()

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def create_session(self, customer: CustomerInfo) -> str:
        """Create a session and return its new, process-unique id."""
        customer = customer.model_copy(update={"email": normalize_email(customer.email)})
        with self._lock:
            session_id = f"session_{uuid.uuid4().hex}"
            while session_id in self._sessions:
                session_id = f"session_{uuid.uuid4().hex}"
            self._sessions[session_id] = Session(id=session_id, customer=customer)
        logger.info("Session created: %s for %s", session_id, customer.email)
        return session_id

    def get_session(self, session_id: str) -> Session:
        """Return a snapshot of the session.

        Raises:
            SessionNotFoundError: If the id is unknown.
        """
        return self._require(session_id).model_copy(deep=True)

    def exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def append_message(self, session_id: str, role: MessageRole, text: str) -> ChatMessage:
        message = ChatMessage(role=role, text=text)
        self._require(session_id).messages.append(message)
        return message

    def merge_entities(self, session_id: str, extracted: ExtractedEntities) -> None:
        context = self._require(session_id).context
        _merge_unique(context.mentioned_order_numbers, extracted.order_numbers)
        _merge_unique(context.mentioned_emails, [normalize_email(e) for e in extracted.emails])

    def append_intent(self, session_id: str, intent: Intent) -> None:
        self._require(session_id).context.intent_history.append(intent)

    def set_current_handler(self, session_id: str, handler: HandlerId) -> None:
        self._require(session_id).context.current_handler = handler

    def append_tool_call(self, session_id: str, record: ToolCallRecord) -> None:
        session = self._require(session_id)
        session.tool_calls.append(record)
        if not record.success:
            session.context.tool_failure_count += 1

    def escalate(self, session_id: str, reason: str, trigger: EscalationTrigger) -> None:
        """Flip the session to ESCALATED and record why.

        Raises:
            InvalidTransitionError: If the session is already escalated.
        """
        session = self._require(session_id)
        session.status = self._status_machine.next_status(session.status, trigger)
        session.context.escalated = True
        session.context.escalation_reason = reason
        logger.info("Session %s escalated (%s): %s", session_id, trigger.value, reason)

    def attach_escalation_summary(self, session_id: str, summary: EscalationSummary) -> None:
        self._require(session_id).context.escalation_summary = summary

    def is_escalated(self, session_id: str) -> bool:
        return self._require(session_id).status == SessionStatus.ESCALATED

    @contextmanager
    def transaction(self, session_id: str) -> Iterator[None]:
        """Restore the session to its pre-block state if the block raises."""
        snapshot = self._require(session_id).model_copy(deep=True)
        try:
            yield
        except BaseException:
            self._sessions[session_id] = snapshot
            logger.warning("Rolled back session %s after failed step", session_id)
            raise

    def clear(self) -> None:
        """Drop all sessions. Test and reset hook."""
        with self._lock:
            self._sessions.clear()
