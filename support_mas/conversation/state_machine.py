"""
One-way session status state machine.

A session starts ACTIVE and may move to ESCALATED exactly once, via one
of the escalation triggers. Nothing leaves ESCALATED. Every status change
goes through ``SessionStatusMachine.next_status`` so the terminal rule is
enforced in one place.

Usage:
    machine = SessionStatusMachine()
    machine.next_status(SessionStatus.ACTIVE, EscalationTrigger.EXPLICIT_REQUEST)
    # -> SessionStatus.ESCALATED
"""

import logging
from dataclasses import dataclass

from support_mas.schemas.session_schema import EscalationTrigger, SessionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: SessionStatus
    to_status: SessionStatus
    trigger: EscalationTrigger


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current status."""


class SessionStatusMachine:
    """Validates status transitions against an explicit table."""

    TRANSITIONS: list[Transition] = [
        Transition(SessionStatus.ACTIVE, SessionStatus.ESCALATED, trigger)
        for trigger in EscalationTrigger
    ]

    def next_status(
        self, current: SessionStatus, trigger: EscalationTrigger
    ) -> SessionStatus:
        """
        Resolve the status reached from ``current`` via ``trigger``.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_status == current and t.trigger == trigger:
                logger.debug(
                    "Status transition: %s -> %s (trigger: %s)",
                    current.value, t.to_status.value, trigger.value,
                )
                return t.to_status

        valid = [t.value for t in self.get_valid_triggers(current)]
        raise InvalidTransitionError(
            f"No valid transition from '{current.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self, current: SessionStatus) -> list[EscalationTrigger]:
        """Return all triggers valid from ``current``."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == current]

    def is_terminal(self, status: SessionStatus) -> bool:
        return not self.get_valid_triggers(status)
