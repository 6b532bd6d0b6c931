# /djula/workflows/session_machine.py

"""
Explicit shopping-session state machine.

A customer's session moves NEW -> ACTIVE -> ORDER_IN_PROGRESS ->
PAYMENT_PENDING -> COMPLETED. An open session can be CANCELLED or ABANDONED,
and every finished session re-opens to ACTIVE on the next message.

Usage:
    machine = SessionMachine(SessionStatus.NEW)
    machine.transition(SessionTrigger.MESSAGE_RECEIVED)
    assert machine.status == SessionStatus.ACTIVE
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional

from djula.models.conversation import SessionStatus
from djula.utils.metrics import session_transition_counter

logger = logging.getLogger(__name__)


class SessionTrigger(str, Enum):
    """Events that move a session between statuses."""
    MESSAGE_RECEIVED = "message_received"
    ORDER_CREATED = "order_created"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_VERIFIED = "payment_verified"
    ORDER_CANCELLED = "order_cancelled"
    SESSION_ABANDONED = "session_abandoned"


@dataclass(frozen=True)
class Transition:
    from_status: SessionStatus
    to_status: SessionStatus
    trigger: SessionTrigger


@dataclass
class StatusEntry:
    status: SessionStatus
    entered_at: datetime
    trigger: Optional[SessionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a trigger is not allowed from the current status."""

    def __init__(self, status: SessionStatus, trigger: SessionTrigger):
        super().__init__(f"No transition from '{status.value}' on '{trigger.value}'")
        self.status = status
        self.trigger = trigger


OPEN_STATUSES = (SessionStatus.ACTIVE, SessionStatus.ORDER_IN_PROGRESS, SessionStatus.PAYMENT_PENDING)
FINISHED_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.ABANDONED)


def _build_transitions() -> list[Transition]:
    transitions = [
        Transition(SessionStatus.NEW, SessionStatus.ACTIVE, SessionTrigger.MESSAGE_RECEIVED),
        Transition(SessionStatus.ACTIVE, SessionStatus.ORDER_IN_PROGRESS, SessionTrigger.ORDER_CREATED),
        # A new order replaces the tracked one, including one still awaiting payment.
        Transition(SessionStatus.ORDER_IN_PROGRESS, SessionStatus.ORDER_IN_PROGRESS, SessionTrigger.ORDER_CREATED),
        Transition(SessionStatus.PAYMENT_PENDING, SessionStatus.ORDER_IN_PROGRESS, SessionTrigger.ORDER_CREATED),
        Transition(SessionStatus.ORDER_IN_PROGRESS, SessionStatus.PAYMENT_PENDING, SessionTrigger.PAYMENT_INITIATED),
        Transition(SessionStatus.PAYMENT_PENDING, SessionStatus.PAYMENT_PENDING, SessionTrigger.PAYMENT_INITIATED),
        Transition(SessionStatus.PAYMENT_PENDING, SessionStatus.COMPLETED, SessionTrigger.PAYMENT_VERIFIED),
    ]
    for status in OPEN_STATUSES:
        transitions.append(Transition(status, status, SessionTrigger.MESSAGE_RECEIVED))
        transitions.append(Transition(status, SessionStatus.CANCELLED, SessionTrigger.ORDER_CANCELLED))
        transitions.append(Transition(status, SessionStatus.ABANDONED, SessionTrigger.SESSION_ABANDONED))
    for status in FINISHED_STATUSES:
        transitions.append(Transition(status, SessionStatus.ACTIVE, SessionTrigger.MESSAGE_RECEIVED))
    return transitions


TRANSITIONS: Dict[tuple, SessionStatus] = {
    (t.from_status, t.trigger): t.to_status for t in _build_transitions()
}


class SessionMachine:
    """Applies triggers to one session status, rejecting anything not in TRANSITIONS."""

    def __init__(self, status: SessionStatus = SessionStatus.NEW):
        self._status = status
        self._history: list[StatusEntry] = [StatusEntry(status=status, entered_at=datetime.now(timezone.utc))]

    @property
    def status(self) -> SessionStatus:
        return self._status

    def can_transition(self, trigger: SessionTrigger) -> bool:
        return (self._status, trigger) in TRANSITIONS

    def transition(self, trigger: SessionTrigger) -> SessionStatus:
        target = TRANSITIONS.get((self._status, trigger))
        if target is None:
            session_transition_counter.labels(status="rejected").inc()
            raise InvalidTransitionError(self._status, trigger)

        old_status = self._status
        self._status = target
        self._history.append(StatusEntry(status=target, entered_at=datetime.now(timezone.utc), trigger=trigger))
        session_transition_counter.labels(status=target.value).inc()
        logger.debug(f"Session transition: {old_status.value} -> {target.value} (trigger: {trigger.value})")
        return target

    def get_history(self) -> list[StatusEntry]:
        return list(self._history)

    def is_finished(self) -> bool:
        return self._status in FINISHED_STATUSES


def legacy_flags(status: SessionStatus) -> Dict[str, Any]:
    """Derives the session_data booleans kept for older readers."""
    return {
        "order_in_progress": status in (SessionStatus.ORDER_IN_PROGRESS, SessionStatus.PAYMENT_PENDING),
        "payment_pending": status == SessionStatus.PAYMENT_PENDING,
    }
