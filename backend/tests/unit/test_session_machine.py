# backend/tests/unit/test_session_machine.py

import pytest

from djula.models.conversation import SessionStatus
from djula.workflows.session_machine import (
    FINISHED_STATUSES, OPEN_STATUSES, InvalidTransitionError, SessionMachine,
    SessionTrigger, legacy_flags,
)


def test_happy_path_to_completed():
    machine = SessionMachine()
    machine.transition(SessionTrigger.MESSAGE_RECEIVED)
    machine.transition(SessionTrigger.ORDER_CREATED)
    machine.transition(SessionTrigger.PAYMENT_INITIATED)
    machine.transition(SessionTrigger.PAYMENT_VERIFIED)

    assert machine.status == SessionStatus.COMPLETED
    assert machine.is_finished()
    assert [entry.status for entry in machine.get_history()] == [
        SessionStatus.NEW, SessionStatus.ACTIVE, SessionStatus.ORDER_IN_PROGRESS,
        SessionStatus.PAYMENT_PENDING, SessionStatus.COMPLETED,
    ]


def test_new_order_replaces_one_awaiting_payment():
    machine = SessionMachine(SessionStatus.PAYMENT_PENDING)
    assert machine.transition(SessionTrigger.ORDER_CREATED) == SessionStatus.ORDER_IN_PROGRESS
    assert legacy_flags(machine.status) == {"order_in_progress": True, "payment_pending": False}


@pytest.mark.parametrize("status", OPEN_STATUSES)
def test_open_sessions_can_be_cancelled_or_abandoned(status):
    assert SessionMachine(status).transition(SessionTrigger.ORDER_CANCELLED) == SessionStatus.CANCELLED
    assert SessionMachine(status).transition(SessionTrigger.SESSION_ABANDONED) == SessionStatus.ABANDONED


@pytest.mark.parametrize("status", FINISHED_STATUSES)
def test_finished_sessions_reopen_on_next_message(status):
    assert SessionMachine(status).transition(SessionTrigger.MESSAGE_RECEIVED) == SessionStatus.ACTIVE


@pytest.mark.parametrize("status, trigger", [
    (SessionStatus.NEW, SessionTrigger.ORDER_CREATED),
    (SessionStatus.ACTIVE, SessionTrigger.PAYMENT_INITIATED),
    (SessionStatus.ACTIVE, SessionTrigger.PAYMENT_VERIFIED),
    (SessionStatus.ORDER_IN_PROGRESS, SessionTrigger.PAYMENT_VERIFIED),
    (SessionStatus.COMPLETED, SessionTrigger.ORDER_CANCELLED),
])
def test_illegal_transitions_are_rejected(status, trigger):
    machine = SessionMachine(status)
    assert not machine.can_transition(trigger)
    with pytest.raises(InvalidTransitionError):
        machine.transition(trigger)
    assert machine.status == status


def test_legacy_flags_follow_status():
    assert legacy_flags(SessionStatus.ACTIVE) == {"order_in_progress": False, "payment_pending": False}
    assert legacy_flags(SessionStatus.ORDER_IN_PROGRESS) == {"order_in_progress": True, "payment_pending": False}
    assert legacy_flags(SessionStatus.PAYMENT_PENDING) == {"order_in_progress": True, "payment_pending": True}
