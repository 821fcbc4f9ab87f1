"""Tests for the call state machine transition table."""
import pytest
import structlog

from calling.state_machine import (
    ACTIVE_STATES, CALLABLE_STATES, TRANSITIONS, CallEvent, TransitionResult,
    available_events, find_transition, is_active, transition,
)
from models.schemas import CallState

S = CallState


class TestHappyPath:
    def test_full_outbound_lifecycle(self):
        state = S.IDLE
        for event, expected in [
            (CallEvent.INITIALIZE, S.DEVICE_INITIALIZING),
            (CallEvent.DEVICE_READY, S.READY),
            (CallEvent.DIAL, S.DIALING),
            (CallEvent.CONNECTED, S.CONNECTED),
            (CallEvent.HANGUP, S.ENDED),
            (CallEvent.RESET, S.IDLE),
        ]:
            result = transition(state, event)
            assert result, f"{event} rejected in {state}"
            assert result.to_state == expected
            state = result.to_state

    def test_second_call_from_idle(self):
        assert transition(S.IDLE, CallEvent.DIAL).to_state == S.DIALING

    def test_answer_enters_dialing(self):
        assert transition(S.READY, CallEvent.ANSWER).to_state == S.DIALING

    def test_hangup_while_dialing(self):
        assert transition(S.DIALING, CallEvent.HANGUP).to_state == S.ENDED


class TestFailurePaths:
    @pytest.mark.parametrize("state", [S.IDLE, S.DEVICE_INITIALIZING, S.FAILED])
    def test_init_failed(self, state):
        assert transition(state, CallEvent.INIT_FAILED).to_state == S.FAILED

    @pytest.mark.parametrize("state", [S.DEVICE_INITIALIZING, S.READY, S.DIALING, S.CONNECTED])
    def test_device_error_is_fatal(self, state):
        assert transition(state, CallEvent.DEVICE_ERROR).to_state == S.FAILED

    @pytest.mark.parametrize("state", [S.DIALING, S.CONNECTED])
    def test_call_failed(self, state):
        assert transition(state, CallEvent.CALL_FAILED).to_state == S.FAILED

    def test_dismiss_returns_to_idle(self):
        assert transition(S.FAILED, CallEvent.DISMISS).to_state == S.IDLE

    def test_retry_initialize_from_failed(self):
        assert transition(S.FAILED, CallEvent.INITIALIZE).to_state == S.DEVICE_INITIALIZING


class TestRejectedEvents:
    def test_dial_while_connected_rejected(self):
        result = transition(S.CONNECTED, CallEvent.DIAL)
        assert not result
        assert result.to_state == S.CONNECTED

    def test_dial_while_initializing_rejected(self):
        assert not transition(S.DEVICE_INITIALIZING, CallEvent.DIAL)

    def test_connected_only_from_dialing(self):
        for state in (S.IDLE, S.READY, S.CONNECTED, S.ENDED, S.FAILED):
            assert not transition(state, CallEvent.CONNECTED)

    def test_hangup_outside_call_rejected(self):
        assert not transition(S.READY, CallEvent.HANGUP)

    def test_repr(self):
        assert repr(transition(S.ENDED, CallEvent.DIAL)) == "<NoTransition>"
        assert "ended → idle" in repr(transition(S.ENDED, CallEvent.RESET))

    def test_unmatched_event_logged_without_raising(self):
        with structlog.testing.capture_logs() as logs:
            result = transition(S.FAILED, CallEvent.DEVICE_ERROR)
        assert not result
        assert result.to_state == S.FAILED
        assert logs[-1]["event"] == "no_matching_transition"
        assert logs[-1]["trigger"] == "device_error"
        assert logs[-1]["state"] == "failed"


class TestTeardown:
    @pytest.mark.parametrize("state", list(CallState))
    def test_teardown_from_anywhere(self, state):
        assert transition(state, CallEvent.TEARDOWN).to_state == S.IDLE


class TestIntrospection:
    def test_first_match_wins(self):
        t = find_transition(S.FAILED, CallEvent.TEARDOWN)
        assert t is TRANSITIONS[-1]

    def test_available_events_in_connected(self):
        events = available_events(S.CONNECTED)
        assert CallEvent.HANGUP in events
        assert CallEvent.CALL_FAILED in events
        assert CallEvent.DIAL not in events

    def test_active_and_callable_disjoint(self):
        assert not ACTIVE_STATES & CALLABLE_STATES
        assert is_active(S.DIALING)
        assert not is_active(S.ENDED)

    def test_result_is_falsy_without_transition(self):
        result = TransitionResult(transitioned=False, from_state=S.IDLE)
        assert not result
        assert result.to_state == S.IDLE
