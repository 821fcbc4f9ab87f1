"""
Call State Machine — pure transition function for the call controller.

SDK callbacks and user commands are translated into CallEvents; the
controller feeds them through `transition(state, event)` and only acts on
the result. Nothing here touches the SDK, timers or the network, so the
table can be tested on its own.

  Idle / Ready ──DIAL|ANSWER──▶ Dialing ──CONNECTED──▶ Connected
       ▲                          │                       │
       │                      HANGUP│CALL_FAILED      HANGUP│CALL_FAILED
       │                          ▼                       ▼
       └──────RESET──────── Ended            Failed ◀─────┘
       └──────DISMISS─────────────────────── Failed

  Idle|Failed ──INITIALIZE──▶ DeviceInitializing ──DEVICE_READY──▶ Ready
  any live state ──DEVICE_ERROR──▶ Failed;   * ──TEARDOWN──▶ Idle
"""
from __future__ import annotations

import structlog
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models.schemas import CallState

logger = structlog.get_logger()

ANY = "*"


class CallEvent(str, Enum):
    INITIALIZE = "initialize"
    INIT_FAILED = "init_failed"
    DEVICE_READY = "device_ready"
    DEVICE_ERROR = "device_error"
    DIAL = "dial"
    ANSWER = "answer"
    CONNECTED = "connected"
    CALL_FAILED = "call_failed"
    HANGUP = "hangup"
    RESET = "reset"
    DISMISS = "dismiss"
    TEARDOWN = "teardown"


@dataclass(frozen=True)
class Transition:
    from_states: frozenset
    event: CallEvent
    to_state: CallState
    description: str = ""

    def matches(self, state: CallState, event: CallEvent) -> bool:
        if event != self.event:
            return False
        return ANY in self.from_states or state in self.from_states


def _t(from_states, event: CallEvent, to_state: CallState, description: str = "") -> Transition:
    return Transition(frozenset(from_states), event, to_state, description)


S = CallState

# First match wins
TRANSITIONS: tuple[Transition, ...] = (
    _t([S.IDLE, S.FAILED], CallEvent.INITIALIZE, S.DEVICE_INITIALIZING,
       "Credential exchanged, device under construction"),
    _t([S.IDLE, S.DEVICE_INITIALIZING, S.FAILED], CallEvent.INIT_FAILED, S.FAILED,
       "Missing credential or token exchange failed"),
    _t([S.DEVICE_INITIALIZING], CallEvent.DEVICE_READY, S.READY,
       "Device registered"),
    _t([S.DEVICE_INITIALIZING, S.READY, S.IDLE, S.DIALING, S.CONNECTED],
       CallEvent.DEVICE_ERROR, S.FAILED,
       "Fatal device error"),
    _t([S.READY, S.IDLE], CallEvent.DIAL, S.DIALING, "Outbound call requested"),
    _t([S.READY, S.IDLE], CallEvent.ANSWER, S.DIALING, "Inbound call accepted"),
    _t([S.DIALING], CallEvent.CONNECTED, S.CONNECTED, "Media established"),
    _t([S.DIALING, S.CONNECTED], CallEvent.CALL_FAILED, S.FAILED,
       "Unrecoverable call error"),
    _t([S.DIALING, S.CONNECTED], CallEvent.HANGUP, S.ENDED,
       "Local hangup, remote disconnect, or benign error"),
    _t([S.ENDED], CallEvent.RESET, S.IDLE, "Ready for the next call"),
    _t([S.FAILED], CallEvent.DISMISS, S.IDLE, "Error acknowledged"),
    _t([ANY], CallEvent.TEARDOWN, S.IDLE, "Controller disposed"),
)

# States in which a CallSession is live
ACTIVE_STATES = frozenset({S.DIALING, S.CONNECTED})
# Rest states from which a new call may start (device permitting)
CALLABLE_STATES = frozenset({S.READY, S.IDLE})


class TransitionResult:
    """Outcome of feeding one event to the state machine."""

    def __init__(
        self,
        transitioned: bool,
        from_state: CallState,
        to_state: Optional[CallState] = None,
        event: Optional[CallEvent] = None,
        description: str = "",
    ):
        self.transitioned = transitioned
        self.from_state = from_state
        self.to_state = to_state if to_state is not None else from_state
        self.event = event
        self.description = description

    def __bool__(self):
        return self.transitioned

    def __repr__(self):
        if self.transitioned:
            return f"<Transition {self.from_state.value} → {self.to_state.value} [{self.event.value}]>"
        return "<NoTransition>"


def find_transition(state: CallState, event: CallEvent) -> Optional[Transition]:
    for t in TRANSITIONS:
        if t.matches(state, event):
            return t
    return None


def transition(state: CallState, event: CallEvent) -> TransitionResult:
    """Next state for `event` in `state`; unmatched events leave state unchanged."""
    t = find_transition(state, event)
    if t is None:
        logger.debug("no_matching_transition", state=state.value, trigger=event.value)
        return TransitionResult(transitioned=False, from_state=state, event=event)
    return TransitionResult(
        transitioned=True,
        from_state=state,
        to_state=t.to_state,
        event=event,
        description=t.description,
    )


def available_events(state: CallState) -> list[CallEvent]:
    return [t.event for t in TRANSITIONS if ANY in t.from_states or state in t.from_states]


def is_active(state: CallState) -> bool:
    return state in ACTIVE_STATES
