"""Call session control: state machine, SDK contract and the controller."""
from calling.controller import CallSessionController
from calling.device import (
    DeviceConnection, DeviceFactory, MockConnection, MockVoiceDevice, SDKError, VoiceDevice,
)
from calling.session import CallSession
from calling.state_machine import CallEvent, TransitionResult, transition

__all__ = [
    "CallSessionController", "CallSession",
    "DeviceConnection", "DeviceFactory", "VoiceDevice", "SDKError",
    "MockConnection", "MockVoiceDevice",
    "CallEvent", "TransitionResult", "transition",
]
