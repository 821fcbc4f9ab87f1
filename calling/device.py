"""
Voice SDK contract — the control-plane surface the controller drives.

The media path (codecs, RTP) belongs to the SDK. The controller only issues
commands on a device/connection and reacts to their events:

  Device events:      ready, error(err), connect(conn), disconnect(conn),
                      incoming(conn)
  Connection events:  disconnect(conn), mute(muted), error(err)

MockVoiceDevice implements the contract in-process so the console can run
without a real SDK, and lets tests drive events explicitly.
"""
from __future__ import annotations

import structlog
import uuid
from typing import Any, Callable, Optional, Protocol, runtime_checkable

logger = structlog.get_logger()

EventHandler = Callable[..., Any]


# ══════════════════════════════════════════════════════════════
#  PROTOCOL — what any SDK binding must provide
# ══════════════════════════════════════════════════════════════

@runtime_checkable
class DeviceConnection(Protocol):
    """One call leg as exposed by the SDK."""

    def on(self, event: str, handler: EventHandler) -> None:
        ...

    def mute(self, muted: bool) -> None:
        ...

    def is_muted(self) -> bool:
        ...

    def hold(self, on_hold: bool) -> None:
        ...

    def is_on_hold(self) -> bool:
        ...

    def send_digits(self, digits: str) -> None:
        ...

    def accept(self) -> None:
        ...

    def reject(self) -> None:
        ...

    def disconnect(self) -> None:
        ...


@runtime_checkable
class VoiceDevice(Protocol):
    """A signaling device bound to one signaling token."""

    def on(self, event: str, handler: EventHandler) -> None:
        ...

    async def connect(self, params: dict[str, str]) -> DeviceConnection:
        """Start an outbound call. params: {"To": e164, "From": e164}."""
        ...

    def destroy(self) -> None:
        ...


# Builds a device from a signaling token
DeviceFactory = Callable[[str], VoiceDevice]


class SDKError(Exception):
    """Error payload raised or emitted by an SDK binding."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


# ══════════════════════════════════════════════════════════════
#  MOCK SDK
# ══════════════════════════════════════════════════════════════

class _Emitter:

    def __init__(self):
        self._handlers: dict[str, list[EventHandler]] = {}

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            handler(*args)


class MockConnection(_Emitter):
    """In-process call leg. State changes are immediate and authoritative."""

    def __init__(self, params: dict[str, str], device: Optional["MockVoiceDevice"] = None,
                 direction: str = "outbound"):
        super().__init__()
        self.params = dict(params)
        self.direction = direction
        self.call_sid = f"CA{uuid.uuid4().hex}"
        self.device = device
        self.digits_sent: list[str] = []
        self.accepted = False
        self.rejected = False
        self.disconnected = False
        self._muted = False
        self._on_hold = False
        # Set to make mute/hold requests ignored by the "SDK"
        self.refuse_state_changes = False

    def mute(self, muted: bool) -> None:
        if not self.refuse_state_changes:
            self._muted = muted
        self.emit("mute", self._muted)

    def is_muted(self) -> bool:
        return self._muted

    def hold(self, on_hold: bool) -> None:
        if not self.refuse_state_changes:
            self._on_hold = on_hold

    def is_on_hold(self) -> bool:
        return self._on_hold

    def send_digits(self, digits: str) -> None:
        self.digits_sent.append(digits)

    def accept(self) -> None:
        self.accepted = True
        if self.device:
            self.device.emit("connect", self)

    def reject(self) -> None:
        self.rejected = True

    def disconnect(self) -> None:
        if self.disconnected:
            return
        self.disconnected = True
        self.emit("disconnect", self)
        if self.device:
            self.device.emit("disconnect", self)

    # Test/dev hooks
    def remote_hangup(self) -> None:
        """The far end hung up."""
        self.disconnect()

    def fail(self, error: Any) -> None:
        self.emit("error", error)


class MockVoiceDevice(_Emitter):
    """
    In-process VoiceDevice.

    By default it does not become ready or answer on its own; call
    `signal_ready()` / `answer()` (or construct with auto_ready/auto_answer)
    to drive the lifecycle.
    """

    def __init__(self, token: str, auto_ready: bool = False, auto_answer: bool = False,
                 connect_error: Optional[BaseException] = None):
        super().__init__()
        self.token = token
        self.auto_ready = auto_ready
        self.auto_answer = auto_answer
        self.connect_error = connect_error
        self.destroyed = False
        self.connections: list[MockConnection] = []
        if auto_ready:
            self.signal_ready()

    def on(self, event: str, handler: EventHandler) -> None:
        super().on(event, handler)
        # Late subscribers still see a device that became ready at construction
        if event == "ready" and self.auto_ready and not self.destroyed:
            handler()

    async def connect(self, params: dict[str, str]) -> MockConnection:
        if self.destroyed:
            raise SDKError("Device has been destroyed", code=31000)
        if self.connect_error is not None:
            raise self.connect_error
        conn = MockConnection(params, device=self)
        self.connections.append(conn)
        logger.info("mock_device_connect", to=params.get("To"), call_sid=conn.call_sid)
        if self.auto_answer:
            self.emit("connect", conn)
        return conn

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        for conn in self.connections:
            if not conn.disconnected:
                conn.disconnect()

    # Test/dev hooks
    def signal_ready(self) -> None:
        self.emit("ready")

    def signal_error(self, error: Any) -> None:
        self.emit("error", error)

    def answer(self, conn: Optional[MockConnection] = None) -> None:
        """The far end picked up."""
        conn = conn or self.connections[-1]
        self.emit("connect", conn)

    def ring_incoming(self, from_number: str, to_number: str = "") -> MockConnection:
        conn = MockConnection({"From": from_number, "To": to_number}, device=self,
                              direction="inbound")
        self.connections.append(conn)
        self.emit("incoming", conn)
        return conn
