"""
Call Session Controller — single source of truth for "is there a call right
now, and what is its state".

Owns one SDK device and at most one CallSession. Commands (dial, answer,
end_call, mute, hold, digits) are called by the UI; SDK callbacks are
translated into CallEvents and run through calling.state_machine.

Rules:
- Preconditions are checked synchronously, before the first await, so two
  back-to-back dials cannot both pass.
- SDK event handlers never raise; failures are logged.
- Every exit from Connected stops the duration timer.
- Ended is surfaced to listeners, then the controller resets to Idle.
"""
from __future__ import annotations

import asyncio
import structlog
import time
from typing import Any, Callable, Optional

from backend.auth import CredentialProvider
from backend.client import TelephonyApi
from calling.device import DeviceConnection, DeviceFactory, VoiceDevice
from calling.failures import FailureDisposition, classify, to_call_error
from calling.session import CallSession, Clock, utc_now
from calling.state_machine import (
    ACTIVE_STATES, CALLABLE_STATES, CallEvent, TransitionResult, transition,
)
from calling.timer import DurationTimer
from config.settings import CallingConfig, PhoneConfig, get_settings
from models.errors import (
    ApiError, CallAlreadyActiveError, CallConsoleError, DeviceNotReadyError,
    ErrorKind, InvalidDigitError, InvalidNumberError, NoIncomingCallError,
    NoSourceNumberError,
)
from models.schemas import CallDirection, CallError, CallState
from utils.phone import normalize_e164

logger = structlog.get_logger()

DTMF_DIGITS = frozenset("0123456789*#wW")

Listener = Callable[[dict[str, Any]], None]


class CallSessionController:
    """Drives one voice device and the call running on it."""

    def __init__(
        self,
        api: TelephonyApi,
        credentials: CredentialProvider,
        device_factory: DeviceFactory,
        config: CallingConfig = None,
        phone_config: PhoneConfig = None,
        clock: Clock = utc_now,
    ):
        settings = get_settings()
        self.api = api
        self.credentials = credentials
        self.config = config or settings.calling
        self.phone_config = phone_config or settings.phone
        self._device_factory = device_factory
        self._clock = clock

        self.state: CallState = CallState.IDLE
        self.session: Optional[CallSession] = None
        self.last_session: Optional[CallSession] = None
        self.last_error: Optional[CallError] = None
        self.selected_from_number: Optional[str] = None

        self._device: Optional[VoiceDevice] = None
        self._device_ready = False
        self._settled = asyncio.Event()
        self._pending_incoming: Optional[DeviceConnection] = None
        self._listeners: list[Listener] = []
        self._timer = DurationTimer(self.config.tick_interval, self._notify)

    # ── Introspection ─────────────────────────────────────────

    @property
    def device_ready(self) -> bool:
        return self._device is not None and self._device_ready

    @property
    def has_active_call(self) -> bool:
        return self.session is not None

    @property
    def active_local_number(self) -> Optional[str]:
        """Our own number on the live call: the source when outbound, the callee when inbound."""
        session = self.session
        if session is None:
            return None
        if session.direction == CallDirection.INBOUND:
            return session.to_number or None
        return session.from_number or None

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    @property
    def incoming_from(self) -> Optional[str]:
        if self._pending_incoming is None:
            return None
        return getattr(self._pending_incoming, "params", {}).get("From")

    def snapshot(self) -> dict[str, Any]:
        session = self.session
        data: dict[str, Any] = {
            "state": self.state.value,
            "device_ready": self.device_ready,
            "active": session is not None,
            "selected_from_number": self.selected_from_number,
            "incoming_from": self.incoming_from,
            "direction": None,
            "from_number": None,
            "to_number": None,
            "call_sid": "",
            "started_at": None,
            "duration_seconds": 0,
            "muted": False,
            "on_hold": False,
            "dtmf_sent": [],
        }
        if session is not None:
            data.update(session.to_summary())
        data["last_error"] = self.last_error.model_dump() if self.last_error else None
        data["last_call"] = self.last_session.to_summary() if self.last_session else None
        return data

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def select_from_number(self, number: Optional[str]) -> None:
        self.selected_from_number = normalize_e164(number, self.phone_config) if number else None
        self._notify()

    # ── Initialization ────────────────────────────────────────

    async def initialize(self) -> bool:
        """
        Acquire a signaling token and build the device.

        Returns True once the device is constructed (readiness follows
        asynchronously). Failures do not raise: the controller moves to
        Failed with last_error set, and initialize() may be called again.
        """
        if self.state == CallState.DEVICE_INITIALIZING:
            return True
        if self.device_ready and self.state in CALLABLE_STATES:
            return True
        if self.session is not None:
            raise CallAlreadyActiveError(self.state.value)

        self._destroy_device()
        self.last_error = None
        self._settled.clear()

        token = self.credentials.get_token()
        if not token:
            self._fail_init(ErrorKind.MISSING_CREDENTIAL, "No bearer credential available")
            return False

        self._apply(CallEvent.INITIALIZE)
        identity = self.credentials.get_identity() or (
            f"{self.config.identity_prefix}{int(time.time() * 1000)}"
        )
        try:
            signaling_token = await self.api.get_access_token(identity)
        except CallConsoleError as e:
            code = e.status_code if isinstance(e, ApiError) else None
            self._fail_init(ErrorKind.TOKEN_ACQUISITION_FAILED, str(e), code=code)
            return False

        if self.state != CallState.DEVICE_INITIALIZING:
            # Disposed while the token was in flight
            logger.info("initialize_abandoned", state=self.state.value)
            return False

        try:
            device = self._device_factory(signaling_token)
        except Exception as e:
            self._fail_init(ErrorKind.DEVICE_ERROR, f"Failed to initialize device: {e}")
            return False

        self._device = device
        self._bind_device(device)
        logger.info("call_device_created", identity=identity, state=self.state.value)
        return True

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the device is ready or initialization failed."""
        if self.device_ready:
            return True
        timeout = self.config.ready_timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("device_ready_timeout", timeout=timeout, state=self.state.value)
        return self.device_ready

    def _fail_init(self, kind: ErrorKind, message: str, code: Optional[int] = None) -> None:
        self.last_error = CallError(kind=kind, message=message, code=code)
        logger.error("call_device_init_failed", kind=kind.value, error=message, code=code)
        self._apply(CallEvent.INIT_FAILED)
        self._settled.set()

    # ── Commands ──────────────────────────────────────────────

    async def dial(self, to: str, from_number: Optional[str] = None) -> CallSession:
        """
        Place an outbound call.

        Raises:
            CallAlreadyActiveError / DeviceNotReadyError: wrong state.
            NoSourceNumberError: no from_number and none selected.
            InvalidNumberError: destination or source not dialable.
        """
        self._require_callable()
        source = from_number or self.selected_from_number
        if not source:
            raise NoSourceNumberError()
        if not to or not str(to).strip():
            raise InvalidNumberError(to, "empty destination")
        to_e164 = normalize_e164(to, self.phone_config)
        from_e164 = normalize_e164(source, self.phone_config)

        device = self._device
        session = CallSession(CallDirection.OUTBOUND, from_e164, to_e164, clock=self._clock)
        self.session = session
        self.last_error = None
        self._apply(CallEvent.DIAL)
        logger.info("call_dialing", to=to_e164, from_number=from_e164)

        try:
            conn = await device.connect({"To": to_e164, "From": from_e164})
        except Exception as e:
            if self.session is session:
                self._handle_call_error(e)
            else:
                logger.info("connect_failed_after_end", error=str(e))
            return session

        if self.session is not session:
            # Ended (or disposed) while the SDK was connecting
            logger.info("call_ended_before_connect", to=to_e164)
            self._safe_disconnect(conn)
            return session

        self._attach_connection(session, conn)
        return session

    def answer(self) -> CallSession:
        """Accept the pending incoming call."""
        conn = self._pending_incoming
        if conn is None:
            raise NoIncomingCallError()
        self._require_callable()

        params = getattr(conn, "params", {}) or {}
        caller = self._best_effort_e164(params.get("From", ""))
        callee = self._best_effort_e164(params.get("To", "")) or (self.selected_from_number or "")
        session = CallSession(CallDirection.INBOUND, caller, callee, clock=self._clock)

        self._pending_incoming = None
        self.session = session
        self.last_error = None
        self._apply(CallEvent.ANSWER)
        self._attach_connection(session, conn)
        logger.info("call_answering", from_number=caller)
        try:
            conn.accept()
        except Exception as e:
            self._handle_call_error(e)
        return session

    def reject_incoming(self) -> None:
        conn = self._pending_incoming
        if conn is None:
            return
        self._pending_incoming = None
        try:
            conn.reject()
        except Exception as e:
            logger.warning("incoming_reject_failed", error=str(e))
        logger.info("incoming_call_rejected")
        self._notify()

    def end_call(self) -> None:
        """Hang up. No-op when there is no call."""
        if self.session is None:
            return
        self._end_session("local_hangup", disconnect=True)

    def toggle_mute(self) -> Optional[bool]:
        """Flip mute; returns the SDK-reported state, or None when not Connected."""
        conn = self._connected_connection()
        if conn is None:
            return None
        session = self.session
        conn.mute(not session.muted)
        session.muted = bool(conn.is_muted())
        logger.info("call_mute_changed", muted=session.muted)
        self._notify()
        return session.muted

    def toggle_hold(self) -> Optional[bool]:
        """Flip hold; returns the SDK-reported state, or None when not Connected."""
        conn = self._connected_connection()
        if conn is None:
            return None
        session = self.session
        conn.hold(not session.on_hold)
        session.on_hold = bool(conn.is_on_hold())
        logger.info("call_hold_changed", on_hold=session.on_hold)
        self._notify()
        return session.on_hold

    def send_digit(self, digits: str) -> None:
        conn = self._connected_connection()
        if conn is None:
            return
        if not digits or any(d not in DTMF_DIGITS for d in digits):
            raise InvalidDigitError(digits)
        conn.send_digits(digits)
        self.session.dtmf_sent.extend(digits)
        self._notify()

    def dismiss(self) -> None:
        """Acknowledge a Failed state and return to Idle."""
        if self.state != CallState.FAILED:
            return
        self.last_error = None
        self._apply(CallEvent.DISMISS)

    def dispose(self) -> None:
        """Tear down: stop the timer, drop the call, destroy the device. Idempotent."""
        if (self._device is None and self.session is None
                and self._pending_incoming is None and self.state == CallState.IDLE):
            return
        self._timer.stop()
        session, self.session = self.session, None
        if session is not None:
            session.mark_ended("teardown")
            self.last_session = session
            if session.connection is not None:
                self._safe_disconnect(session.connection)
        if self._pending_incoming is not None:
            self.reject_incoming()
        self._destroy_device()
        self._apply(CallEvent.TEARDOWN)
        logger.info("call_controller_disposed")

    async def __aenter__(self) -> "CallSessionController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.dispose()

    # ── Precondition helpers ──────────────────────────────────

    def _require_callable(self) -> None:
        if self.session is not None or self.state in ACTIVE_STATES:
            raise CallAlreadyActiveError(self.state.value)
        if not self.device_ready or self.state not in CALLABLE_STATES:
            raise DeviceNotReadyError(self.state.value)

    def _connected_connection(self) -> Optional[DeviceConnection]:
        if self.state != CallState.CONNECTED or self.session is None:
            return None
        return self.session.connection

    def _best_effort_e164(self, raw: str) -> str:
        try:
            return normalize_e164(raw, self.phone_config)
        except InvalidNumberError:
            return raw or ""

    # ── SDK wiring ────────────────────────────────────────────

    def _bind_device(self, device: VoiceDevice) -> None:
        device.on("ready", self._device_handler(device, self._on_device_ready))
        device.on("error", self._device_handler(device, self._on_device_error))
        device.on("connect", self._device_handler(device, self._on_connect))
        device.on("disconnect", self._device_handler(device, self._on_disconnect))
        device.on("incoming", self._device_handler(device, self._on_incoming))

    def _device_handler(self, device: VoiceDevice, fn: Callable[..., None]) -> Callable[..., None]:
        def handler(*args: Any) -> None:
            if device is not self._device:
                logger.debug("stale_device_event", handler=fn.__name__)
                return
            self._run_handler(fn, *args)
        return handler

    def _attach_connection(self, session: CallSession, conn: DeviceConnection) -> None:
        if session.connection is conn:
            return
        session.connection = conn
        session.call_sid = str(getattr(conn, "call_sid", "") or "")

        def handler(fn: Callable[..., None]) -> Callable[..., None]:
            def wrapped(*args: Any) -> None:
                if self.session is not session:
                    return
                self._run_handler(fn, *args)
            return wrapped

        conn.on("disconnect", handler(lambda *_: self._on_disconnect(conn)))
        conn.on("error", handler(self._handle_call_error))
        conn.on("mute", handler(self._on_mute_changed))

    def _run_handler(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.error("call_event_handler_failed",
                         handler=getattr(fn, "__name__", "handler"), error=str(e))

    # ── SDK event handlers ────────────────────────────────────

    def _on_device_ready(self, *_: Any) -> None:
        # A device that failed stays unusable until initialize() runs again
        if self._apply(CallEvent.DEVICE_READY):
            self._device_ready = True
            logger.info("call_device_ready")
        else:
            logger.debug("device_ready_ignored", state=self.state.value)
        self._settled.set()

    def _on_device_error(self, error: Any = None, *_: Any) -> None:
        call_error = to_call_error(error, ErrorKind.DEVICE_ERROR)
        logger.error("call_device_error", error=call_error.message, code=call_error.code)
        self._device_ready = False
        session, self.session = self.session, None
        if session is not None:
            self._timer.stop()
            session.mark_ended("device_error")
            session.last_error = call_error
            self.last_session = session
            if session.connection is not None:
                self._safe_disconnect(session.connection)
        self.last_error = call_error
        self._apply(CallEvent.DEVICE_ERROR)
        self._settled.set()

    def _on_connect(self, conn: Optional[DeviceConnection] = None, *_: Any) -> None:
        session = self.session
        if session is None or self.state != CallState.DIALING:
            logger.debug("connect_event_ignored", state=self.state.value)
            return
        if conn is not None:
            if session.connection is None:
                self._attach_connection(session, conn)
            elif session.connection is not conn:
                logger.debug("connect_event_for_other_connection")
                return

        if not self._apply(CallEvent.CONNECTED):
            return
        session.mark_connected()
        self._timer.start()
        logger.info("call_connected", to=session.to_number, call_sid=session.call_sid)
        self._notify()

    def _on_disconnect(self, conn: Optional[DeviceConnection] = None, *_: Any) -> None:
        session = self.session
        if session is None:
            if conn is not None and conn is self._pending_incoming:
                self._pending_incoming = None
                logger.info("incoming_call_cancelled")
                self._notify()
            return
        if conn is not None and session.connection is not None and conn is not session.connection:
            return
        self._end_session("remote_disconnect")

    def _on_incoming(self, conn: DeviceConnection = None, *_: Any) -> None:
        if conn is None:
            return
        if self.session is not None or self._pending_incoming is not None or not self.device_ready:
            logger.info("incoming_call_rejected_busy", state=self.state.value)
            try:
                conn.reject()
            except Exception as e:
                logger.warning("incoming_reject_failed", error=str(e))
            return
        self._pending_incoming = conn
        logger.info("incoming_call", from_number=self.incoming_from)
        self._notify()

    def _on_mute_changed(self, muted: Any = None, *_: Any) -> None:
        if self.session is not None and muted is not None:
            self.session.muted = bool(muted)
            self._notify()

    # ── Termination paths ─────────────────────────────────────

    def _handle_call_error(self, error: Any) -> None:
        session = self.session
        if session is None:
            return
        if classify(error, self.config) == FailureDisposition.BENIGN_HANGUP:
            logger.info("call_ended_by_sdk_error", error=str(error))
            self._end_session("hangup_error", disconnect=True)
            return

        call_error = to_call_error(error, ErrorKind.CALL_FAILED)
        logger.error("call_failed", error=call_error.message, code=call_error.code)
        self._timer.stop()
        self.session = None
        session.mark_ended("failed")
        session.last_error = call_error
        self.last_session = session
        if session.connection is not None:
            self._safe_disconnect(session.connection)
        self.last_error = call_error
        self._apply(CallEvent.CALL_FAILED)

    def _end_session(self, reason: str, disconnect: bool = False) -> None:
        session = self.session
        if session is None:
            return
        # Detach first: disconnect() may re-enter through SDK events
        self.session = None
        self._timer.stop()
        session.mark_ended(reason)
        self.last_session = session
        if disconnect and session.connection is not None:
            self._safe_disconnect(session.connection)
        logger.info("call_ended", reason=reason, duration_seconds=session.duration_seconds,
                    call_sid=session.call_sid)
        self._apply(CallEvent.HANGUP)
        self._apply(CallEvent.RESET)

    def _safe_disconnect(self, conn: Any) -> None:
        try:
            conn.disconnect()
        except Exception as e:
            logger.warning("sdk_disconnect_failed", error=str(e))

    def _destroy_device(self) -> None:
        device, self._device = self._device, None
        self._device_ready = False
        if device is None:
            return
        try:
            device.destroy()
        except Exception as e:
            logger.warning("device_destroy_failed", error=str(e))

    # ── State plumbing ────────────────────────────────────────

    def _apply(self, event: CallEvent) -> TransitionResult:
        result = transition(self.state, event)
        if result:
            self.state = result.to_state
            logger.info("call_state_transition",
                        from_state=result.from_state.value,
                        to_state=result.to_state.value,
                        trigger=event.value)
            self._notify()
        return result

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as e:
                logger.error("call_listener_failed", error=str(e))
