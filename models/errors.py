"""
Error taxonomy shared by the controller, inventory and history clients.

- CallConsoleError: base for everything raised out of a command method
- PreconditionError: rejected synchronously, before any network or SDK call
- ApiError: backend request failed (transport, HTTP status, malformed body)
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    MISSING_CREDENTIAL = "MissingCredential"
    TOKEN_ACQUISITION_FAILED = "TokenAcquisitionFailed"
    DEVICE_ERROR = "DeviceError"
    CALL_FAILED = "CallFailed"
    DEVICE_NOT_READY = "DeviceNotReady"
    CALL_ALREADY_ACTIVE = "CallAlreadyActive"
    INVALID_NUMBER = "InvalidNumber"
    NO_SOURCE_NUMBER = "NoSourceNumber"
    NUMBER_IN_USE = "NumberInUse"
    INVALID_DIGIT = "InvalidDigit"
    NO_INCOMING_CALL = "NoIncomingCall"
    NOT_AUTHENTICATED = "NotAuthenticated"
    API_ERROR = "ApiError"


class CallConsoleError(Exception):
    """Base exception for all call-console operations."""

    kind: ErrorKind = ErrorKind.API_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None, retryable: bool = False):
        if kind is not None:
            self.kind = kind
        self.retryable = retryable
        super().__init__(message)


# ── Precondition errors ───────────────────────────────────────

class PreconditionError(CallConsoleError):
    pass


class NotAuthenticatedError(PreconditionError):
    kind = ErrorKind.NOT_AUTHENTICATED

    def __init__(self, message: str = "User must be authenticated"):
        super().__init__(message)


class DeviceNotReadyError(PreconditionError):
    kind = ErrorKind.DEVICE_NOT_READY

    def __init__(self, state: str = ""):
        self.state = state
        super().__init__(f"Calling device is not ready (state={state})")


class CallAlreadyActiveError(PreconditionError):
    kind = ErrorKind.CALL_ALREADY_ACTIVE

    def __init__(self, state: str = ""):
        self.state = state
        super().__init__(f"A call is already in progress (state={state})")


class InvalidNumberError(PreconditionError):
    kind = ErrorKind.INVALID_NUMBER

    def __init__(self, raw: Any, reason: str = "not a dialable number"):
        self.raw = raw
        super().__init__(f"Invalid phone number {raw!r}: {reason}")


class NoSourceNumberError(PreconditionError):
    kind = ErrorKind.NO_SOURCE_NUMBER

    def __init__(self):
        super().__init__("No outbound number selected")


class NumberInUseError(PreconditionError):
    kind = ErrorKind.NUMBER_IN_USE

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Number {number} is the source of the active call")


class InvalidDigitError(PreconditionError):
    kind = ErrorKind.INVALID_DIGIT

    def __init__(self, digit: str):
        self.digit = digit
        super().__init__(f"Invalid DTMF digit {digit!r}")


class NoIncomingCallError(PreconditionError):
    kind = ErrorKind.NO_INCOMING_CALL

    def __init__(self):
        super().__init__("No incoming call to answer")


# ── Backend errors ────────────────────────────────────────────

class ApiError(CallConsoleError):
    """A backend request failed. 5xx and transport failures are retryable."""

    kind = ErrorKind.API_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        self.status_code = status_code
        super().__init__(message, retryable=retryable)

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)
