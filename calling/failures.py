"""
SDK failure classification.

An SDK error either means "the call simply ended" (busy, declined, remote
hangup reported as an error) and goes down the normal end-call path, or it is
unrecoverable and moves the controller to Failed.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from config.settings import CallingConfig, get_settings
from models.errors import ErrorKind
from models.schemas import CallError


class FailureDisposition(str, Enum):
    BENIGN_HANGUP = "benign_hangup"
    UNRECOVERABLE = "unrecoverable"


def error_code(error: Any) -> Optional[int]:
    """Numeric code from an SDK exception or dict payload, if any."""
    if isinstance(error, dict):
        raw = error.get("code")
    else:
        raw = getattr(error, "code", None)
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error.get("description") or "Unknown error")
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error) if error is not None else "Unknown error"


def classify(error: Any, config: Optional[CallingConfig] = None) -> FailureDisposition:
    config = config or get_settings().calling
    code = error_code(error)
    if code is not None and code in config.hangup_error_codes:
        return FailureDisposition.BENIGN_HANGUP
    message = error_message(error).lower()
    if any(s.lower() in message for s in config.hangup_message_substrings):
        return FailureDisposition.BENIGN_HANGUP
    return FailureDisposition.UNRECOVERABLE


def to_call_error(error: Any, kind: ErrorKind) -> CallError:
    details = {}
    if isinstance(error, dict):
        details = {k: v for k, v in error.items() if k not in ("code", "message")}
    return CallError(
        kind=kind,
        message=error_message(error),
        code=error_code(error),
        details=details,
    )
