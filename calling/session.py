"""
CallSession — lifecycle data for the single call a controller owns.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from models.schemas import CallDirection, CallError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CallSession:
    """
    One call attempt, from dial/answer until it ends.

    Duration is always derived from wall-clock time (`started_at` to now,
    or to `ended_at` once frozen), never from counting timer ticks.
    """

    def __init__(
        self,
        direction: CallDirection,
        from_number: str,
        to_number: str,
        clock: Clock = utc_now,
    ):
        self.direction = direction
        self.from_number = from_number
        self.to_number = to_number
        self._clock = clock

        self.call_sid: str = ""
        self.created_at: datetime = clock()
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None

        self.muted: bool = False
        self.on_hold: bool = False
        self.dtmf_sent: list[str] = []
        self.last_error: Optional[CallError] = None
        self.end_reason: str = ""

        # SDK handle; never exposed in snapshots
        self.connection: Any = None

    def mark_connected(self) -> None:
        if self.started_at is None:
            self.started_at = self._clock()

    def mark_ended(self, reason: str = "") -> None:
        if self.ended_at is None:
            self.ended_at = self._clock()
        if reason and not self.end_reason:
            self.end_reason = reason
        self.muted = False
        self.on_hold = False

    @property
    def duration_seconds(self) -> int:
        if self.started_at is None:
            return 0
        end = self.ended_at or self._clock()
        return max(int((end - self.started_at).total_seconds()), 0)

    @property
    def is_connected(self) -> bool:
        return self.started_at is not None and self.ended_at is None

    def to_summary(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "from_number": self.from_number,
            "to_number": self.to_number,
            "call_sid": self.call_sid,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "muted": self.muted,
            "on_hold": self.on_hold,
            "dtmf_sent": list(self.dtmf_sent),
            "last_error": self.last_error.model_dump() if self.last_error else None,
            "end_reason": self.end_reason,
        }
