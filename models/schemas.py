"""
Core data models for the call console.
Canonical shapes produced at the backend boundary and consumed everywhere else.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.errors import ErrorKind


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class CallState(str, Enum):
    IDLE = "idle"
    DEVICE_INITIALIZING = "device_initializing"
    READY = "ready"
    DIALING = "dialing"
    CONNECTED = "connected"
    ENDED = "ended"
    FAILED = "failed"


class CallDirection(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class NumberStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ForwardingType(str, Enum):
    ALWAYS = "always"
    BUSY = "busy"
    NO_ANSWER = "no_answer"
    UNAVAILABLE = "unavailable"


# ──────────────────────────────────────────────────────────────
#  Call session errors
# ──────────────────────────────────────────────────────────────

class CallError(BaseModel):
    """Error descriptor attached to a session or controller in Failed."""
    kind: ErrorKind
    message: str
    code: Optional[int] = None
    details: dict[str, Any] = {}


# ──────────────────────────────────────────────────────────────
#  Number inventory
# ──────────────────────────────────────────────────────────────

class Capabilities(BaseModel):
    voice: bool = True
    sms: bool = True


class OwnedNumber(BaseModel):
    """A telephone number provisioned under the caller's account."""
    id: str
    e164_number: str
    country: str = ""
    region: str = ""
    locality: str = ""
    friendly_name: str = ""
    provider_sid: str = ""
    capabilities: Capabilities = Field(default_factory=Capabilities)
    monthly_cost: float = 1.00
    purchase_price: Optional[float] = None
    purchase_price_unit: str = ""
    status: NumberStatus = NumberStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == NumberStatus.ACTIVE


class AvailableNumber(BaseModel):
    """A purchasable number returned by an inventory search."""
    e164_number: str
    friendly_name: str = ""
    locality: str = ""
    region: str = ""
    country: str = ""
    monthly_cost: float = 1.00
    capabilities: Capabilities = Field(default_factory=Capabilities)


class CallForwarding(BaseModel):
    id: str
    phone_number_id: str
    forward_to_number: str
    forwarding_type: ForwardingType = ForwardingType.ALWAYS
    ring_timeout: int = 20
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ──────────────────────────────────────────────────────────────
#  Call history
# ──────────────────────────────────────────────────────────────

class CallRecord(BaseModel):
    """Read-only projection of one call-detail record."""
    id: str
    call_sid: str
    phone_number_id: str = ""
    direction: CallDirection = CallDirection.OUTBOUND
    from_number: str = ""
    to_number: str = ""
    status: str = ""                          # completed | failed | no-answer | busy | ...
    duration_seconds: int = 0
    price: Optional[float] = None
    price_unit: str = ""
    recording_url: Optional[str] = None
    recording_sid: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def has_recording(self) -> bool:
        return bool(self.recording_url or self.recording_sid)


class Recording(BaseModel):
    """Read-only projection of one call recording."""
    id: str
    recording_sid: str
    call_sid: str = ""
    phone_number_id: str = ""
    duration_seconds: int = 0
    channels: int = 1
    status: str = ""
    media_url: str = ""
    price: Optional[float] = None
    price_unit: str = ""
    from_number: str = ""
    to_number: str = ""
    call_duration: Optional[int] = None
    call_status: str = ""
    created_at: Optional[datetime] = None


# ──────────────────────────────────────────────────────────────
#  Query filters
# ──────────────────────────────────────────────────────────────

class CallLogFilters(BaseModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    status: Optional[str] = None
    phone_number_id: Optional[str] = None

    def to_params(self) -> dict[str, Any]:
        params = {
            "page": self.page,
            "limit": self.limit,
            "status": self.status,
            "phoneNumberId": self.phone_number_id,
        }
        return {k: v for k, v in params.items() if v is not None}


class RecordingFilters(BaseModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    call_sid: Optional[str] = None
    phone_number_id: Optional[str] = None

    def to_params(self) -> dict[str, Any]:
        params = {
            "page": self.page,
            "limit": self.limit,
            "callSid": self.call_sid,
            "phoneNumberId": self.phone_number_id,
        }
        return {k: v for k, v in params.items() if v is not None}
