"""
Boundary normalization — the only place that knows backend field names.

Endpoints disagree on naming (snake_case vs camelCase, "to" vs "to_number",
"is_active" flags vs "status" strings). Each record type gets one function
that maps every observed variant into the canonical model. Null entries and
records missing their identifying key are dropped and logged, never raised.
"""
from __future__ import annotations

import structlog
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError

from models.schemas import (
    AvailableNumber, CallDirection, CallForwarding, CallRecord, Capabilities,
    ForwardingType, NumberStatus, OwnedNumber, Recording,
)

logger = structlog.get_logger()

T = TypeVar("T")


# ──────────────────────────────────────────────────────────────
#  Field helpers
# ──────────────────────────────────────────────────────────────

def _first(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Value of the first key present with a non-null value."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _cost(value: Any, default: float = 1.00) -> float:
    cost = _float(value)
    return default if cost is None else cost


def _datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    text = str(value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("unparseable_timestamp", value=value)
        return None


def _capabilities(raw: Any) -> Capabilities:
    # Missing flags mean "supported"; only an explicit false disables
    raw = raw if isinstance(raw, dict) else {}
    return Capabilities(
        voice=raw.get("voice", raw.get("Voice")) is not False,
        sms=raw.get("sms", raw.get("SMS")) is not False,
    )


def _direction(value: Any) -> CallDirection:
    # "outbound-api", "outbound-dial" → outbound
    text = _str(value).lower().split("-")[0]
    return CallDirection.INBOUND if text == "inbound" else CallDirection.OUTBOUND


# ──────────────────────────────────────────────────────────────
#  Envelope
# ──────────────────────────────────────────────────────────────

def unwrap_list(payload: Any, key: str) -> list[Any]:
    """Pull the collection out of a `{success, <key>: [...]}` envelope.

    A bare list is accepted as-is. `success: false` or a missing key yields
    an empty list.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict) or payload.get("success") is False:
        return []
    items = _first(payload, key, "data", "results", default=[])
    return items if isinstance(items, list) else []


def unwrap_item(payload: Any, key: str) -> Optional[dict[str, Any]]:
    if not isinstance(payload, dict) or payload.get("success") is False:
        return None
    item = _first(payload, key, "data")
    return item if isinstance(item, dict) else None


def normalize_many(items: list[Any], normalizer: Callable[[dict[str, Any]], Optional[T]]) -> list[T]:
    """Apply `normalizer` to every dict entry, dropping nulls and rejects."""
    out = []
    for raw in items:
        if not isinstance(raw, dict):
            continue
        try:
            record = normalizer(raw)
        except ValidationError as e:
            logger.warning("record_normalization_failed",
                           normalizer=normalizer.__name__, error=str(e))
            continue
        if record is not None:
            out.append(record)
    dropped = len(items) - len(out)
    if dropped:
        logger.info("records_dropped", normalizer=normalizer.__name__, dropped=dropped)
    return out


# ──────────────────────────────────────────────────────────────
#  Record normalizers
# ──────────────────────────────────────────────────────────────

def normalize_owned_number(raw: dict[str, Any]) -> Optional[OwnedNumber]:
    number_id = _first(raw, "id", "phone_number_id", "phoneNumberId")
    e164 = _first(raw, "phone_number", "phoneNumber", "e164_number")
    if number_id is None or not e164:
        return None

    is_active = _first(raw, "is_active", "isActive")
    if is_active is not None:
        active = is_active in (1, True, "1", "true")
    else:
        active = _str(raw.get("status", "active")).lower() == "active"

    return OwnedNumber(
        id=_str(number_id),
        e164_number=_str(e164),
        country=_str(_first(raw, "country", "iso_country", "isoCountry", default="")),
        region=_str(raw.get("region", "")),
        locality=_str(raw.get("locality", "")),
        friendly_name=_str(_first(raw, "friendly_name", "friendlyName", default="")),
        provider_sid=_str(_first(raw, "twilio_sid", "twilioSid", "sid", default="")),
        capabilities=_capabilities(raw.get("capabilities")),
        monthly_cost=_cost(_first(raw, "monthly_cost", "monthlyCost", "monthlyFee")),
        purchase_price=_float(_first(raw, "purchase_price", "purchasePrice")),
        purchase_price_unit=_str(_first(raw, "purchase_price_unit", "purchasePriceUnit", default="")),
        status=NumberStatus.ACTIVE if active else NumberStatus.INACTIVE,
        created_at=_datetime(_first(raw, "created_at", "createdAt")),
        updated_at=_datetime(_first(raw, "updated_at", "updatedAt")),
    )


def normalize_available_number(raw: dict[str, Any]) -> Optional[AvailableNumber]:
    e164 = _first(raw, "phoneNumber", "phone_number")
    if not e164:
        return None
    return AvailableNumber(
        e164_number=_str(e164),
        friendly_name=_str(_first(raw, "friendlyName", "friendly_name", default="")),
        locality=_str(raw.get("locality", "")),
        region=_str(raw.get("region", "")),
        country=_str(_first(raw, "isoCountry", "iso_country", "country", default="")),
        monthly_cost=_cost(_first(raw, "monthlyCost", "monthly_cost")),
        capabilities=_capabilities(raw.get("capabilities")),
    )


def normalize_call_record(raw: dict[str, Any]) -> Optional[CallRecord]:
    call_sid = _first(raw, "call_sid", "callSid", "sid")
    if not call_sid:
        return None
    return CallRecord(
        id=_str(_first(raw, "id", default=call_sid)),
        call_sid=_str(call_sid),
        phone_number_id=_str(_first(raw, "phone_number_id", "phoneNumberId", default="")),
        direction=_direction(raw.get("direction")),
        from_number=_str(_first(raw, "from_number", "fromNumber", "from", default="")),
        to_number=_str(_first(raw, "to_number", "toNumber", "to", default="")),
        status=_str(_first(raw, "status", "call_status", "callStatus", default="")).lower(),
        duration_seconds=_int(_first(raw, "duration", "duration_seconds", "callDuration")),
        price=_float(raw.get("price")),
        price_unit=_str(_first(raw, "price_unit", "priceUnit", default="")),
        recording_url=_first(raw, "recording_url", "recordingUrl") or None,
        recording_sid=_first(raw, "recording_sid", "recordingSid") or None,
        start_time=_datetime(_first(raw, "start_time", "startTime")),
        end_time=_datetime(_first(raw, "end_time", "endTime")),
        created_at=_datetime(_first(raw, "created_at", "createdAt")),
    )


def normalize_recording(raw: dict[str, Any]) -> Optional[Recording]:
    recording_sid = _first(raw, "recordingSid", "recording_sid", "sid")
    if not recording_sid:
        return None
    call_duration = _first(raw, "callDuration", "call_duration")
    return Recording(
        id=_str(_first(raw, "id", default=recording_sid)),
        recording_sid=_str(recording_sid),
        call_sid=_str(_first(raw, "callSid", "call_sid", default="")),
        phone_number_id=_str(_first(raw, "phoneNumberId", "phone_number_id", default="")),
        duration_seconds=_int(_first(raw, "duration", "duration_seconds")),
        channels=_int(raw.get("channels"), default=1) or 1,
        status=_str(raw.get("status", "")).lower(),
        media_url=_str(_first(raw, "mediaUrl", "media_url", "url", default="")),
        price=_float(raw.get("price")),
        price_unit=_str(_first(raw, "priceUnit", "price_unit", default="")),
        from_number=_str(_first(raw, "fromNumber", "from_number", "from", default="")),
        to_number=_str(_first(raw, "toNumber", "to_number", "to", default="")),
        call_duration=_int(call_duration) if call_duration is not None else None,
        call_status=_str(_first(raw, "callStatus", "call_status", default="")),
        created_at=_datetime(_first(raw, "createdAt", "created_at")),
    )


def normalize_forwarding(raw: dict[str, Any]) -> Optional[CallForwarding]:
    forwarding_id = raw.get("id")
    forward_to = _first(raw, "forward_to_number", "forwardToNumber")
    if forwarding_id is None or not forward_to:
        return None
    kind = _str(_first(raw, "forwarding_type", "forwardingType", default="always")).lower()
    try:
        forwarding_type = ForwardingType(kind)
    except ValueError:
        logger.warning("unknown_forwarding_type", value=kind, forwarding_id=forwarding_id)
        forwarding_type = ForwardingType.ALWAYS
    return CallForwarding(
        id=_str(forwarding_id),
        phone_number_id=_str(_first(raw, "phone_number_id", "phoneNumberId", default="")),
        forward_to_number=_str(forward_to),
        forwarding_type=forwarding_type,
        ring_timeout=_int(_first(raw, "ring_timeout", "ringTimeout"), default=20),
        is_active=_first(raw, "is_active", "isActive", default=True) in (1, True, "1", "true"),
        created_at=_datetime(_first(raw, "created_at", "createdAt")),
        updated_at=_datetime(_first(raw, "updated_at", "updatedAt")),
    )
