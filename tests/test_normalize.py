"""Tests for backend payload normalization."""
import pytest
from datetime import datetime, timezone

from backend.normalize import (
    normalize_available_number, normalize_call_record, normalize_forwarding, normalize_many,
    normalize_owned_number, normalize_recording, unwrap_item, unwrap_list,
)
from models.schemas import CallDirection, ForwardingType, NumberStatus


class TestEnvelope:
    def test_unwrap_named_collection(self):
        assert unwrap_list({"success": True, "callLogs": [1, 2]}, "callLogs") == [1, 2]

    def test_unwrap_fallback_keys(self):
        assert unwrap_list({"data": [1]}, "callLogs") == [1]
        assert unwrap_list({"results": [2]}, "callLogs") == [2]

    def test_bare_list_accepted(self):
        assert unwrap_list([{"a": 1}], "recordings") == [{"a": 1}]

    def test_failure_envelope_is_empty(self):
        assert unwrap_list({"success": False, "callLogs": [1]}, "callLogs") == []
        assert unwrap_list(None, "callLogs") == []
        assert unwrap_list({"callLogs": "oops"}, "callLogs") == []

    def test_unwrap_item(self):
        assert unwrap_item({"success": True, "phoneNumber": {"id": 1}}, "phoneNumber") == {"id": 1}
        assert unwrap_item({"success": False, "message": "no"}, "phoneNumber") is None
        assert unwrap_item({"phoneNumber": None}, "phoneNumber") is None


class TestOwnedNumbers:
    def test_snake_case_record(self, owned_numbers_payload):
        raw = owned_numbers_payload["phoneNumbers"][0]
        number = normalize_owned_number(raw)

        assert number.id == "1"
        assert number.e164_number == "+19105550100"
        assert number.provider_sid == "PN111"
        assert number.monthly_cost == 1.15
        assert number.status == NumberStatus.ACTIVE
        assert number.created_at == datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)

    def test_inactive_flag(self, owned_numbers_payload):
        number = normalize_owned_number(owned_numbers_payload["phoneNumbers"][1])
        assert not number.is_active
        assert number.capabilities.sms is False
        assert number.capabilities.voice is True

    def test_status_string(self):
        number = normalize_owned_number({"id": "5", "phoneNumber": "+1910", "status": "inactive"})
        assert number.status == NumberStatus.INACTIVE

    def test_missing_capabilities_mean_supported(self):
        number = normalize_owned_number({"id": 3, "phone_number": "+19105550300"})
        assert number.capabilities.voice and number.capabilities.sms
        assert number.monthly_cost == 1.00

    @pytest.mark.parametrize("cost", [0, "0.00"])
    def test_zero_monthly_cost_kept(self, cost):
        number = normalize_owned_number({"id": 4, "phone_number": "+19105550400", "monthly_cost": cost})
        assert number.monthly_cost == 0.0

    def test_missing_number_dropped(self):
        assert normalize_owned_number({"id": 3}) is None


class TestAvailableNumbers:
    def test_camel_case(self):
        number = normalize_available_number({
            "phoneNumber": "+19105550111",
            "friendlyName": "(910) 555-0111",
            "locality": "Wilmington",
            "region": "NC",
            "isoCountry": "US",
            "capabilities": {"voice": True, "SMS": False},
        })
        assert number.e164_number == "+19105550111"
        assert number.country == "US"
        assert number.capabilities.sms is False


class TestCallRecords:
    def test_field_variants(self, call_logs_payload):
        records = normalize_many(call_logs_payload["callLogs"], normalize_call_record)

        assert [r.call_sid for r in records] == ["CA100", "CA101"]
        first, second = records
        assert first.to_number == "+19107555577"
        assert first.direction == CallDirection.OUTBOUND
        assert first.duration_seconds == 45
        assert first.price == -0.014
        assert first.phone_number_id == "1"
        assert first.has_recording
        assert second.direction == CallDirection.INBOUND
        assert second.from_number == "+19107555577"
        assert second.to_number == "+19105550200"
        assert second.status == "no-answer"
        assert not second.has_recording

    def test_sid_fallback(self):
        record = normalize_call_record({"sid": "CA9", "Status": "x"})
        assert record.call_sid == "CA9"
        assert record.id == "CA9"


class TestRecordings:
    def test_camel_case(self, recordings_payload):
        recordings = normalize_many(recordings_payload["recordings"], normalize_recording)
        assert [r.recording_sid for r in recordings] == ["RExxx", "REyyy"]
        assert recordings[0].media_url == "https://media.test/RExxx"
        assert recordings[0].phone_number_id == "1"
        assert recordings[1].channels == 1

    def test_missing_sid_dropped(self):
        assert normalize_many([{"id": 1}, None, "junk"], normalize_recording) == []


class TestForwarding:
    def test_snake_case(self):
        rule = normalize_forwarding({
            "id": 4,
            "phone_number_id": 1,
            "forward_to_number": "+19107555577",
            "forwarding_type": "no_answer",
            "ring_timeout": 30,
            "is_active": 0,
        })
        assert rule.id == "4"
        assert rule.forwarding_type == ForwardingType.NO_ANSWER
        assert rule.ring_timeout == 30
        assert rule.is_active is False

    def test_unknown_type_defaults_to_always(self):
        rule = normalize_forwarding({"id": 1, "forwardToNumber": "+1", "forwardingType": "weird"})
        assert rule.forwarding_type == ForwardingType.ALWAYS
        assert rule.is_active is True
