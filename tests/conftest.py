"""Shared test fixtures for the call console."""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from backend.auth import StaticCredentialProvider
from backend.client import TelephonyApi
from calling.controller import CallSessionController
from calling.device import MockVoiceDevice
from config.settings import CallingConfig, PhoneConfig
from history.sync import CallHistorySynchronizer
from inventory.numbers import NumberInventory


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 3, 1, 15, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingDeviceFactory:
    """DeviceFactory that keeps every MockVoiceDevice it builds."""

    def __init__(self, **device_kwargs):
        self.device_kwargs = device_kwargs
        self.devices: list[MockVoiceDevice] = []
        self.tokens: list[str] = []

    def __call__(self, token: str) -> MockVoiceDevice:
        self.tokens.append(token)
        device = MockVoiceDevice(token, **self.device_kwargs)
        self.devices.append(device)
        return device

    @property
    def device(self) -> MockVoiceDevice:
        return self.devices[-1]


@pytest.fixture
def phone_config() -> PhoneConfig:
    return PhoneConfig()


@pytest.fixture
def calling_config() -> CallingConfig:
    return CallingConfig(tick_interval=0.01, ready_timeout=0.5)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider(token="bearer-abc", identity="user_7")


@pytest.fixture
def mock_api():
    """TelephonyApi double; coroutine methods become AsyncMocks."""
    api = MagicMock(spec=TelephonyApi)
    api.get_access_token.return_value = "signal-token-1"
    api.list_owned_numbers.return_value = {"success": True, "phoneNumbers": []}
    api.list_call_logs.return_value = {"success": True, "callLogs": []}
    api.list_recordings.return_value = {"success": True, "recordings": []}
    api.release_number.return_value = {"success": True}
    api.delete_recording.return_value = {"success": True}
    return api


@pytest.fixture
def device_factory() -> RecordingDeviceFactory:
    return RecordingDeviceFactory()


@pytest.fixture
def controller(mock_api, credentials, device_factory, calling_config, phone_config, clock):
    return CallSessionController(
        mock_api, credentials, device_factory,
        config=calling_config, phone_config=phone_config, clock=clock,
    )


@pytest.fixture
def history(mock_api) -> CallHistorySynchronizer:
    return CallHistorySynchronizer(mock_api)


@pytest.fixture
def inventory(mock_api, history, controller, phone_config) -> NumberInventory:
    return NumberInventory(mock_api, history=history, controller=controller,
                           phone_config=phone_config)


@pytest.fixture
def owned_numbers_payload() -> dict:
    """Owned-number listing in the backend's snake_case shape."""
    return {
        "success": True,
        "phoneNumbers": [
            {
                "id": 1,
                "phone_number": "+19105550100",
                "friendly_name": "(910) 555-0100",
                "country": "US",
                "region": "NC",
                "locality": "Wilmington",
                "twilio_sid": "PN111",
                "capabilities": {"voice": True, "sms": True},
                "monthly_cost": "1.15",
                "is_active": 1,
                "created_at": "2024-02-01T10:00:00.000Z",
            },
            {
                "id": 2,
                "phone_number": "+19105550200",
                "friendly_name": "(910) 555-0200",
                "country": "US",
                "capabilities": {"voice": True, "sms": False},
                "is_active": 0,
            },
        ],
    }


@pytest.fixture
def call_logs_payload() -> dict:
    return {
        "success": True,
        "callLogs": [
            {
                "id": 10,
                "call_sid": "CA100",
                "phone_number_id": 1,
                "direction": "outbound-api",
                "from_number": "+19105550100",
                "to": "+19107555577",
                "status": "completed",
                "duration": "45",
                "price": "-0.0140",
                "price_unit": "USD",
                "recording_sid": "RExxx",
                "recording_url": "https://media.test/RExxx",
                "start_time": "2024-03-01T14:00:00Z",
            },
            None,
            {
                "id": 11,
                "callSid": "CA101",
                "phoneNumberId": "2",
                "direction": "inbound",
                "fromNumber": "+19107555577",
                "toNumber": "+19105550200",
                "status": "no-answer",
            },
            {"id": 12, "status": "completed"},
        ],
    }


@pytest.fixture
def recordings_payload() -> dict:
    return {
        "success": True,
        "recordings": [
            {
                "id": 20,
                "recordingSid": "RExxx",
                "callSid": "CA100",
                "phoneNumberId": 1,
                "duration": 44,
                "channels": 1,
                "status": "completed",
                "mediaUrl": "https://media.test/RExxx",
            },
            {
                "id": 21,
                "recordingSid": "REyyy",
                "callSid": "CA101",
                "phoneNumberId": 2,
                "duration": 3,
            },
        ],
    }
