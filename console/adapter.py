"""
Call Console — the UI-facing facade over the controller, number inventory,
call history and forwarding rules.

Renders nothing itself. A UI subscribes for snapshots and issues commands;
the console tracks `loading` and the last inline `error` message the way a
form would show it, and re-raises so the caller can react.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from backend.auth import CredentialProvider
from backend.client import TelephonyApi
from calling.controller import CallSessionController
from calling.device import DeviceFactory
from calling.session import CallSession
from config.settings import Settings, get_settings
from history.sync import CallHistorySynchronizer
from inventory.forwarding import CallForwardingManager
from inventory.numbers import NumberInventory
from models.errors import CallConsoleError
from models.schemas import (
    AvailableNumber, CallLogFilters, CallRecord, OwnedNumber, Recording, RecordingFilters,
)

logger = structlog.get_logger()

T = TypeVar("T")

Listener = Callable[[dict[str, Any]], None]


class CallConsole:

    def __init__(
        self,
        api: TelephonyApi,
        controller: CallSessionController,
        inventory: NumberInventory,
        history: CallHistorySynchronizer,
        forwarding: Optional[CallForwardingManager] = None,
    ):
        self.api = api
        self.controller = controller
        self.inventory = inventory
        self.history = history
        self.forwarding = forwarding or CallForwardingManager(api, inventory.phone_config)
        self.loading = False
        self.error: Optional[str] = None
        self._listeners: list[Listener] = []
        controller.subscribe(lambda _: self._notify())

    @classmethod
    def create(
        cls,
        credentials: CredentialProvider,
        device_factory: DeviceFactory,
        settings: Settings = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CallConsole":
        """Wire every component from one Settings object."""
        settings = settings or get_settings()
        api = TelephonyApi(credentials, settings.api, transport=transport)
        history = CallHistorySynchronizer(api)
        controller = CallSessionController(
            api, credentials, device_factory,
            config=settings.calling, phone_config=settings.phone,
        )
        inventory = NumberInventory(api, history=history, controller=controller,
                                    phone_config=settings.phone)
        return cls(api, controller, inventory, history,
                   CallForwardingManager(api, settings.phone))

    # ── Snapshot / listeners ──────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        return {
            "call": self.controller.snapshot(),
            "numbers": [n.model_dump(mode="json") for n in self.inventory.numbers],
            "calls": [c.model_dump(mode="json") for c in self.history.calls],
            "recordings": [r.model_dump(mode="json") for r in self.history.recordings],
            "forwardings": [f.model_dump(mode="json") for f in self.forwarding.rules],
            "loading": self.loading,
            "error": self.error,
        }

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as e:
                logger.error("console_listener_failed", error=str(e))

    async def _run(self, op: Awaitable[T], failure_message: str) -> T:
        self.loading = True
        self.error = None
        self._notify()
        try:
            return await op
        except CallConsoleError as e:
            self.error = str(e) or failure_message
            logger.warning("console_command_failed", error=self.error)
            raise
        finally:
            self.loading = False
            self._notify()

    # ── Lifecycle ─────────────────────────────────────────────

    async def load(self) -> None:
        """Initial fetch of numbers, calls and recordings.

        Individual failures are recorded in `error`; the others still load.
        """
        results = await asyncio.gather(
            self.inventory.refresh(),
            self.history.refresh_calls(),
            self.history.refresh_recordings(),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        for err in errors:
            if not isinstance(err, CallConsoleError):
                raise err
        self.error = str(errors[0]) if errors else None
        self._select_default_number()
        self._notify()

    def _select_default_number(self) -> None:
        if self.controller.selected_from_number:
            return
        active = [n for n in self.inventory.numbers if n.is_active and n.capabilities.voice]
        if active:
            self.controller.select_from_number(active[0].e164_number)

    async def close(self) -> None:
        self.controller.dispose()
        await self.api.close()

    async def __aenter__(self) -> "CallConsole":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── Call commands ─────────────────────────────────────────

    async def initialize(self) -> bool:
        return await self.controller.initialize()

    async def dial(self, to: str, from_number: Optional[str] = None) -> CallSession:
        return await self.controller.dial(to, from_number)

    def select_from_number(self, number: Optional[str]) -> None:
        self.controller.select_from_number(number)

    def answer(self) -> CallSession:
        return self.controller.answer()

    def reject_incoming(self) -> None:
        self.controller.reject_incoming()

    def end_call(self) -> None:
        self.controller.end_call()

    def dismiss(self) -> None:
        self.controller.dismiss()

    def toggle_mute(self) -> Optional[bool]:
        return self.controller.toggle_mute()

    def toggle_hold(self) -> Optional[bool]:
        return self.controller.toggle_hold()

    def send_digit(self, digit: str) -> None:
        self.controller.send_digit(digit)

    # ── Inventory commands ────────────────────────────────────

    async def refresh_numbers(self) -> list[OwnedNumber]:
        numbers = await self._run(self.inventory.refresh(), "Failed to fetch phone numbers")
        self._select_default_number()
        return numbers

    async def search(self, area_code: str, country: str = "US", limit: int = 10) -> list[AvailableNumber]:
        return await self._run(
            self.inventory.search(area_code, country, limit), "Failed to search available numbers"
        )

    async def purchase(self, phone_number: str, country: str = "US", area_code: str = "") -> OwnedNumber:
        owned = await self._run(
            self.inventory.purchase(phone_number, country, area_code),
            "Failed to purchase phone number",
        )
        self._select_default_number()
        return owned

    async def release(self, number_id: str) -> None:
        await self._run(self.inventory.release(number_id), "Failed to release phone number")

    # ── History commands ──────────────────────────────────────

    async def refresh_calls(self, filters: Optional[CallLogFilters] = None) -> list[CallRecord]:
        return await self._run(self.history.refresh_calls(filters), "Failed to fetch call history")

    async def refresh_recordings(self, filters: Optional[RecordingFilters] = None) -> list[Recording]:
        return await self._run(self.history.refresh_recordings(filters), "Failed to fetch recordings")

    async def delete_recording(self, recording_sid: str) -> None:
        await self._run(self.history.delete_recording(recording_sid), "Failed to delete recording")
