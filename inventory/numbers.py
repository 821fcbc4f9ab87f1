"""
Number Inventory Client — search, purchase and release telephone numbers,
and keep a local list of the numbers the caller owns.

The backend is the system of record. Local mutations follow a confirmed
backend call; `refresh()` replaces the list wholesale.
"""
from __future__ import annotations

import structlog
from typing import TYPE_CHECKING, Optional

from backend.client import TelephonyApi
from backend.normalize import (
    normalize_available_number, normalize_many, normalize_owned_number,
    unwrap_item, unwrap_list,
)
from config.settings import PhoneConfig, get_settings
from models.errors import ApiError, NumberInUseError
from models.schemas import AvailableNumber, OwnedNumber
from utils.phone import same_number

if TYPE_CHECKING:
    from calling.controller import CallSessionController
    from history.sync import CallHistorySynchronizer

logger = structlog.get_logger()


class NumberInventory:

    def __init__(
        self,
        api: TelephonyApi,
        history: Optional["CallHistorySynchronizer"] = None,
        controller: Optional["CallSessionController"] = None,
        phone_config: PhoneConfig = None,
    ):
        self.api = api
        self.history = history
        self.controller = controller
        self.phone_config = phone_config or get_settings().phone
        self._numbers: list[OwnedNumber] = []

    @property
    def numbers(self) -> list[OwnedNumber]:
        return list(self._numbers)

    def get(self, number_id: str) -> Optional[OwnedNumber]:
        return next((n for n in self._numbers if n.id == str(number_id)), None)

    def find(self, e164: str) -> Optional[OwnedNumber]:
        return next(
            (n for n in self._numbers if same_number(n.e164_number, e164, self.phone_config)),
            None,
        )

    async def refresh(self) -> list[OwnedNumber]:
        """Replace the local list with the backend's owned numbers."""
        payload = await self.api.list_owned_numbers()
        self._numbers = normalize_many(unwrap_list(payload, "phoneNumbers"), normalize_owned_number)
        logger.info("owned_numbers_refreshed", count=len(self._numbers))
        return self.numbers

    async def search(
        self, area_code: str = "", country: str = "US", limit: int = 10
    ) -> list[AvailableNumber]:
        """
        Purchasable numbers for an area code.

        An empty list means "no inventory"; network and HTTP failures raise
        ApiError instead.
        """
        payload = await self.api.search_available_numbers(
            area_code=area_code, country=country, limit=limit
        )
        results = normalize_many(
            unwrap_list(payload, "availableNumbers"), normalize_available_number
        )
        logger.info("available_numbers_searched",
                    area_code=area_code, country=country, found=len(results))
        return results[:limit] if limit else results

    async def purchase(
        self, phone_number: str, country: str = "US", area_code: str = ""
    ) -> OwnedNumber:
        """Buy a number and append it locally. Does not re-fetch the inventory."""
        payload = await self.api.buy_number(phone_number, country=country, area_code=area_code)
        raw = unwrap_item(payload, "phoneNumber")
        owned = normalize_owned_number(raw) if raw else None
        if owned is None:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ApiError(message or "Failed to purchase phone number")

        self._numbers = [n for n in self._numbers if n.id != owned.id] + [owned]
        logger.info("phone_number_purchased", number_id=owned.id, number=owned.e164_number)
        return owned

    async def release(self, number_id: str) -> None:
        """
        Release a number. Refused while it carries the active call;
        on success, local call and recording history for it is purged.
        """
        number_id = str(number_id)
        owned = self.get(number_id)
        in_use = self.controller.active_local_number if self.controller else None
        if owned is not None and in_use and same_number(
            owned.e164_number, in_use, self.phone_config
        ):
            raise NumberInUseError(owned.e164_number)

        await self.api.release_number(number_id)

        self._numbers = [n for n in self._numbers if n.id != number_id]
        purged_calls = purged_recordings = 0
        if self.history is not None:
            purged_calls, purged_recordings = self.history.purge_phone_number(number_id)
        if owned is not None and self.controller is not None and same_number(
            self.controller.selected_from_number, owned.e164_number, self.phone_config
        ):
            self.controller.select_from_number(None)
        logger.info("phone_number_released", number_id=number_id,
                    purged_calls=purged_calls, purged_recordings=purged_recordings)
