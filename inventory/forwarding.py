"""Call-forwarding rules attached to owned numbers."""
from __future__ import annotations

import structlog
from typing import Optional

from backend.client import TelephonyApi
from backend.normalize import normalize_forwarding, normalize_many, unwrap_item, unwrap_list
from config.settings import PhoneConfig, get_settings
from models.errors import ApiError
from models.schemas import CallForwarding, ForwardingType
from utils.phone import normalize_e164

logger = structlog.get_logger()


class CallForwardingManager:

    def __init__(self, api: TelephonyApi, phone_config: PhoneConfig = None):
        self.api = api
        self.phone_config = phone_config or get_settings().phone
        self._rules: list[CallForwarding] = []

    @property
    def rules(self) -> list[CallForwarding]:
        return list(self._rules)

    def for_number(self, phone_number_id: str) -> list[CallForwarding]:
        return [r for r in self._rules if r.phone_number_id == str(phone_number_id)]

    async def refresh(self) -> list[CallForwarding]:
        payload = await self.api.list_call_forwardings()
        self._rules = normalize_many(unwrap_list(payload, "forwardings"), normalize_forwarding)
        return self.rules

    async def create(
        self,
        phone_number_id: str,
        forward_to_number: str,
        forwarding_type: ForwardingType = ForwardingType.ALWAYS,
        ring_timeout: int = 20,
        is_active: bool = True,
    ) -> CallForwarding:
        payload = {
            "phone_number_id": _numeric_id(phone_number_id),
            "forward_to_number": normalize_e164(forward_to_number, self.phone_config),
            "forwarding_type": ForwardingType(forwarding_type).value,
            "ring_timeout": ring_timeout,
            "is_active": is_active,
        }
        result = await self.api.create_call_forwarding(payload)
        rule = self._parse(result, "Failed to create call forwarding")
        self._rules.append(rule)
        logger.info("call_forwarding_created", forwarding_id=rule.id,
                    phone_number_id=rule.phone_number_id)
        return rule

    async def update(
        self,
        forwarding_id: str,
        forward_to_number: Optional[str] = None,
        forwarding_type: Optional[ForwardingType] = None,
        ring_timeout: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> CallForwarding:
        updates = {}
        if forward_to_number is not None:
            updates["forward_to_number"] = normalize_e164(forward_to_number, self.phone_config)
        if forwarding_type is not None:
            updates["forwarding_type"] = ForwardingType(forwarding_type).value
        if ring_timeout is not None:
            updates["ring_timeout"] = ring_timeout
        if is_active is not None:
            updates["is_active"] = is_active

        result = await self.api.update_call_forwarding(str(forwarding_id), updates)
        rule = self._parse(result, "Failed to update call forwarding")
        self._rules = [rule if r.id == rule.id else r for r in self._rules]
        return rule

    async def delete(self, forwarding_id: str) -> None:
        await self.api.delete_call_forwarding(str(forwarding_id))
        self._rules = [r for r in self._rules if r.id != str(forwarding_id)]
        logger.info("call_forwarding_deleted", forwarding_id=forwarding_id)

    @staticmethod
    def _parse(payload, failure_message: str) -> CallForwarding:
        raw = unwrap_item(payload, "forwarding")
        rule = normalize_forwarding(raw) if raw else None
        if rule is None:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ApiError(message or failure_message)
        return rule


def _numeric_id(value: str):
    # The forwarding endpoint expects integer ids when they look numeric
    text = str(value)
    return int(text) if text.isdigit() else text
