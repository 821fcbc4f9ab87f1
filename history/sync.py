"""
Call History Synchronizer — fetch-and-normalize call logs and recordings.

Each refresh replaces its local collection wholesale; there is no incremental
merge. Destructive operations keep the two collections consistent: deleting
a recording detaches it from every call record that referenced it, and
purging a phone number drops both kinds of record for it.
"""
from __future__ import annotations

import structlog
from typing import Optional

from backend.client import TelephonyApi
from backend.normalize import (
    normalize_call_record, normalize_many, normalize_recording, unwrap_item, unwrap_list,
)
from models.errors import ApiError
from models.schemas import CallLogFilters, CallRecord, Recording, RecordingFilters

logger = structlog.get_logger()


class CallHistorySynchronizer:

    def __init__(self, api: TelephonyApi):
        self.api = api
        self._calls: list[CallRecord] = []
        self._recordings: list[Recording] = []

    @property
    def calls(self) -> list[CallRecord]:
        return list(self._calls)

    @property
    def recordings(self) -> list[Recording]:
        return list(self._recordings)

    def recordings_for_call(self, call_sid: str) -> list[Recording]:
        return [r for r in self._recordings if r.call_sid == call_sid]

    # ── Fetch ─────────────────────────────────────────────────

    async def refresh_calls(self, filters: Optional[CallLogFilters] = None) -> list[CallRecord]:
        filters = filters or CallLogFilters()
        payload = await self.api.list_call_logs(filters.to_params())
        self._calls = normalize_many(unwrap_list(payload, "callLogs"), normalize_call_record)
        logger.info("call_history_refreshed", count=len(self._calls), **filters.to_params())
        return self.calls

    async def refresh_recordings(
        self, filters: Optional[RecordingFilters] = None
    ) -> list[Recording]:
        filters = filters or RecordingFilters()
        payload = await self.api.list_recordings(filters.to_params())
        self._recordings = normalize_many(unwrap_list(payload, "recordings"), normalize_recording)
        logger.info("recordings_refreshed", count=len(self._recordings), **filters.to_params())
        return self.recordings

    async def get_call(self, call_sid: str) -> CallRecord:
        """Fetch one call record. Does not touch the local collection."""
        payload = await self.api.get_call_log(call_sid)
        raw = unwrap_item(payload, "callLog")
        record = normalize_call_record(raw) if raw else None
        if record is None:
            raise ApiError(f"Call not found: {call_sid}", status_code=404)
        return record

    # ── Destructive operations ────────────────────────────────

    async def delete_recording(self, recording_sid: str) -> None:
        await self.api.delete_recording(recording_sid)
        media_urls = {
            r.media_url for r in self._recordings
            if r.recording_sid == recording_sid and r.media_url
        }
        self._recordings = [r for r in self._recordings if r.recording_sid != recording_sid]
        detached = 0
        calls = []
        for call in self._calls:
            if call.recording_sid == recording_sid or (
                call.recording_url and call.recording_url in media_urls
            ):
                call = call.model_copy(update={"recording_sid": None, "recording_url": None})
                detached += 1
            calls.append(call)
        self._calls = calls
        logger.info("recording_deleted", recording_sid=recording_sid, detached_calls=detached)

    def purge_phone_number(self, phone_number_id: str) -> tuple[int, int]:
        """Drop local records for a released number. Returns (calls, recordings) removed."""
        phone_number_id = str(phone_number_id)
        before_calls, before_recs = len(self._calls), len(self._recordings)
        self._calls = [c for c in self._calls if c.phone_number_id != phone_number_id]
        self._recordings = [r for r in self._recordings if r.phone_number_id != phone_number_id]
        return before_calls - len(self._calls), before_recs - len(self._recordings)
