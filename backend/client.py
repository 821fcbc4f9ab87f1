"""
Telephony Backend Client — async REST client for the provisioning, history
and signaling-token endpoints.

Every call carries the current bearer credential from the auth collaborator.
Methods return the decoded JSON body untouched; turning it into canonical
records is the job of backend.normalize, so nothing here branches on field
names beyond the signaling token.

Failures surface as ApiError:
  - transport errors and HTTP 5xx → retryable=True
  - HTTP 4xx                      → retryable=False, status_code set
  - undecodable body              → retryable=False
Retries are opt-in through ApiConfig.retry_attempts (default 1 = none).
"""
from __future__ import annotations

import structlog
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from backend.auth import CredentialProvider
from config.settings import ApiConfig, get_settings
from models.errors import ApiError, NotAuthenticatedError

logger = structlog.get_logger()


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ApiError) and exc.retryable


class TelephonyApi:
    """REST client for the console's backend."""

    def __init__(
        self,
        credentials: CredentialProvider,
        config: ApiConfig = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_settings().api
        self.credentials = credentials
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
                transport=self._transport,
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        token = self.credentials.get_token()
        if not token:
            raise NotAuthenticatedError()
        return {"Authorization": f"Bearer {token}"}

    def _resolve(self, endpoint: str, path_params: dict[str, Any]) -> str:
        url = self.config.endpoints.get(endpoint, endpoint)
        for k, v in path_params.items():
            url = url.replace(f"{{{k}}}", str(v))
        return url

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        headers = self._auth_headers()
        url = self._resolve(endpoint, kwargs.pop("path_params", {}))

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(self.config.retry_attempts, 1)),
            wait=wait_exponential(multiplier=0.5, max=self.config.retry_max_wait),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                return await self._send(method, url, headers, **kwargs)

    async def _send(self, method: str, url: str, headers: dict[str, str], **kwargs) -> Any:
        client = await self._get_client()
        try:
            resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning("backend_transport_error", method=method, url=url, error=str(e))
            raise ApiError(f"Network error calling {url}: {e}", retryable=True) from e

        if resp.status_code >= 400:
            logger.error(
                "backend_api_error",
                status=resp.status_code,
                body=resp.text[:500],
                url=url,
            )
            raise ApiError(
                self._error_message(resp),
                status_code=resp.status_code,
                retryable=resp.status_code >= 500,
            )

        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Malformed response from {url}", status_code=resp.status_code) from e

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error")
            if msg:
                return str(msg)
        return f"HTTP {resp.status_code}"

    # ── Signaling token ─────────────────────────────────────

    async def get_access_token(self, identity: str) -> str:
        """Exchange the bearer credential for a short-lived signaling token."""
        result = await self._request("POST", "access_token", json={"identity": identity})
        token = result.get("token") if isinstance(result, dict) else None
        if not token:
            raise ApiError("Signaling token missing from access-token response")
        logger.info("signaling_token_acquired", identity=result.get("identity", identity))
        return token

    # ── Phone numbers ───────────────────────────────────────

    async def list_owned_numbers(self) -> Any:
        return await self._request("GET", "my_numbers")

    async def search_available_numbers(
        self, area_code: str = "", country: str = "US", limit: int = 10
    ) -> Any:
        params = {"country": country, "limit": limit}
        if area_code:
            params["areaCode"] = area_code
        return await self._request("GET", "available_numbers", params=params)

    async def buy_number(
        self, phone_number: str, country: str = "US", area_code: str = ""
    ) -> Any:
        payload = {"phoneNumber": phone_number, "country": country}
        if area_code:
            payload["areaCode"] = area_code
        logger.info("backend_buy_number", phone_number=phone_number, country=country)
        return await self._request("POST", "buy_number", json=payload)

    async def release_number(self, number_id: str) -> Any:
        logger.info("backend_release_number", number_id=number_id)
        return await self._request(
            "DELETE", "release_number", path_params={"number_id": number_id}
        )

    # ── Call history ────────────────────────────────────────

    async def list_call_logs(self, params: dict[str, Any] = None) -> Any:
        return await self._request("GET", "call_logs", params=params or {})

    async def get_call_log(self, call_sid: str) -> Any:
        return await self._request("GET", "call_log", path_params={"call_sid": call_sid})

    async def list_recordings(self, params: dict[str, Any] = None) -> Any:
        return await self._request("GET", "recordings", params=params or {})

    async def delete_recording(self, recording_sid: str) -> Any:
        logger.info("backend_delete_recording", recording_sid=recording_sid)
        return await self._request(
            "DELETE", "recording", path_params={"recording_sid": recording_sid}
        )

    # ── Call forwarding ─────────────────────────────────────

    async def list_call_forwardings(self) -> Any:
        return await self._request("GET", "call_forwarding")

    async def create_call_forwarding(self, payload: dict[str, Any]) -> Any:
        return await self._request("POST", "call_forwarding", json=payload)

    async def update_call_forwarding(self, forwarding_id: str, updates: dict[str, Any]) -> Any:
        return await self._request(
            "PUT", "call_forwarding_item",
            path_params={"forwarding_id": forwarding_id},
            json=updates,
        )

    async def delete_call_forwarding(self, forwarding_id: str) -> Any:
        return await self._request(
            "DELETE", "call_forwarding_item", path_params={"forwarding_id": forwarding_id}
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
