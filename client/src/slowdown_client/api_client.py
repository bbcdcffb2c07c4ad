"""HTTP client for the SlowDown REST backend."""

import logging
from typing import Any

import httpx

from slowdown_shared import TimeRequest, UsageRecord, User
from slowdown_shared.errors import (
    AuthenticationFailed,
    DuplicatePendingRequest,
    NotFound,
    PermissionDenied,
    RequestNotPending,
    SlowDownError,
    TransientSyncFailure,
    ValidationError,
)
from slowdown_shared.wire import wire_to_dict

logger = logging.getLogger(__name__)

_CONFLICTS: dict[str, type[SlowDownError]] = {
    "You already have a pending request": DuplicatePendingRequest,
    "Request has already been processed": RequestNotPending,
}


def error_from_response(status_code: int, message: str) -> SlowDownError:
    """Map an error envelope back onto the shared error taxonomy."""
    if status_code >= 500:
        return TransientSyncFailure(message)
    if status_code == 401:
        return AuthenticationFailed(message)
    if status_code == 403:
        return PermissionDenied(message)
    if status_code == 404:
        return NotFound(message)
    if message in _CONFLICTS:
        return _CONFLICTS[message](message)
    return ValidationError(message)


class ApiClient:
    """Async wrapper around the REST endpoints the device uses.

    Network errors and 5xx responses raise TransientSyncFailure; other
    error envelopes raise the matching SlowDownError subclass.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._user_id: str | None = None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise TransientSyncFailure(f"{method} {path} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.is_success:
            return body

        message = body.get("error") if isinstance(body, dict) else None
        error = error_from_response(resp.status_code, message or resp.reason_phrase)
        logger.debug("%s %s -> %d: %s", method, path, resp.status_code, error.message)
        raise error

    def _usage_record(self, payload: dict[str, Any]) -> UsageRecord:
        return UsageRecord(
            user_id=self._user_id or "",
            date_key=payload["date"],
            total_minutes=payload.get("totalMinutes", 0.0),
            app_usage=payload.get("appUsage") or {},
        )

    async def get_me(self) -> User:
        body = await self._request("GET", "/auth/me")
        user = User.model_validate(wire_to_dict(body["user"]))
        self._user_id = user.id
        return user

    async def get_today(self) -> UsageRecord:
        body = await self._request("GET", "/usage/today")
        return self._usage_record(body["usage"])

    async def sync_usage(
        self, date_key: str, total_minutes: float, app_usage: dict[str, float]
    ) -> UsageRecord:
        """Resync a cumulative daily reading (stored total never decreases)."""
        body = await self._request(
            "POST",
            "/usage/sync",
            json={"date": date_key, "totalMinutes": total_minutes, "appUsage": app_usage},
        )
        return self._usage_record(body["usage"])

    async def add_usage(
        self, minutes: float, app_name: str | None = None, date_key: str | None = None
    ) -> UsageRecord:
        """Add a measured delta to a day's record."""
        payload: dict[str, Any] = {"minutes": minutes}
        if app_name:
            payload["appName"] = app_name
        if date_key:
            payload["date"] = date_key
        body = await self._request("POST", "/usage/add", json=payload)
        return self._usage_record(body["usage"])

    async def create_time_request(self, minutes: int, reason: str | None = None) -> TimeRequest:
        body = await self._request(
            "POST", "/time-requests", json={"requestedMinutes": minutes, "reason": reason}
        )
        return TimeRequest.model_validate(wire_to_dict(body["request"]))

    async def get_pending_request(self) -> TimeRequest | None:
        body = await self._request("GET", "/time-requests/pending")
        if body.get("request") is None:
            return None
        return TimeRequest.model_validate(wire_to_dict(body["request"]))

    async def cancel_time_request(self, request_id: str) -> None:
        await self._request("DELETE", f"/time-requests/{request_id}")
