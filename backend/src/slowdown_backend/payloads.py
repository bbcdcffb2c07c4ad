"""camelCase response payloads."""

from typing import Any

from slowdown_shared import QuotaState, TimeRequest, UsageRecord, User
from slowdown_shared.wire import model_to_wire

from .tables import UserRow


def user_payload(user: UserRow) -> dict[str, Any]:
    return model_to_wire(User.model_validate(user))


def owner_payload(user: UserRow) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "displayName": user.display_name,
        "photoUrl": user.photo_url,
    }


def usage_payload(record: UsageRecord, quota: QuotaState | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "date": record.date_key,
        "totalMinutes": record.total_minutes,
        "appUsage": record.app_usage,
    }
    if quota is not None:
        payload["quota"] = quota.to_wire()
    return payload


def request_payload(request: TimeRequest, owner: UserRow | None = None) -> dict[str, Any]:
    payload = model_to_wire(request)
    if owner is not None:
        payload["user"] = owner_payload(owner)
    return payload
