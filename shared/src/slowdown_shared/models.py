"""Data models for SlowDown.

These models define the schema shared by the backend and the device client.
Field names are snake_case here; the wire format is camelCase (see `wire`).
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class Role(StrEnum):
    ADMIN = "admin"
    USER = "user"


class RequestStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


DEFAULT_DAILY_LIMIT_MINUTES = 30


class User(BaseModel):
    """users/{id}"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: str
    photo_url: str | None = None
    role: Role = Role.USER
    daily_limit_minutes: Annotated[int, Field(ge=0)] = DEFAULT_DAILY_LIMIT_MINUTES
    bonus_minutes: Annotated[int, Field(ge=0)] = 0
    is_blocked: bool = False
    block_reason: str | None = None
    pending_time_request_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login_at: datetime | None = None


class UsageRecord(BaseModel):
    """usage_records/{userId, dateKey}

    One record per user per day, keyed by the date in the app's fixed offset.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    date_key: str  # YYYY-MM-DD
    total_minutes: Annotated[float, Field(ge=0)] = 0.0
    app_usage: dict[str, Annotated[float, Field(ge=0)]] = Field(default_factory=dict)
    updated_at: datetime | None = None


class TimeRequest(BaseModel):
    """time_requests/{id}"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    requested_minutes: Annotated[int, Field(gt=0)]
    approved_minutes: Annotated[int, Field(ge=0)] | None = None
    reason: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    admin_id: str | None = None
    admin_note: str | None = None
    date_key: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


class UsageReading(BaseModel):
    """A device-side usage query result for a time window."""

    per_app: dict[str, Annotated[float, Field(ge=0)]] = Field(default_factory=dict)
    total_minutes: Annotated[float, Field(ge=0)] = 0.0

    @classmethod
    def empty(cls) -> "UsageReading":
        return cls()
