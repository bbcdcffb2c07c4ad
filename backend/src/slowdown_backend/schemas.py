"""Request bodies for the REST API. JSON keys are camelCase."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from slowdown_shared import Role
from slowdown_shared.wire import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class GoogleAuthRequest(ApiModel):
    id_token: Annotated[str, Field(min_length=1)]
    display_name: str | None = None
    photo_url: str | None = None


class UserCreate(ApiModel):
    email: Annotated[str, Field(min_length=3, max_length=255, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")]
    display_name: Annotated[str, Field(min_length=1, max_length=100)] | None = None
    role: Role | None = None
    daily_limit_minutes: Annotated[int, Field(ge=0)] | None = None


# Fields a user may not change on their own record
ADMIN_ONLY_FIELDS = frozenset(
    {"daily_limit_minutes", "bonus_minutes", "is_blocked", "block_reason", "role"}
)


class UserUpdate(ApiModel):
    """Partial update. Only fields present in the body are applied."""

    display_name: Annotated[str, Field(min_length=1, max_length=100)] | None = None
    photo_url: str | None = None
    daily_limit_minutes: Annotated[int, Field(ge=0)] | None = None
    bonus_minutes: Annotated[int, Field(ge=0)] | None = None
    is_blocked: bool | None = None
    block_reason: Annotated[str, Field(max_length=500)] | None = None
    role: Role | None = None


class UsageSyncRequest(ApiModel):
    date: Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")] | None = None
    total_minutes: Annotated[float, Field(ge=0)] = 0.0
    app_usage: dict[str, Annotated[float, Field(ge=0)]] = Field(default_factory=dict)


class UsageAddRequest(ApiModel):
    date: Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")] | None = None
    minutes: Annotated[float, Field(gt=0)]
    app_name: Annotated[str, Field(min_length=1, max_length=100)] | None = None


class TimeRequestCreate(ApiModel):
    requested_minutes: Annotated[int, Field(gt=0)]
    reason: Annotated[str, Field(max_length=500)] | None = None


class TimeRequestUpdate(ApiModel):
    status: Literal["approved", "rejected"]
    approved_minutes: Annotated[int, Field(gt=0)] | None = None
    admin_note: Annotated[str, Field(max_length=500)] | None = None
