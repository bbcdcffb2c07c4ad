from .models import (
    RequestStatus,
    Role,
    TimeRequest,
    UsageReading,
    UsageRecord,
    User,
)
from .quota import QuotaState, can_request_time, compute_quota

__all__ = [
    "RequestStatus",
    "Role",
    "TimeRequest",
    "UsageReading",
    "UsageRecord",
    "User",
    "QuotaState",
    "can_request_time",
    "compute_quota",
]
