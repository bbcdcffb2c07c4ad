"""Usage sync endpoints."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..deps import get_app_settings, get_current_user, get_today_key
from ..payloads import usage_payload
from ..schemas import UsageAddRequest, UsageSyncRequest
from ..services import usage as usage_service
from ..tables import UserRow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("/today")
def today_usage(
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: str = Depends(get_today_key),
):
    record = usage_service.get_record(db, user.id, today)
    quota = usage_service.quota_for(user, record.total_minutes)
    return {"success": True, "usage": usage_payload(record, quota)}


@router.post("/sync")
def sync_usage(
    body: UsageSyncRequest,
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: str = Depends(get_today_key),
):
    """Resync a day's cumulative total (monotonic max) and per-app map.

    Quota is only reported for today.
    """
    target = body.date or today
    record = usage_service.resync(db, user.id, target, body.total_minutes, body.app_usage)
    quota = usage_service.quota_for(user, record.total_minutes) if target == today else None
    logger.info("Synced usage for %s on %s: %.1f minutes", user.email, target, record.total_minutes)
    return {"success": True, "usage": usage_payload(record, quota)}


@router.post("/add")
def add_usage(
    body: UsageAddRequest,
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: str = Depends(get_today_key),
):
    """Add a measured delta for a single app to a day's record (today by default)."""
    target = body.date or today
    record = usage_service.add(db, user.id, target, body.minutes, body.app_name)
    quota = usage_service.quota_for(user, record.total_minutes) if target == today else None
    return {"success": True, "usage": usage_payload(record, quota)}


@router.get("/history")
def usage_history(
    days: int = Query(7, ge=1),
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    today: str = Depends(get_today_key),
):
    records = usage_service.history(db, user.id, today, min(days, settings.MAX_HISTORY_DAYS))
    return {"success": True, "history": [usage_payload(r) for r in records]}
