"""User management endpoints."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..deps import (
    get_app_settings,
    get_current_user,
    get_today_key,
    require_admin,
    require_self_or_admin,
)
from ..payloads import usage_payload, user_payload
from ..schemas import UserCreate, UserUpdate
from ..services import usage as usage_service
from ..services import users as user_service
from ..tables import UserRow

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(admin: UserRow = Depends(require_admin), db: Session = Depends(get_db)):
    return {"success": True, "users": [user_payload(u) for u in user_service.list_users(db)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    admin: UserRow = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    user = user_service.create_user(db, settings, body)
    return {"success": True, "user": user_payload(user)}


@router.get("/{user_id}")
def get_user(
    user_id: str,
    current: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: str = Depends(get_today_key),
):
    require_self_or_admin(user_id, current)
    user = user_service.get_user(db, user_id)
    record = usage_service.get_record(db, user.id, today)
    quota = usage_service.quota_for(user, record.total_minutes)
    return {
        "success": True,
        "user": user_payload(user),
        "usage": usage_payload(record, quota),
    }


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    current: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = user_service.update_user(db, current, user_id, body)
    return {"success": True, "user": user_payload(user)}


@router.get("/{user_id}/stats")
def user_stats(
    user_id: str,
    days: int = Query(7, ge=1),
    current: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    today: str = Depends(get_today_key),
):
    require_self_or_admin(user_id, current)
    user = user_service.get_user(db, user_id)
    records = usage_service.history(db, user.id, today, min(days, settings.MAX_HISTORY_DAYS))
    summary = usage_service.summarize(records)
    return {
        "success": True,
        "stats": {
            "records": [usage_payload(r) for r in summary.records],
            "totalMinutes": summary.total_minutes,
            "averageMinutes": summary.average_minutes,
            "daysTracked": summary.days_tracked,
            "appTotals": summary.app_totals,
            "mostUsedApp": summary.most_used_app,
            "mostUsedAppMinutes": summary.most_used_app_minutes,
        },
    }
