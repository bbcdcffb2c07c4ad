"""Authentication endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from slowdown_shared import can_request_time

from ..config import Settings
from ..database import get_db
from ..deps import get_app_settings, get_current_user, get_identity_verifier, get_today_key
from ..payloads import user_payload
from ..schemas import GoogleAuthRequest
from ..security import IdentityVerifier, create_access_token
from ..services import usage as usage_service
from ..services import users as user_service
from ..tables import UserRow

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/google")
def google_sign_in(
    body: GoogleAuthRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    verify: IdentityVerifier = Depends(get_identity_verifier),
):
    """Exchange a verified identity token for a session token."""
    identity = verify(body.id_token)
    user, is_new = user_service.sign_in(db, settings, identity)
    token = create_access_token(settings, user.id, user.email, user.role)
    return {
        "success": True,
        "token": token,
        "user": {**user_payload(user), "isNewUser": is_new},
    }


@router.get("/me")
def me(
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: str = Depends(get_today_key),
):
    record = usage_service.get_record(db, user.id, today)
    quota = usage_service.quota_for(user, record.total_minutes)
    return {
        "success": True,
        "user": user_payload(user),
        "quota": quota.to_wire(),
        "canRequestTime": can_request_time(quota, user.pending_time_request_id is not None),
    }


@router.post("/logout")
def logout(user: UserRow = Depends(get_current_user)):
    # Session tokens are stateless; the client discards its copy.
    return {"success": True, "message": "Logged out successfully"}
