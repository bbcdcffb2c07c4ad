"""FastAPI dependencies: settings, identity verifier, bearer-token auth."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from slowdown_shared import Role
from slowdown_shared.dates import date_key
from slowdown_shared.errors import AuthenticationFailed, PermissionDenied

from .config import Settings
from .database import get_db
from .security import IdentityVerifier, decode_access_token
from .tables import UserRow

bearer = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_today_key(settings: Settings = Depends(get_app_settings)) -> str:
    return date_key(offset_hours=settings.TIMEZONE_OFFSET_HOURS)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> UserRow:
    """Resolve the bearer token to a user row."""
    if credentials is None:
        raise AuthenticationFailed("Access denied. No token provided.")

    payload = decode_access_token(settings, credentials.credentials)
    user = db.get(UserRow, payload["sub"])
    if user is None:
        raise AuthenticationFailed("User not found.")
    return user


def require_admin(user: UserRow = Depends(get_current_user)) -> UserRow:
    if user.role != Role.ADMIN.value:
        raise PermissionDenied("Access denied. Admin privileges required.")
    return user


def require_self_or_admin(user_id: str, user: UserRow) -> None:
    if user.id != user_id and user.role != Role.ADMIN.value:
        raise PermissionDenied("Access denied")
