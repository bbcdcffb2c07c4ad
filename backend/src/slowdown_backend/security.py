"""Session tokens (JWT) and identity-token verification."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

import firebase_admin  # type: ignore[import-untyped]
from firebase_admin import auth, credentials  # type: ignore[import-untyped]
from jose import JWTError, jwt

from slowdown_shared.errors import AuthenticationFailed

from .config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """A verified external identity."""

    uid: str
    email: str
    name: str | None = None
    picture: str | None = None


class IdentityVerifier(Protocol):
    def __call__(self, id_token: str) -> Identity: ...


def create_access_token(settings: Settings, user_id: str, email: str, role: str) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    claims = {"sub": user_id, "email": email, "role": role, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> dict:
    """Decode a session token. Raises AuthenticationFailed if invalid or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise AuthenticationFailed("Invalid or expired token") from e
    if not payload.get("sub"):
        raise AuthenticationFailed("Invalid token")
    return payload


def init_firebase(settings: Settings) -> firebase_admin.App:
    """Initialize the Firebase Admin SDK once and return the default app."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    if settings.FIREBASE_CREDENTIALS_PATH:
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
        return firebase_admin.initialize_app(cred, options)
    return firebase_admin.initialize_app(options=options)


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens issued after Google sign-in on the device."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def __call__(self, id_token: str) -> Identity:
        app = init_firebase(self._settings)
        try:
            claims = auth.verify_id_token(id_token, app=app)
        except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError) as e:
            logger.warning("Identity token verification failed: %s", e)
            raise AuthenticationFailed("Invalid Google token") from e

        email = claims.get("email")
        if not email:
            raise AuthenticationFailed("Identity token carries no email")
        return Identity(
            uid=claims["uid"],
            email=email,
            name=claims.get("name"),
            picture=claims.get("picture"),
        )
