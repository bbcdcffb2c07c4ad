"""User accounts: sign-in provisioning, admin CRUD and self-updates."""

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slowdown_shared import Role, User
from slowdown_shared.errors import Conflict, NotFound, PermissionDenied, ValidationError

from ..config import Settings
from ..schemas import ADMIN_ONLY_FIELDS, UserCreate, UserUpdate
from ..security import Identity
from ..tables import UserRow

logger = logging.getLogger(__name__)


def to_model(row: UserRow) -> User:
    return User.model_validate(row)


def get_user(db: Session, user_id: str) -> UserRow:
    user = db.get(UserRow, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> UserRow | None:
    return db.execute(select(UserRow).where(UserRow.email == email.lower())).scalar_one_or_none()


def list_users(db: Session) -> list[UserRow]:
    return list(db.execute(select(UserRow).order_by(UserRow.created_at.desc())).scalars())


def _new_user(settings: Settings, email: str, display_name: str | None, role: Role | None) -> UserRow:
    email = email.lower()
    if role is None:
        role = Role.ADMIN if settings.is_admin_email(email) else Role.USER
    limit = (
        settings.ADMIN_DAILY_LIMIT_MINUTES
        if role == Role.ADMIN
        else settings.DEFAULT_DAILY_LIMIT_MINUTES
    )
    return UserRow(
        email=email,
        display_name=display_name or email.split("@")[0],
        role=role.value,
        daily_limit_minutes=limit,
        bonus_minutes=0,
        is_blocked=False,
    )


def sign_in(db: Session, settings: Settings, identity: Identity) -> tuple[UserRow, bool]:
    """Find or create the user for a verified identity.

    Returns the user and whether it was created by this call.
    """
    now = datetime.now(UTC)
    user = get_user_by_email(db, identity.email)
    if user is None:
        user = _new_user(settings, identity.email, identity.name, role=None)
        user.photo_url = identity.picture
        user.last_login_at = now
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Concurrent first sign-in for the same email
            db.rollback()
            user = get_user_by_email(db, identity.email)
            if user is None:
                raise
        else:
            logger.info("New user created: %s (%s)", user.email, user.role)
            return user, True

    if identity.name:
        user.display_name = identity.name
    if identity.picture:
        user.photo_url = identity.picture
    user.last_login_at = now
    db.commit()
    logger.info("Existing user signed in: %s", user.email)
    return user, False


def create_user(db: Session, settings: Settings, body: UserCreate) -> UserRow:
    """Admin pre-provisioning of an account by email."""
    if get_user_by_email(db, body.email) is not None:
        raise Conflict("A user with this email already exists")

    user = _new_user(settings, body.email, body.display_name, body.role)
    if body.daily_limit_minutes is not None:
        user.daily_limit_minutes = body.daily_limit_minutes
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("A user with this email already exists") from e
    logger.info("User provisioned: %s (%s)", user.email, user.role)
    return user


def update_user(db: Session, actor: UserRow, user_id: str, body: UserUpdate) -> UserRow:
    """Apply a partial update.

    Admins may change any field. Users may change only their own display
    name and photo.
    """
    is_admin = actor.role == Role.ADMIN.value
    if actor.id != user_id and not is_admin:
        raise PermissionDenied("Access denied")

    changes = {name: getattr(body, name) for name in body.model_fields_set}
    if not is_admin and ADMIN_ONLY_FIELDS & changes.keys():
        raise PermissionDenied("Only admin can update these fields")
    if not changes:
        raise ValidationError("No valid fields to update")
    for required in ("display_name", "daily_limit_minutes", "bonus_minutes", "is_blocked", "role"):
        if required in changes and changes[required] is None:
            raise ValidationError(f"{required} cannot be null")

    user = get_user(db, user_id)
    for name, value in changes.items():
        if name == "role":
            value = value.value
        setattr(user, name, value)
    if changes.get("is_blocked") is False and "block_reason" not in changes:
        user.block_reason = None

    db.commit()
    logger.info("User updated: %s (%s)", user.email, ", ".join(sorted(changes)))
    return user
