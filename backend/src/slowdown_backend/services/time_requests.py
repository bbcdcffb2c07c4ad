"""Time-request workflow: create, approve, reject, cancel, list.

State machine: pending -> approved | rejected, both terminal. Approval
credits the user's bonus minutes in the same transaction that marks the
request approved.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slowdown_shared import RequestStatus, TimeRequest
from slowdown_shared.errors import (
    DuplicatePendingRequest,
    NotFound,
    RequestNotPending,
    ValidationError,
)

from ..tables import TimeRequestRow, UserRow

logger = logging.getLogger(__name__)

MAX_REQUEST_MINUTES = 24 * 60

_STATUS_ORDER = case(
    (TimeRequestRow.status == RequestStatus.PENDING.value, 0),
    (TimeRequestRow.status == RequestStatus.APPROVED.value, 1),
    else_=2,
)


def to_model(row: TimeRequestRow) -> TimeRequest:
    return TimeRequest.model_validate(row)


def _pending_for(db: Session, user_id: str) -> TimeRequestRow | None:
    return db.execute(
        select(TimeRequestRow).where(
            TimeRequestRow.user_id == user_id,
            TimeRequestRow.status == RequestStatus.PENDING.value,
        )
    ).scalar_one_or_none()


def create_request(
    db: Session,
    user: UserRow,
    requested_minutes: int,
    reason: str | None = None,
    date_key: str | None = None,
) -> TimeRequest:
    """Create a pending request and point the user at it.

    The partial unique index on pending requests makes the duplicate check
    race-safe; the query below only gives a friendlier early failure.
    """
    if requested_minutes is None or requested_minutes <= 0:
        raise ValidationError("Invalid requested minutes")
    if requested_minutes > MAX_REQUEST_MINUTES:
        raise ValidationError(f"Cannot request more than {MAX_REQUEST_MINUTES} minutes")

    if _pending_for(db, user.id) is not None:
        raise DuplicatePendingRequest()

    request = TimeRequestRow(
        user_id=user.id,
        requested_minutes=requested_minutes,
        reason=(reason or "").strip() or None,
        status=RequestStatus.PENDING.value,
        date_key=date_key,
    )
    try:
        db.add(request)
        db.flush()
        user.pending_time_request_id = request.id
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicatePendingRequest() from e

    logger.info("New time request from %s: %d minutes", user.email, requested_minutes)
    return to_model(request)


def _lock_pending(db: Session, request_id: str) -> TimeRequestRow:
    request = db.execute(
        select(TimeRequestRow)
        .where(TimeRequestRow.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if request is None:
        raise NotFound("Request not found")
    if request.status != RequestStatus.PENDING.value:
        raise RequestNotPending()
    return request


def _clear_pointer_values(request_id: str) -> dict:
    return {
        UserRow.pending_time_request_id: case(
            (UserRow.pending_time_request_id == request_id, None),
            else_=UserRow.pending_time_request_id,
        ),
        UserRow.updated_at: datetime.now(UTC),
    }


def approve(
    db: Session,
    request_id: str,
    admin: UserRow,
    approved_minutes: int | None = None,
    note: str | None = None,
) -> TimeRequest:
    """Approve a pending request and credit the bonus, atomically."""
    if approved_minutes is not None and approved_minutes <= 0:
        raise ValidationError("approvedMinutes must be positive")

    try:
        request = _lock_pending(db, request_id)
        minutes = approved_minutes if approved_minutes is not None else request.requested_minutes

        request.status = RequestStatus.APPROVED.value
        request.approved_minutes = minutes
        request.admin_id = admin.id
        request.admin_note = (note or "").strip() or None
        request.processed_at = datetime.now(UTC)

        owner = db.get(UserRow, request.user_id, with_for_update=True, populate_existing=True)
        if owner is None:
            raise NotFound("User not found")

        values = _clear_pointer_values(request.id)
        values[UserRow.bonus_minutes] = UserRow.bonus_minutes + minutes
        db.query(UserRow).filter(UserRow.id == owner.id).update(
            values, synchronize_session="fetch"
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Time request %s approved: +%d minutes for user %s", request.id, minutes, request.user_id)
    return to_model(request)


def reject(db: Session, request_id: str, admin: UserRow, note: str | None = None) -> TimeRequest:
    """Reject a pending request. No bonus change."""
    try:
        request = _lock_pending(db, request_id)
        request.status = RequestStatus.REJECTED.value
        request.admin_id = admin.id
        request.admin_note = (note or "").strip() or None
        request.processed_at = datetime.now(UTC)

        db.query(UserRow).filter(UserRow.id == request.user_id).update(
            _clear_pointer_values(request.id), synchronize_session="fetch"
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Time request %s rejected", request.id)
    return to_model(request)


def cancel(db: Session, request_id: str, user: UserRow) -> None:
    """Owner withdraws their own pending request."""
    try:
        request = db.execute(
            select(TimeRequestRow)
            .where(
                TimeRequestRow.id == request_id,
                TimeRequestRow.user_id == user.id,
                TimeRequestRow.status == RequestStatus.PENDING.value,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if request is None:
            raise NotFound("Request not found or cannot be cancelled")

        db.delete(request)
        db.query(UserRow).filter(UserRow.id == user.id).update(
            _clear_pointer_values(request_id), synchronize_session="fetch"
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Time request %s cancelled", request_id)


def get_pending_for_user(db: Session, user: UserRow) -> TimeRequest | None:
    request = _pending_for(db, user.id)
    return to_model(request) if request else None


def list_for_admin(
    db: Session, status: RequestStatus | None = None
) -> list[tuple[TimeRequest, UserRow]]:
    """All requests with their owners, pending first, then newest first."""
    query = select(TimeRequestRow, UserRow).join(UserRow, TimeRequestRow.user_id == UserRow.id)
    if status is not None:
        query = query.where(TimeRequestRow.status == status.value)
    query = query.order_by(_STATUS_ORDER, TimeRequestRow.created_at.desc())
    return [(to_model(request), owner) for request, owner in db.execute(query).all()]


def list_for_user(db: Session, user: UserRow, status: RequestStatus | None = None) -> list[TimeRequest]:
    """The user's own requests, newest first."""
    query = select(TimeRequestRow).where(TimeRequestRow.user_id == user.id)
    if status is not None:
        query = query.where(TimeRequestRow.status == status.value)
    query = query.order_by(TimeRequestRow.created_at.desc())
    return [to_model(request) for request in db.execute(query).scalars()]
