"""Transaction behaviour of the time-request service."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slowdown_backend.services import time_requests
from slowdown_backend.tables import TimeRequestRow, UserRow
from slowdown_shared import RequestStatus
from slowdown_shared.errors import DuplicatePendingRequest, NotFound, RequestNotPending, ValidationError


@pytest.fixture
def user(db: Session) -> UserRow:
    row = UserRow(email="kid@example.com", display_name="Kid")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def admin(db: Session) -> UserRow:
    row = UserRow(email="parent@example.com", display_name="Parent", role="admin", daily_limit_minutes=999)
    db.add(row)
    db.commit()
    return row


def test_create_and_approve(db: Session, user: UserRow, admin: UserRow) -> None:
    request = time_requests.create_request(db, user, 15, "  ", date_key="2024-01-15")
    assert request.status == RequestStatus.PENDING
    assert request.reason is None
    assert request.date_key == "2024-01-15"
    assert user.pending_time_request_id == request.id

    approved = time_requests.approve(db, request.id, admin)
    assert approved.status == RequestStatus.APPROVED
    assert approved.approved_minutes == 15

    db.refresh(user)
    assert user.bonus_minutes == 15
    assert user.pending_time_request_id is None


def test_duplicate_pending_is_refused(db: Session, user: UserRow) -> None:
    time_requests.create_request(db, user, 10)
    with pytest.raises(DuplicatePendingRequest):
        time_requests.create_request(db, user, 20)


def test_unique_index_allows_one_pending_per_user(db: Session, user: UserRow) -> None:
    db.add(TimeRequestRow(user_id=user.id, requested_minutes=5, status="pending"))
    db.commit()
    db.add(TimeRequestRow(user_id=user.id, requested_minutes=5, status="rejected"))
    db.commit()

    db.add(TimeRequestRow(user_id=user.id, requested_minutes=7, status="pending"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_failed_approval_changes_nothing(db: Session, admin: UserRow) -> None:
    orphan = TimeRequestRow(user_id="ghost", requested_minutes=15, status="pending")
    db.add(orphan)
    db.commit()

    with pytest.raises(NotFound):
        time_requests.approve(db, orphan.id, admin)

    db.expire_all()
    row = db.get(TimeRequestRow, orphan.id)
    assert row.status == "pending"
    assert row.approved_minutes is None
    assert row.processed_at is None


def test_approval_amount_must_be_positive(db: Session, user: UserRow, admin: UserRow) -> None:
    request = time_requests.create_request(db, user, 15)
    with pytest.raises(ValidationError):
        time_requests.approve(db, request.id, admin, approved_minutes=0)
    assert time_requests.get_pending_for_user(db, user).id == request.id


def test_terminal_states_are_final(db: Session, user: UserRow, admin: UserRow) -> None:
    request = time_requests.create_request(db, user, 15)
    time_requests.reject(db, request.id, admin, "no")
    with pytest.raises(RequestNotPending):
        time_requests.approve(db, request.id, admin)
    with pytest.raises(RequestNotPending):
        time_requests.reject(db, request.id, admin)

    db.refresh(user)
    assert user.bonus_minutes == 0


def test_pointer_to_newer_request_survives(db: Session, user: UserRow, admin: UserRow) -> None:
    request = time_requests.create_request(db, user, 15)
    user.pending_time_request_id = "something-else"
    db.commit()

    time_requests.reject(db, request.id, admin)
    db.refresh(user)
    assert user.pending_time_request_id == "something-else"


def test_cancel(db: Session, user: UserRow) -> None:
    request = time_requests.create_request(db, user, 15)
    time_requests.cancel(db, request.id, user)
    db.refresh(user)
    assert user.pending_time_request_id is None
    assert time_requests.list_for_user(db, user) == []

    with pytest.raises(NotFound):
        time_requests.cancel(db, request.id, user)
