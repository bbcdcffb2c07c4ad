"""Time-request endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from slowdown_shared import RequestStatus, Role

from ..database import get_db
from ..deps import get_current_user, get_today_key, require_admin
from ..payloads import request_payload
from ..schemas import TimeRequestCreate, TimeRequestUpdate
from ..services import time_requests as request_service
from ..tables import UserRow

router = APIRouter(prefix="/time-requests", tags=["time-requests"])


@router.post("", status_code=201)
def create_request(
    body: TimeRequestCreate,
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: str = Depends(get_today_key),
):
    request = request_service.create_request(
        db, user, body.requested_minutes, body.reason, date_key=today
    )
    return {"success": True, "request": request_payload(request)}


@router.get("")
def list_requests(
    status: RequestStatus | None = Query(None),
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins see everyone's requests, pending first; users see their own."""
    if user.role == Role.ADMIN.value:
        requests = [
            request_payload(request, owner)
            for request, owner in request_service.list_for_admin(db, status)
        ]
    else:
        requests = [request_payload(r) for r in request_service.list_for_user(db, user, status)]
    return {"success": True, "requests": requests}


@router.get("/pending")
def pending_requests(user: UserRow = Depends(get_current_user), db: Session = Depends(get_db)):
    if user.role == Role.ADMIN.value:
        pending = request_service.list_for_admin(db, RequestStatus.PENDING)
        return {
            "success": True,
            "requests": [request_payload(request, owner) for request, owner in pending],
        }

    request = request_service.get_pending_for_user(db, user)
    return {"success": True, "request": request_payload(request) if request else None}


@router.patch("/{request_id}")
def process_request(
    request_id: str,
    body: TimeRequestUpdate,
    admin: UserRow = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if body.status == RequestStatus.APPROVED.value:
        request = request_service.approve(
            db, request_id, admin, body.approved_minutes, body.admin_note
        )
    else:
        request = request_service.reject(db, request_id, admin, body.admin_note)
    return {
        "success": True,
        "message": f"Request {request.status.value}",
        "request": request_payload(request),
    }


@router.delete("/{request_id}")
def cancel_request(
    request_id: str,
    user: UserRow = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    request_service.cancel(db, request_id, user)
    return {"success": True, "message": "Request cancelled"}
