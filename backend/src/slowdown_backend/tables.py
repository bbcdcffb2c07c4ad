"""ORM tables: users, usage_records, time_requests."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    photo_url = Column(Text, nullable=True)
    role = Column(String(16), nullable=False, default="user")
    daily_limit_minutes = Column(Integer, nullable=False, default=30)
    bonus_minutes = Column(Integer, nullable=False, default=0)
    is_blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(Text, nullable=True)
    pending_time_request_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
        CheckConstraint("daily_limit_minutes >= 0", name="ck_users_daily_limit"),
        CheckConstraint("bonus_minutes >= 0", name="ck_users_bonus"),
    )

    def __repr__(self):
        return f"<User {self.email}>"


class UsageRecordRow(Base):
    __tablename__ = "usage_records"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date_key = Column(String(10), nullable=False)
    total_minutes = Column(Float, nullable=False, default=0.0)
    app_usage = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "date_key", name="uq_usage_records_user_date"),
        CheckConstraint("total_minutes >= 0", name="ck_usage_records_total"),
    )

    def __repr__(self):
        return f"<UsageRecord {self.user_id} {self.date_key} {self.total_minutes:.1f}>"


class TimeRequestRow(Base):
    __tablename__ = "time_requests"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_minutes = Column(Integer, nullable=False)
    approved_minutes = Column(Integer, nullable=True)
    reason = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="pending", index=True)
    admin_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    admin_note = Column(Text, nullable=True)
    date_key = Column(String(10), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("requested_minutes > 0", name="ck_time_requests_requested"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_time_requests_status"
        ),
        # At most one pending request per user
        Index(
            "uq_time_requests_user_pending",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self):
        return f"<TimeRequest {self.id} {self.status}>"
