"""SQLModel table definitions for the portal data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class DepartmentTable(SQLModel, table=True):
    """Municipal departments that own assigned requests."""

    __tablename__ = "departments"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    slug: str = Field(sa_column=Column(String(100), nullable=False, unique=True))


class UserTable(SQLModel, table=True):
    """Portal accounts; read by the lifecycle only to validate assignees."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    role: str = Field(sa_column=Column(String(50), nullable=False))
    department_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
    )
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class ServiceRequestTable(SQLModel, table=True):
    """Citizen service requests and their optimistic-locking version."""

    __tablename__ = "service_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'TRIAGED', 'IN_PROGRESS', 'WAITING_ON_CITIZEN', "
            "'RESOLVED', 'CLOSED', 'REJECTED')",
            name="ck_service_requests_status",
        ),
        CheckConstraint("version >= 1", name="ck_service_requests_version"),
    )

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    code: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    title: str = Field(sa_column=Column(String(120), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    category: str = Field(sa_column=Column(String(100), nullable=False))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    location_text: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False))
    created_by: str = Field(sa_column=Column(String(36), nullable=False))
    assigned_to: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    department_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


class EventLogTable(SQLModel, table=True):
    """Append-only history of request transitions."""

    __tablename__ = "event_logs"
    __table_args__ = (UniqueConstraint("request_id", "version", name="uq_event_logs_request_version"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    request_id: str = Field(
        sa_column=Column(String(36), ForeignKey("service_requests.id", ondelete="RESTRICT"), nullable=False, index=True)
    )
    version: int = Field(sa_column=Column(Integer, nullable=False))
    type: str = Field(sa_column=Column(String(50), nullable=False))
    payload: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
