from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from .state import RequestStatus, Role


class EventType(str, Enum):
    """Kinds of entries written to a request's event log."""

    STATUS_CHANGED = "STATUS_CHANGED"
    REQUEST_ASSIGNED = "REQUEST_ASSIGNED"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


@dataclass(slots=True)
class ServiceRequest:
    """Aggregate root for a citizen-submitted service request."""

    id: str
    code: str
    title: str
    description: str
    category: str
    priority: Priority
    location_text: str
    status: RequestStatus
    version: int
    created_by: str
    assigned_to: str | None
    department_id: str | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None


@dataclass(slots=True)
class EventLogEntry:
    """Immutable record of one successful transition."""

    id: str
    request_id: str
    version: int
    type: EventType
    payload: Mapping[str, Any]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class Caller:
    """Identity resolved from the bearer token."""

    user_id: str
    role: Role


@dataclass(frozen=True, slots=True)
class StaffMember:
    """Directory record used to validate assignees."""

    id: str
    name: str
    role: Role
    department_id: str | None
    is_active: bool = True


@dataclass(slots=True)
class TransitionResult:
    """Outcome of a successful status change."""

    id: str
    status: RequestStatus
    version: int
    updated_at: datetime
    assigned_to: str | None = None
    department_id: str | None = None
    closed_at: datetime | None = None
    event: EventLogEntry | None = field(default=None)
