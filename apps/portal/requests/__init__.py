"""Service-request lifecycle: transition table, guards, storage and orchestration."""

from .authorization import AuthorizationGate
from .concurrency import ConcurrencyGuard, format_etag, parse_if_match
from .errors import (
    AuthorizationError,
    ConflictError,
    LifecycleError,
    MalformedPreconditionError,
    NotFoundError,
    PreconditionError,
    TransitionError,
    ValidationError,
)
from .events import EventLogWriter
from .models import Caller, EventLogEntry, EventType, Priority, ServiceRequest, StaffMember, TransitionResult
from .repository import RequestRepository, SqlRequestRepository
from .service import LifecycleService
from .state import DEFAULT_TRANSITION_TABLE, Action, RequestStatus, Role, TransitionTable

__all__ = [
    "Action",
    "AuthorizationError",
    "AuthorizationGate",
    "Caller",
    "ConcurrencyGuard",
    "ConflictError",
    "DEFAULT_TRANSITION_TABLE",
    "EventLogEntry",
    "EventLogWriter",
    "EventType",
    "LifecycleError",
    "LifecycleService",
    "MalformedPreconditionError",
    "NotFoundError",
    "PreconditionError",
    "Priority",
    "RequestRepository",
    "RequestStatus",
    "Role",
    "ServiceRequest",
    "SqlRequestRepository",
    "StaffMember",
    "TransitionError",
    "TransitionResult",
    "TransitionTable",
    "ValidationError",
    "format_etag",
    "parse_if_match",
]
