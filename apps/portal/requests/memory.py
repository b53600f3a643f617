"""In-process storage used by tests and the ``memory`` storage backend."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .errors import ConflictError, NotFoundError
from .events import EventLogWriter
from .models import EventLogEntry, EventType, ServiceRequest, StaffMember, TransitionResult
from .repository import DuplicateRequestCodeError
from .state import RequestStatus, Role, closed_at_for


class InMemoryRequestRepository:
    """Dictionary-backed repository with the same CAS contract as the SQL one.

    ``apply_transition`` never awaits between the version comparison and the
    write, so on a single event loop the two happen as one step.
    """

    def __init__(self, *, event_writer: EventLogWriter | None = None) -> None:
        self._events_writer = event_writer or EventLogWriter()
        self._requests: dict[str, ServiceRequest] = {}
        self._events: dict[str, list[EventLogEntry]] = {}
        self._codes: set[str] = set()

    async def ensure_schema(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    async def create_request(self, request: ServiceRequest) -> ServiceRequest:
        if request.code in self._codes:
            raise DuplicateRequestCodeError(f"Request code {request.code} already exists")
        self._codes.add(request.code)
        self._requests[request.id] = replace(request)
        self._events[request.id] = []
        return request

    async def get_request(self, request_id: str) -> ServiceRequest | None:
        stored = self._requests.get(request_id)
        return replace(stored) if stored is not None else None

    async def apply_transition(
        self,
        request_id: str,
        *,
        expected_version: int,
        new_status: RequestStatus,
        event_type: EventType,
        audit_payload: Mapping[str, Any],
        assignee_id: str | None = None,
        department_id: str | None = None,
    ) -> TransitionResult:
        stored = self._requests.get(request_id)
        if stored is None:
            raise NotFoundError(f"Service request {request_id} not found")
        if stored.version != expected_version:
            raise ConflictError(
                "Request has been modified by another user",
                details={"currentVersion": stored.version, "expectedVersion": expected_version},
            )

        now = datetime.now(timezone.utc)
        new_version = stored.version + 1
        updated = replace(
            stored,
            status=new_status,
            version=new_version,
            updated_at=now,
            closed_at=closed_at_for(new_status, now),
        )
        if assignee_id is not None:
            updated.assigned_to = assignee_id
            updated.department_id = department_id

        entry = self._events_writer.build_entry(
            request_id=request_id,
            version=new_version,
            event_type=event_type,
            payload=audit_payload,
            created_at=now,
        )
        self._requests[request_id] = updated
        self._events[request_id].append(entry)

        return TransitionResult(
            id=request_id,
            status=updated.status,
            version=updated.version,
            updated_at=updated.updated_at,
            assigned_to=updated.assigned_to,
            department_id=updated.department_id,
            closed_at=updated.closed_at,
            event=entry,
        )

    async def list_events(self, request_id: str) -> list[EventLogEntry]:
        return list(self._events.get(request_id, ()))


class InMemoryStaffDirectory:
    """Staff lookup over a fixed set of members."""

    def __init__(self, members: Iterable[StaffMember] = ()) -> None:
        self._members = {member.id: member for member in members}

    @classmethod
    def from_config(cls, value: str) -> InMemoryStaffDirectory:
        return cls(parse_staff_members(value))

    def add(self, member: StaffMember) -> None:
        self._members[member.id] = member

    async def get_staff_member(self, user_id: str) -> StaffMember | None:
        return self._members.get(user_id)


def parse_staff_members(value: str | None) -> list[StaffMember]:
    """Read ``id:ROLE[:department]`` entries separated by commas."""

    members: list[StaffMember] = []
    for item in (value or "").split(","):
        item = item.strip()
        if not item:
            continue
        user_id, _, rest = item.partition(":")
        role_name, _, department_id = rest.partition(":")
        if not user_id.strip() or not role_name.strip():
            raise ValueError(f"Staff entry {item!r} must look like id:ROLE[:department]")
        try:
            role = Role(role_name.strip().upper())
        except ValueError as exc:
            raise ValueError(f"Staff entry {item!r} has unknown role {role_name!r}") from exc
        members.append(
            StaffMember(
                id=user_id.strip(),
                name=user_id.strip(),
                role=role,
                department_id=department_id.strip() or None,
            )
        )
    return members
