"""Append-only event log for service-request transitions.

Entries are staged on the caller's session so they commit (or roll back)
together with the request row they describe. Nothing here updates or
deletes an existing entry.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from packages.db.models import EventLogTable

from .models import Caller, EventLogEntry, EventType
from .state import Action, RequestStatus


def build_transition_payload(
    *,
    action: Action,
    from_status: RequestStatus,
    to_status: RequestStatus,
    actor: Caller,
    reason: str | None,
    assigned_to: str | None = None,
    previous_assignee: str | None = None,
    department_id: str | None = None,
) -> dict[str, Any]:
    """Structured record stored as the entry payload."""

    payload: dict[str, Any] = {
        "action": action.value,
        "fromStatus": from_status.value,
        "toStatus": to_status.value,
        "actorId": actor.user_id,
        "actorRole": actor.role.value,
        "reason": reason,
    }
    if assigned_to is not None:
        payload["assignedTo"] = assigned_to
        payload["previousAssignee"] = previous_assignee
        payload["departmentId"] = department_id
    return payload


class EventLogWriter:
    """Create event-log entries inside an open transaction."""

    @staticmethod
    def build_entry(
        *,
        request_id: str,
        version: int,
        event_type: EventType,
        payload: Mapping[str, Any],
        created_at: datetime | None = None,
    ) -> EventLogEntry:
        return EventLogEntry(
            id=str(uuid.uuid4()),
            request_id=request_id,
            version=version,
            type=event_type,
            payload={**payload, "version": version},
            created_at=created_at or datetime.now(timezone.utc),
        )

    def append(
        self,
        session: AsyncSession,
        *,
        request_id: str,
        version: int,
        event_type: EventType,
        payload: Mapping[str, Any],
        created_at: datetime | None = None,
    ) -> EventLogEntry:
        entry = self.build_entry(
            request_id=request_id,
            version=version,
            event_type=event_type,
            payload=payload,
            created_at=created_at,
        )
        session.add(
            EventLogTable(
                id=entry.id,
                request_id=entry.request_id,
                version=entry.version,
                type=entry.type.value,
                payload=dict(entry.payload),
                created_at=entry.created_at,
            )
        )
        return entry

    async def list_for_request(self, session: AsyncSession, request_id: str) -> list[EventLogEntry]:
        result = await session.execute(
            select(EventLogTable)
            .where(EventLogTable.request_id == request_id)
            .order_by(EventLogTable.version.asc())
        )
        return [self._table_to_entry(row) for row in result.scalars().all()]

    @staticmethod
    def _table_to_entry(row: EventLogTable) -> EventLogEntry:
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return EventLogEntry(
            id=row.id,
            request_id=row.request_id,
            version=row.version,
            type=EventType(row.type),
            payload=dict(row.payload or {}),
            created_at=created_at,
        )
