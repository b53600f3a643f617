from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from packages.db.models import ServiceRequestTable

from .errors import ConflictError, NotFoundError
from .events import EventLogWriter
from .models import EventLogEntry, EventType, Priority, ServiceRequest, TransitionResult
from .state import RequestStatus, closed_at_for

logger = logging.getLogger(__name__)


class DuplicateRequestCodeError(RuntimeError):
    """Raised when a generated request code is already taken."""


class RequestRepository(Protocol):
    """Persistence boundary for service requests and their event log."""

    async def create_request(self, request: ServiceRequest) -> ServiceRequest:
        ...

    async def get_request(self, request_id: str) -> ServiceRequest | None:
        ...

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
        ...

    async def list_events(self, request_id: str) -> list[EventLogEntry]:
        ...

    async def ping(self) -> bool:
        ...


class SqlRequestRepository:
    """SQLModel-backed repository; every write runs in its own transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
        event_writer: EventLogWriter | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine
        self._events = event_writer or EventLogWriter()

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def ping(self) -> bool:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True

    async def create_request(self, request: ServiceRequest) -> ServiceRequest:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        ServiceRequestTable(
                            id=request.id,
                            code=request.code,
                            title=request.title,
                            description=request.description,
                            category=request.category,
                            priority=request.priority.value,
                            location_text=request.location_text,
                            status=request.status.value,
                            version=request.version,
                            created_by=request.created_by,
                            assigned_to=request.assigned_to,
                            department_id=request.department_id,
                            created_at=request.created_at,
                            updated_at=request.updated_at,
                            closed_at=request.closed_at,
                        )
                    )
        except IntegrityError as exc:
            if await self._code_taken(request):
                raise DuplicateRequestCodeError(f"Request code {request.code} already exists") from exc
            raise
        return request

    async def _code_taken(self, request: ServiceRequest) -> bool:
        """True when another request already holds ``request.code``."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(ServiceRequestTable.id)
                .where(ServiceRequestTable.code == request.code)
                .where(ServiceRequestTable.id != request.id)
            )
            return result.first() is not None

    async def get_request(self, request_id: str) -> ServiceRequest | None:
        async with self._session_factory() as session:
            row = await session.get(ServiceRequestTable, request_id)
            if row is None:
                return None
            return self._table_to_request(row)

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
        """Move the request to ``new_status`` only if its version still equals ``expected_version``.

        The conditional update and the event-log insert share one transaction;
        when no row matches, nothing is written and the caller gets either
        ``NotFoundError`` or ``ConflictError``.
        """

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "status": new_status.value,
            "version": ServiceRequestTable.version + 1,
            "updated_at": now,
            "closed_at": closed_at_for(new_status, now),
        }
        if assignee_id is not None:
            values["assigned_to"] = assignee_id
            values["department_id"] = department_id

        statement = (
            update(ServiceRequestTable)
            .where(ServiceRequestTable.id == request_id)
            .where(ServiceRequestTable.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
                if result.rowcount == 0:
                    current = await session.get(ServiceRequestTable, request_id)
                    if current is None:
                        raise NotFoundError(f"Service request {request_id} not found")
                    logger.info(
                        "Version conflict on request %s: expected %s, stored %s",
                        request_id,
                        expected_version,
                        current.version,
                    )
                    raise ConflictError(
                        "Request has been modified by another user",
                        details={"currentVersion": current.version, "expectedVersion": expected_version},
                    )

                new_version = expected_version + 1
                entry = self._events.append(
                    session,
                    request_id=request_id,
                    version=new_version,
                    event_type=event_type,
                    payload=audit_payload,
                    created_at=now,
                )
                row = await session.get(ServiceRequestTable, request_id, populate_existing=True)
                if row is None:  # pragma: no cover - the row was just updated
                    raise NotFoundError(f"Service request {request_id} not found")

                return TransitionResult(
                    id=request_id,
                    status=RequestStatus(row.status),
                    version=row.version,
                    updated_at=_ensure_datetime(row.updated_at),
                    assigned_to=row.assigned_to,
                    department_id=row.department_id,
                    closed_at=_ensure_optional_datetime(row.closed_at),
                    event=entry,
                )

    async def list_events(self, request_id: str) -> list[EventLogEntry]:
        async with self._session_factory() as session:
            return await self._events.list_for_request(session, request_id)

    @staticmethod
    def _table_to_request(row: ServiceRequestTable) -> ServiceRequest:
        return ServiceRequest(
            id=row.id,
            code=row.code,
            title=row.title,
            description=row.description,
            category=row.category,
            priority=Priority(row.priority),
            location_text=row.location_text,
            status=RequestStatus(row.status),
            version=row.version,
            created_by=row.created_by,
            assigned_to=row.assigned_to,
            department_id=row.department_id,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            closed_at=_ensure_optional_datetime(row.closed_at),
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _ensure_optional_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return _ensure_datetime(value)
