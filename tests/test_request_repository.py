from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import func, inspect as sa_inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from apps.portal.requests.directory import SqlStaffDirectory
from apps.portal.requests.errors import ConflictError, NotFoundError
from apps.portal.requests.models import EventType
from apps.portal.requests.repository import DuplicateRequestCodeError, SqlRequestRepository
from apps.portal.requests.state import RequestStatus, Role
from packages.db.models import EventLogTable, ServiceRequestTable, UserTable

from .conftest import make_request

PAYLOAD = {"action": "start", "fromStatus": "TRIAGED", "toStatus": "IN_PROGRESS"}


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def sql_repository(session_factory: async_sessionmaker, engine: AsyncEngine) -> SqlRequestRepository:
    return SqlRequestRepository(session_factory, engine=engine)


async def _event_count(session_factory: async_sessionmaker, request_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(EventLogTable).where(EventLogTable.request_id == request_id)
        )
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables(engine: AsyncEngine):
    repo = SqlRequestRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    await repo.ensure_schema()

    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(sa_inspect(sync_conn).get_table_names()))

    assert {"service_requests", "event_logs", "users", "departments"} <= tables


@pytest.mark.asyncio
async def test_create_and_get_round_trip(sql_repository: SqlRequestRepository):
    await sql_repository.create_request(make_request("r1"))

    stored = await sql_repository.get_request("r1")

    assert stored is not None
    assert stored.status is RequestStatus.SUBMITTED
    assert stored.version == 1
    assert stored.created_at.tzinfo is not None
    assert await sql_repository.get_request("missing") is None


@pytest.mark.asyncio
async def test_duplicate_code_is_reported(sql_repository: SqlRequestRepository):
    await sql_repository.create_request(make_request("r1"))
    duplicate = make_request("r2")
    duplicate.code = make_request("r1").code

    with pytest.raises(DuplicateRequestCodeError):
        await sql_repository.create_request(duplicate)


@pytest.mark.asyncio
async def test_id_clash_is_not_reported_as_code_clash(sql_repository: SqlRequestRepository):
    await sql_repository.create_request(make_request("r1"))
    same_id = make_request("r1")
    same_id.code = "REQ-2025-999999"

    with pytest.raises(IntegrityError):
        await sql_repository.create_request(same_id)


@pytest.mark.asyncio
async def test_schema_rejects_version_below_one(sql_repository: SqlRequestRepository):
    with pytest.raises(IntegrityError):
        await sql_repository.create_request(make_request("r1", version=0))
    assert await sql_repository.get_request("r1") is None


@pytest.mark.asyncio
async def test_schema_rejects_unknown_status(session_factory: async_sessionmaker):
    request = make_request("r1")
    with pytest.raises(IntegrityError):
        async with session_factory() as session:
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
                        status="APPROVED",
                        version=1,
                        created_by=request.created_by,
                        created_at=request.created_at,
                        updated_at=request.updated_at,
                    )
                )


@pytest.mark.asyncio
async def test_apply_transition_updates_row_and_appends_event(
    sql_repository: SqlRequestRepository, session_factory: async_sessionmaker
):
    await sql_repository.create_request(make_request("r1", status=RequestStatus.TRIAGED))

    result = await sql_repository.apply_transition(
        "r1",
        expected_version=1,
        new_status=RequestStatus.IN_PROGRESS,
        event_type=EventType.STATUS_CHANGED,
        audit_payload=PAYLOAD,
    )

    assert result.status is RequestStatus.IN_PROGRESS
    assert result.version == 2
    assert result.assigned_to == "u42"
    assert result.closed_at is None

    events = await sql_repository.list_events("r1")
    assert len(events) == 1
    assert events[0].version == 2
    assert events[0].type is EventType.STATUS_CHANGED
    assert events[0].payload["toStatus"] == "IN_PROGRESS"
    assert events[0].payload["version"] == 2


@pytest.mark.asyncio
async def test_stale_version_writes_nothing(
    sql_repository: SqlRequestRepository, session_factory: async_sessionmaker
):
    await sql_repository.create_request(make_request("r1", status=RequestStatus.TRIAGED, version=3))

    with pytest.raises(ConflictError) as excinfo:
        await sql_repository.apply_transition(
            "r1",
            expected_version=2,
            new_status=RequestStatus.IN_PROGRESS,
            event_type=EventType.STATUS_CHANGED,
            audit_payload=PAYLOAD,
        )

    assert excinfo.value.details == {"currentVersion": 3, "expectedVersion": 2}
    stored = await sql_repository.get_request("r1")
    assert stored.status is RequestStatus.TRIAGED
    assert stored.version == 3
    assert await _event_count(session_factory, "r1") == 0


@pytest.mark.asyncio
async def test_second_writer_with_same_version_loses(
    sql_repository: SqlRequestRepository, session_factory: async_sessionmaker
):
    await sql_repository.create_request(make_request("r1", status=RequestStatus.TRIAGED))
    kwargs = dict(
        expected_version=1,
        new_status=RequestStatus.IN_PROGRESS,
        event_type=EventType.STATUS_CHANGED,
        audit_payload=PAYLOAD,
    )

    await sql_repository.apply_transition("r1", **kwargs)
    with pytest.raises(ConflictError):
        await sql_repository.apply_transition("r1", **kwargs)

    assert (await sql_repository.get_request("r1")).version == 2
    assert await _event_count(session_factory, "r1") == 1


@pytest.mark.asyncio
async def test_unknown_request_is_not_found(sql_repository: SqlRequestRepository):
    with pytest.raises(NotFoundError):
        await sql_repository.apply_transition(
            "missing",
            expected_version=1,
            new_status=RequestStatus.TRIAGED,
            event_type=EventType.STATUS_CHANGED,
            audit_payload=PAYLOAD,
        )


@pytest.mark.asyncio
async def test_assignment_and_closed_at(sql_repository: SqlRequestRepository):
    await sql_repository.create_request(make_request("r1", status=RequestStatus.IN_PROGRESS))

    resolved = await sql_repository.apply_transition(
        "r1",
        expected_version=1,
        new_status=RequestStatus.RESOLVED,
        event_type=EventType.REQUEST_ASSIGNED,
        audit_payload={"action": "resolve"},
        assignee_id="u7",
        department_id="dept-parks",
    )
    assert resolved.closed_at is not None
    assert resolved.assigned_to == "u7"
    assert resolved.department_id == "dept-parks"

    reopened = await sql_repository.apply_transition(
        "r1",
        expected_version=2,
        new_status=RequestStatus.SUBMITTED,
        event_type=EventType.STATUS_CHANGED,
        audit_payload={"action": "reopen"},
    )
    assert reopened.closed_at is None
    assert reopened.assigned_to == "u7"
    assert [event.version for event in await sql_repository.list_events("r1")] == [2, 3]


@pytest.mark.asyncio
async def test_ping(sql_repository: SqlRequestRepository):
    assert await sql_repository.ping() is True


@pytest.mark.asyncio
async def test_staff_directory_reads_users(session_factory: async_sessionmaker):
    async with session_factory() as session:
        async with session.begin():
            session.add(UserTable(id="u42", name="Roads Crew", email="crew@city.test", role="FIELD_AGENT"))
            session.add(
                UserTable(id="u9", name="Legacy", email="legacy@city.test", role="DISPATCHER", is_active=False)
            )

    directory = SqlStaffDirectory(session_factory)

    member = await directory.get_staff_member("u42")
    assert member is not None
    assert member.role is Role.FIELD_AGENT
    assert member.is_active
    assert await directory.get_staff_member("u9") is None
    assert await directory.get_staff_member("nobody") is None
