from __future__ import annotations

import pytest
from pydantic import ValidationError as SettingsError

from apps.portal.core.config import Settings
from apps.portal.main import build_lifecycle_service
from apps.portal.requests.memory import parse_staff_members
from apps.portal.requests.models import Caller
from apps.portal.requests.state import Action, RequestStatus, Role


@pytest.mark.asyncio
async def test_memory_backend_can_triage_with_default_staff():
    service, engine = await build_lifecycle_service(Settings(storage_backend="memory"))
    assert engine is None

    created = await service.create_request(
        title="Broken streetlight",
        description="The streetlight at the corner has been out for a week now.",
        category="lighting",
        location_text="Oak Avenue / 3rd Street",
        caller=Caller(user_id="citizen-1", role=Role.CITIZEN),
    )
    result = await service.change_status(
        created.id,
        action=Action.TRIAGE,
        caller=Caller(user_id="clerk-1", role=Role.CLERK),
        expected_version=created.version,
        assignee_id="agent-1",
    )

    assert result.status is RequestStatus.TRIAGED
    assert result.assigned_to == "agent-1"


@pytest.mark.asyncio
async def test_memory_backend_uses_configured_staff():
    settings = Settings(storage_backend="memory", memory_staff="u42:field_agent:dept-roads")
    service, _ = await build_lifecycle_service(settings)

    created = await service.create_request(
        title="Pothole on Elm Street",
        description="Large pothole in the right lane next to the school crossing.",
        category="roads",
        location_text="Elm Street 12",
        caller=Caller(user_id="citizen-1", role=Role.CITIZEN),
    )
    result = await service.change_status(
        created.id,
        action=Action.TRIAGE,
        caller=Caller(user_id="clerk-1", role=Role.CLERK),
        expected_version='"1"',
        assignee_id="u42",
    )

    assert result.department_id == "dept-roads"


def test_unknown_storage_backend_is_rejected():
    with pytest.raises(SettingsError):
        Settings(storage_backend="memroy")


def test_parse_staff_members():
    members = parse_staff_members(" clerk-1:CLERK , u42:FIELD_AGENT:dept-roads,, ")

    assert [member.id for member in members] == ["clerk-1", "u42"]
    assert members[0].department_id is None
    assert members[1].role is Role.FIELD_AGENT
    assert members[1].department_id == "dept-roads"
    assert parse_staff_members("") == []


@pytest.mark.parametrize("value", ["clerk-1", "clerk-1:JANITOR", ":CLERK"])
def test_parse_staff_members_rejects_bad_entries(value):
    with pytest.raises(ValueError):
        parse_staff_members(value)
