from __future__ import annotations

from datetime import datetime, timezone

import pytest

from apps.portal.metrics import MetricsRegistry
from apps.portal.requests.memory import InMemoryRequestRepository, InMemoryStaffDirectory
from apps.portal.requests.models import Priority, ServiceRequest, StaffMember
from apps.portal.requests.service import LifecycleService
from apps.portal.requests.state import CLOSED_STATUSES, RequestStatus, Role


def make_request(
    request_id: str = "r1",
    *,
    status: RequestStatus = RequestStatus.SUBMITTED,
    version: int = 1,
    assigned_to: str | None = None,
) -> ServiceRequest:
    now = datetime.now(timezone.utc)
    if assigned_to is None and status not in (RequestStatus.DRAFT, RequestStatus.SUBMITTED, RequestStatus.REJECTED):
        assigned_to = "u42"
    return ServiceRequest(
        id=request_id,
        code=f"REQ-{now.year}-{request_id}",
        title="Pothole on Elm Street",
        description="Large pothole in the right lane next to the school crossing.",
        category="roads",
        priority=Priority.HIGH,
        location_text="Elm Street 12",
        status=status,
        version=version,
        created_by="citizen-1",
        assigned_to=assigned_to,
        department_id="dept-roads" if assigned_to else None,
        created_at=now,
        updated_at=now,
        closed_at=now if status in CLOSED_STATUSES else None,
    )


@pytest.fixture
def staff_directory() -> InMemoryStaffDirectory:
    return InMemoryStaffDirectory(
        [
            StaffMember(id="u42", name="Roads Crew", role=Role.FIELD_AGENT, department_id="dept-roads"),
            StaffMember(id="u7", name="Parks Desk", role=Role.CLERK, department_id="dept-parks"),
            StaffMember(id="u-retired", name="Former Agent", role=Role.FIELD_AGENT, department_id=None, is_active=False),
            StaffMember(id="citizen-9", name="Resident", role=Role.CITIZEN, department_id=None),
        ]
    )


@pytest.fixture
def repository() -> InMemoryRequestRepository:
    return InMemoryRequestRepository()


@pytest.fixture
def registry() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def service(repository, staff_directory, registry) -> LifecycleService:
    return LifecycleService(repository, directory=staff_directory, metrics=registry)


@pytest.fixture
def seed_request(repository):
    async def _seed(request_id: str = "r1", **kwargs) -> ServiceRequest:
        return await repository.create_request(make_request(request_id, **kwargs))

    return _seed
