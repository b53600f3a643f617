from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Header, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from apps.portal.dependencies.auth import CurrentUser
from apps.portal.dependencies.requests import LifecycleServiceDep
from apps.portal.requests.concurrency import format_etag
from apps.portal.requests.models import EventLogEntry, EventType, Priority, ServiceRequest
from apps.portal.requests.state import Action, RequestStatus

router = APIRouter(prefix="/requests", tags=["requests"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServiceRequestCreateRequest(CamelModel):
    title: str = Field(..., min_length=5, max_length=120)
    description: str = Field(..., min_length=30)
    category: str = Field(..., min_length=1, max_length=100)
    priority: Priority = Field(default=Priority.MEDIUM)
    location_text: str = Field(..., min_length=1)


class StatusChangeRequest(CamelModel):
    action: Action
    reason: str | None = Field(default=None, max_length=2000)
    assigned_to: str | None = Field(default=None, min_length=1, max_length=36)


class StatusChangeResponse(CamelModel):
    id: str
    status: RequestStatus
    version: int
    updated_at: datetime


class ServiceRequestResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

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
    closed_at: datetime | None


class EventLogEntryResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    version: int
    type: EventType
    payload: dict[str, Any]
    created_at: datetime


class AvailableActionsResponse(CamelModel):
    id: str
    status: RequestStatus
    version: int
    actions: list[Action]


def _to_response(service_request: ServiceRequest) -> ServiceRequestResponse:
    return ServiceRequestResponse.model_validate(service_request)


def _to_event_response(entry: EventLogEntry) -> EventLogEntryResponse:
    return EventLogEntryResponse.model_validate(entry)


@router.post("", response_model=ServiceRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_service_request(
    payload: ServiceRequestCreateRequest,
    service: LifecycleServiceDep,
    user: CurrentUser,
    response: Response,
) -> ServiceRequestResponse:
    created = await service.create_request(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        location_text=payload.location_text,
        priority=payload.priority,
        caller=user.as_caller(),
    )
    response.headers["ETag"] = format_etag(created.version)
    return _to_response(created)


@router.get("/{request_id}", response_model=ServiceRequestResponse)
async def get_service_request(
    request_id: str,
    service: LifecycleServiceDep,
    _: CurrentUser,
    response: Response,
) -> ServiceRequestResponse:
    found = await service.get_request(request_id)
    response.headers["ETag"] = format_etag(found.version)
    return _to_response(found)


@router.post("/{request_id}/status", response_model=StatusChangeResponse)
async def change_service_request_status(
    request_id: str,
    payload: StatusChangeRequest,
    service: LifecycleServiceDep,
    user: CurrentUser,
    response: Response,
    if_match: Annotated[str | None, Header()] = None,
) -> StatusChangeResponse:
    result = await service.change_status(
        request_id,
        action=payload.action,
        caller=user.as_caller(),
        expected_version=if_match,
        reason=payload.reason,
        assignee_id=payload.assigned_to,
    )
    response.headers["ETag"] = format_etag(result.version)
    return StatusChangeResponse(
        id=result.id,
        status=result.status,
        version=result.version,
        updated_at=result.updated_at,
    )


@router.get("/{request_id}/events", response_model=list[EventLogEntryResponse])
async def list_service_request_events(
    request_id: str,
    service: LifecycleServiceDep,
    _: CurrentUser,
) -> list[EventLogEntryResponse]:
    entries = await service.list_events(request_id)
    return [_to_event_response(entry) for entry in entries]


@router.get("/{request_id}/actions", response_model=AvailableActionsResponse)
async def list_available_actions(
    request_id: str,
    service: LifecycleServiceDep,
    user: CurrentUser,
) -> AvailableActionsResponse:
    found, actions = await service.available_actions(request_id, user.role)
    return AvailableActionsResponse(id=found.id, status=found.status, version=found.version, actions=actions)
