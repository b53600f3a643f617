from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timezone

from opentelemetry import trace

from apps.portal.metrics import MetricsRegistry, metrics_registry, register_default_metrics
from apps.portal.metrics.definitions import (
    REQUESTS_CREATED_TOTAL,
    TRANSITION_DURATION_SECONDS,
    TRANSITION_REJECTIONS_TOTAL,
    TRANSITIONS_TOTAL,
)

from .authorization import AuthorizationGate
from .concurrency import ConcurrencyGuard
from .directory import StaffDirectory
from .errors import LifecycleError, NotFoundError, ValidationError
from .events import build_transition_payload
from .models import (
    Caller,
    EventLogEntry,
    EventType,
    Priority,
    ServiceRequest,
    StaffMember,
    TransitionResult,
)
from .repository import DuplicateRequestCodeError, RequestRepository
from .state import (
    DEFAULT_TRANSITION_TABLE,
    MIN_REASON_LENGTH,
    STAFF_ROLES,
    Action,
    Role,
    Transition,
    TransitionTable,
)

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

_CODE_ATTEMPTS = 5


def generate_request_code(now: datetime | None = None) -> str:
    year = (now or datetime.now(timezone.utc)).year
    return f"REQ-{year}-{secrets.randbelow(1_000_000):06d}"


class LifecycleService:
    """Single entry point for moving a service request through its lifecycle.

    ``change_status`` loads the request, then runs the role check, the
    version check, the transition lookup and field validation without side
    effects. Only the final ``apply_transition`` call writes, and it compares
    the version again inside its own transaction.
    """

    def __init__(
        self,
        repository: RequestRepository,
        *,
        directory: StaffDirectory,
        table: TransitionTable | None = None,
        gate: AuthorizationGate | None = None,
        guard: ConcurrencyGuard | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._directory = directory
        self._table = table or DEFAULT_TRANSITION_TABLE
        self._gate = gate or AuthorizationGate(self._table)
        self._guard = guard or ConcurrencyGuard()
        self._metrics = register_default_metrics(metrics or metrics_registry)

    async def create_request(
        self,
        *,
        title: str,
        description: str,
        category: str,
        location_text: str,
        caller: Caller,
        priority: Priority = Priority.MEDIUM,
    ) -> ServiceRequest:
        for attempt in range(1, _CODE_ATTEMPTS + 1):
            now = datetime.now(timezone.utc)
            request = ServiceRequest(
                id=str(uuid.uuid4()),
                code=generate_request_code(now),
                title=title,
                description=description,
                category=category,
                priority=priority,
                location_text=location_text,
                status=self._table.initial_state(),
                version=1,
                created_by=caller.user_id,
                assigned_to=None,
                department_id=None,
                created_at=now,
                updated_at=now,
            )
            try:
                created = await self._repository.create_request(request)
            except DuplicateRequestCodeError:
                logger.warning("Request code %s collided (attempt %d)", request.code, attempt)
                continue
            self._metrics.counter(REQUESTS_CREATED_TOTAL).inc()
            logger.info("Request %s (%s) submitted by %s", created.id, created.code, caller.user_id)
            return created
        raise RuntimeError("Could not allocate a unique request code")

    async def ping(self) -> bool:
        return await self._repository.ping()

    async def get_request(self, request_id: str) -> ServiceRequest:
        request = await self._repository.get_request(request_id)
        if request is None:
            raise NotFoundError(f"Service request {request_id} not found")
        return request

    async def list_events(self, request_id: str) -> list[EventLogEntry]:
        await self.get_request(request_id)
        return await self._repository.list_events(request_id)

    async def available_actions(self, request_id: str, role: Role) -> tuple[ServiceRequest, list[Action]]:
        request = await self.get_request(request_id)
        return request, self._table.actions_for(request.status, role)

    async def change_status(
        self,
        request_id: str,
        *,
        action: Action,
        caller: Caller,
        expected_version: int | str | None,
        reason: str | None = None,
        assignee_id: str | None = None,
    ) -> TransitionResult:
        with self._metrics.time(TRANSITION_DURATION_SECONDS), _tracer.start_as_current_span(
            "service_request.change_status"
        ) as span:
            span.set_attribute("service_request.id", request_id)
            span.set_attribute("service_request.action", action.value)
            span.set_attribute("caller.role", caller.role.value)
            try:
                result = await self._change_status(
                    request_id,
                    action=action,
                    caller=caller,
                    expected_version=expected_version,
                    reason=reason,
                    assignee_id=assignee_id,
                )
            except LifecycleError as exc:
                span.set_attribute("service_request.error", exc.code)
                self._metrics.counter(TRANSITION_REJECTIONS_TOTAL).inc(
                    labels={"action": action.value, "code": exc.code}
                )
                logger.info(
                    "Rejected %s on request %s by %s (%s): %s",
                    action.value,
                    request_id,
                    caller.user_id,
                    exc.code,
                    exc.message,
                )
                raise

        self._metrics.counter(TRANSITIONS_TOTAL).inc(
            labels={"action": action.value, "to_status": result.status.value}
        )
        return result

    async def _change_status(
        self,
        request_id: str,
        *,
        action: Action,
        caller: Caller,
        expected_version: int | str | None,
        reason: str | None,
        assignee_id: str | None,
    ) -> TransitionResult:
        request = await self._repository.get_request(request_id)
        if request is None:
            raise NotFoundError(f"Service request {request_id} not found")

        self._gate.authorize(caller.role, action)
        # a stale token is reported before the table lookup: a retried action
        # that already applied is a conflict, not an undefined transition
        self._guard.check_version(request.version, expected_version)
        transition = self._table.allowed(request.status, action)
        reason = self._validate_reason(transition, reason)
        assignee = await self._resolve_assignee(transition, assignee_id)

        reassigned = assignee is not None and assignee.id != request.assigned_to
        payload = build_transition_payload(
            action=action,
            from_status=request.status,
            to_status=transition.target,
            actor=caller,
            reason=reason,
            assigned_to=assignee.id if reassigned else None,
            previous_assignee=request.assigned_to,
            department_id=assignee.department_id if reassigned else None,
        )
        result = await self._repository.apply_transition(
            request_id,
            expected_version=request.version,
            new_status=transition.target,
            event_type=EventType.REQUEST_ASSIGNED if reassigned else EventType.STATUS_CHANGED,
            audit_payload=payload,
            assignee_id=assignee.id if reassigned else None,
            department_id=assignee.department_id if reassigned else None,
        )
        logger.info(
            "Request %s moved %s -> %s by %s (version %d)",
            request_id,
            request.status.value,
            result.status.value,
            caller.user_id,
            result.version,
        )
        return result

    @staticmethod
    def _validate_reason(transition: Transition, reason: str | None) -> str | None:
        cleaned = (reason or "").strip()
        if transition.requires_reason and len(cleaned) < MIN_REASON_LENGTH:
            raise ValidationError(
                f"A reason of at least {MIN_REASON_LENGTH} characters is required to {transition.action.value}",
                details={"field": "reason", "minLength": MIN_REASON_LENGTH},
            )
        return cleaned or None

    async def _resolve_assignee(self, transition: Transition, assignee_id: str | None) -> StaffMember | None:
        if not assignee_id:
            if transition.requires_assignee:
                raise ValidationError(
                    f"assignedTo is required to {transition.action.value}",
                    details={"field": "assignedTo"},
                )
            return None

        member = await self._directory.get_staff_member(assignee_id)
        if member is None or not member.is_active or member.role not in STAFF_ROLES:
            raise ValidationError(
                f"Assignee {assignee_id} does not exist or cannot receive assignments",
                details={"field": "assignedTo", "assignedTo": assignee_id},
            )
        return member
