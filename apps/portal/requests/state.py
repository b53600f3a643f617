from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping

from .errors import TransitionError

MIN_REASON_LENGTH = 10


class RequestStatus(str, Enum):
    """Canonical states of the service-request lifecycle."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    TRIAGED = "TRIAGED"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_ON_CITIZEN = "WAITING_ON_CITIZEN"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"


class Role(str, Enum):
    """Roles resolved from the caller's bearer token."""

    CITIZEN = "CITIZEN"
    CLERK = "CLERK"
    FIELD_AGENT = "FIELD_AGENT"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"


class Action(str, Enum):
    """Status-changing actions a caller may request."""

    TRIAGE = "triage"
    START = "start"
    WAIT_FOR_CITIZEN = "wait_for_citizen"
    RESOLVE = "resolve"
    CLOSE = "close"
    REJECT = "reject"
    REOPEN = "reopen"


# closedAt is set while a request sits in one of these
CLOSED_STATUSES = frozenset({RequestStatus.RESOLVED, RequestStatus.CLOSED, RequestStatus.REJECTED})
STAFF_ROLES = frozenset({Role.CLERK, Role.FIELD_AGENT, Role.SUPERVISOR, Role.ADMIN})


def closed_at_for(status: RequestStatus, now: datetime) -> datetime | None:
    return now if status in CLOSED_STATUSES else None


_TRIAGE_ROLES = frozenset({Role.CLERK, Role.SUPERVISOR, Role.ADMIN})
_WORK_ROLES = frozenset({Role.CLERK, Role.FIELD_AGENT, Role.SUPERVISOR, Role.ADMIN})
_OVERSIGHT_ROLES = frozenset({Role.SUPERVISOR, Role.ADMIN})


@dataclass(frozen=True, slots=True)
class Transition:
    """One row of the transition table."""

    action: Action
    sources: frozenset[RequestStatus]
    target: RequestStatus
    roles: frozenset[Role]
    requires_assignee: bool = False
    requires_reason: bool = False


class TransitionTable:
    """Pure lookup from ``(status, action)`` to the transition it triggers."""

    _DEFAULT_TRANSITIONS: tuple[Transition, ...] = (
        Transition(
            action=Action.TRIAGE,
            sources=frozenset({RequestStatus.SUBMITTED}),
            target=RequestStatus.TRIAGED,
            roles=_TRIAGE_ROLES,
            requires_assignee=True,
        ),
        Transition(
            action=Action.START,
            sources=frozenset({RequestStatus.TRIAGED}),
            target=RequestStatus.IN_PROGRESS,
            roles=_WORK_ROLES,
        ),
        Transition(
            action=Action.WAIT_FOR_CITIZEN,
            sources=frozenset({RequestStatus.IN_PROGRESS}),
            target=RequestStatus.WAITING_ON_CITIZEN,
            roles=_WORK_ROLES,
            requires_reason=True,
        ),
        Transition(
            action=Action.RESOLVE,
            sources=frozenset({RequestStatus.IN_PROGRESS, RequestStatus.WAITING_ON_CITIZEN}),
            target=RequestStatus.RESOLVED,
            roles=_WORK_ROLES,
            requires_reason=True,
        ),
        Transition(
            action=Action.CLOSE,
            sources=frozenset({RequestStatus.RESOLVED}),
            target=RequestStatus.CLOSED,
            roles=_OVERSIGHT_ROLES,
        ),
        Transition(
            action=Action.REJECT,
            sources=frozenset({RequestStatus.SUBMITTED, RequestStatus.TRIAGED}),
            target=RequestStatus.REJECTED,
            roles=_TRIAGE_ROLES,
            requires_reason=True,
        ),
        Transition(
            action=Action.REOPEN,
            sources=frozenset({RequestStatus.RESOLVED, RequestStatus.CLOSED, RequestStatus.REJECTED}),
            target=RequestStatus.SUBMITTED,
            roles=_OVERSIGHT_ROLES,
            requires_reason=True,
        ),
    )

    def __init__(self, transitions: Iterable[Transition] | None = None) -> None:
        rows = tuple(transitions) if transitions is not None else self._DEFAULT_TRANSITIONS
        by_action: dict[Action, Transition] = {}
        for row in rows:
            if row.action in by_action:
                raise ValueError(f"Duplicate transition for action {row.action.value!r}")
            by_action[row.action] = row
        missing = set(Action) - set(by_action)
        if missing:
            names = ", ".join(sorted(action.value for action in missing))
            raise ValueError(f"Transition table does not cover actions: {names}")
        self._by_action: Mapping[Action, Transition] = by_action

    @staticmethod
    def initial_state() -> RequestStatus:
        return RequestStatus.SUBMITTED

    def for_action(self, action: Action) -> Transition:
        return self._by_action[action]

    def roles_for(self, action: Action) -> frozenset[Role]:
        return self._by_action[action].roles

    def can_transition(self, status: RequestStatus, action: Action) -> bool:
        return status in self._by_action[action].sources

    def allowed(self, status: RequestStatus, action: Action) -> Transition:
        """Return the transition for ``action`` from ``status`` or raise ``TransitionError``."""

        transition = self._by_action[action]
        if status not in transition.sources:
            raise TransitionError(
                f"Cannot {action.value} a request in status {status.value}",
                details={
                    "currentStatus": status.value,
                    "action": action.value,
                    "allowedFrom": sorted(source.value for source in transition.sources),
                },
            )
        return transition

    def actions_for(self, status: RequestStatus, role: Role | None = None) -> list[Action]:
        """Actions that are defined from ``status``, optionally narrowed to ``role``."""

        return [
            action
            for action, transition in self._by_action.items()
            if status in transition.sources and (role is None or role in transition.roles)
        ]


DEFAULT_TRANSITION_TABLE = TransitionTable()
