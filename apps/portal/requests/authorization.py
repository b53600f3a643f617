from __future__ import annotations

from .errors import AuthorizationError
from .state import DEFAULT_TRANSITION_TABLE, Action, Role, TransitionTable


class AuthorizationGate:
    """Role-based check of an action, independent of the request's current status."""

    def __init__(self, table: TransitionTable | None = None) -> None:
        self._table = table or DEFAULT_TRANSITION_TABLE

    def is_allowed(self, role: Role, action: Action) -> bool:
        return role in self._table.roles_for(action)

    def authorize(self, role: Role, action: Action) -> None:
        if not self.is_allowed(role, action):
            raise AuthorizationError(
                f"Role {role.value} may not perform {action.value}",
                details={"role": role.value, "action": action.value},
            )
