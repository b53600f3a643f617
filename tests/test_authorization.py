import pytest

from apps.portal.requests.authorization import AuthorizationGate
from apps.portal.requests.errors import AuthorizationError
from apps.portal.requests.state import Action, Role

ALLOWED = {
    Action.TRIAGE: {Role.CLERK, Role.SUPERVISOR, Role.ADMIN},
    Action.START: {Role.CLERK, Role.FIELD_AGENT, Role.SUPERVISOR, Role.ADMIN},
    Action.WAIT_FOR_CITIZEN: {Role.CLERK, Role.FIELD_AGENT, Role.SUPERVISOR, Role.ADMIN},
    Action.RESOLVE: {Role.CLERK, Role.FIELD_AGENT, Role.SUPERVISOR, Role.ADMIN},
    Action.CLOSE: {Role.SUPERVISOR, Role.ADMIN},
    Action.REJECT: {Role.CLERK, Role.SUPERVISOR, Role.ADMIN},
    Action.REOPEN: {Role.SUPERVISOR, Role.ADMIN},
}


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("role", list(Role))
def test_role_matrix(role, action):
    gate = AuthorizationGate()
    assert gate.is_allowed(role, action) is (role in ALLOWED[action])


@pytest.mark.parametrize("action", list(Action))
def test_citizen_may_not_perform_any_action(action):
    gate = AuthorizationGate()
    with pytest.raises(AuthorizationError) as excinfo:
        gate.authorize(Role.CITIZEN, action)
    assert excinfo.value.code == "FORBIDDEN"
    assert excinfo.value.details == {"role": "CITIZEN", "action": action.value}


def test_field_agent_cannot_triage():
    with pytest.raises(AuthorizationError):
        AuthorizationGate().authorize(Role.FIELD_AGENT, Action.TRIAGE)
