from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from apps.portal.core.security import InvalidTokenError, verify_token
from apps.portal.requests.models import Caller
from apps.portal.requests.state import Role


class User:
    """Authenticated caller resolved from the bearer token."""

    def __init__(self, user_id: str, role: Role):
        self.user_id = user_id
        self.role = role

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles

    def as_caller(self) -> Caller:
        return Caller(user_id=self.user_id, role=self.role)


bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_user_from_token(token: str | None) -> User:
    """Return the user carried by ``token`` or raise a 401."""

    if not token:
        raise _unauthorized("Access token required")

    try:
        claims = verify_token(token)
    except InvalidTokenError as exc:
        raise _unauthorized("Invalid authentication credentials") from exc

    try:
        role = Role(str(claims["role"]).upper())
    except ValueError as exc:
        raise _unauthorized("Invalid authentication credentials") from exc
    return User(user_id=str(claims["sub"]), role=role)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token)
    request.state.user = user
    return user


def role_required(*roles: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user holds one of ``roles``."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(*roles):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
