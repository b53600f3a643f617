from __future__ import annotations

from typing import Any, Mapping


class LifecycleError(RuntimeError):
    """Base error for service-request lifecycle failures."""

    code = "LIFECYCLE_ERROR"

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})


class ValidationError(LifecycleError):
    """Raised when an action is missing a required field or carries an invalid one."""

    code = "VALIDATION_ERROR"


class PreconditionError(ValidationError):
    """Raised when the expected-version precondition is absent or unreadable."""

    code = "MISSING_IF_MATCH"


class MalformedPreconditionError(PreconditionError):
    code = "INVALID_IF_MATCH"


class AuthorizationError(LifecycleError):
    """Raised when the caller's role may not perform the action."""

    code = "FORBIDDEN"


class TransitionError(LifecycleError):
    """Raised when the action is not defined for the request's current status."""

    code = "INVALID_STATUS_TRANSITION"


class ConflictError(LifecycleError):
    """Raised when the supplied version no longer matches the stored one."""

    code = "VERSION_CONFLICT"


class NotFoundError(LifecycleError):
    """Raised when a service request could not be located."""

    code = "REQUEST_NOT_FOUND"
