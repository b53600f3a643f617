from __future__ import annotations

import re

from .errors import ConflictError, MalformedPreconditionError, PreconditionError

_ENTITY_TAG_RE = re.compile(r'^(?:W/"(\d+)"|"(\d+)"|(\d+))$')


def parse_if_match(value: str | None) -> int | None:
    """Read a version number from an ``If-Match`` header.

    Accepts ``3``, ``"3"`` and ``W/"3"``. Returns ``None`` when the header is
    absent.
    """

    if value is None:
        return None
    match = _ENTITY_TAG_RE.match(value.strip())
    if match is None:
        raise MalformedPreconditionError(
            "If-Match header must be a valid version number",
            details={"ifMatch": value},
        )
    return int(next(group for group in match.groups() if group is not None))


def format_etag(version: int) -> str:
    return f'"{version}"'


class ConcurrencyGuard:
    """Compare-and-swap precondition on a request's version token.

    ``supplied`` is either a version number or the raw ``If-Match`` header;
    headers are parsed here so an unreadable one is only reported once the
    caller has been authorized.
    """

    @staticmethod
    def check_version(stored_version: int, supplied: int | str | None) -> None:
        supplied_version = parse_if_match(supplied) if isinstance(supplied, str) else supplied
        if supplied_version is None:
            raise PreconditionError("If-Match header is required for optimistic locking")
        if stored_version != supplied_version:
            raise ConflictError(
                "Request has been modified by another user",
                details={"currentVersion": stored_version, "expectedVersion": supplied_version},
            )
