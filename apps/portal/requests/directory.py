from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from packages.db.models import UserTable

from .models import StaffMember
from .state import Role

logger = logging.getLogger(__name__)


class StaffDirectory(Protocol):
    """Read-only lookup of users that may receive an assignment."""

    async def get_staff_member(self, user_id: str) -> StaffMember | None:
        ...


class SqlStaffDirectory:
    """Staff lookup backed by the ``users`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_staff_member(self, user_id: str) -> StaffMember | None:
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
        if row is None:
            return None
        try:
            role = Role(row.role)
        except ValueError:
            logger.warning("User %s has unknown role %r", user_id, row.role)
            return None
        return StaffMember(
            id=row.id,
            name=row.name,
            role=role,
            department_id=row.department_id,
            is_active=bool(row.is_active),
        )
