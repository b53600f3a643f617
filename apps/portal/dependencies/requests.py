from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from apps.portal.dependencies.auth import User, role_required
from apps.portal.requests.service import LifecycleService
from apps.portal.requests.state import Role

require_oversight = role_required(Role.SUPERVISOR, Role.ADMIN)

OversightUser = Annotated[User, Depends(require_oversight)]


async def get_lifecycle_service(request: Request) -> LifecycleService:
    service = getattr(request.app.state, "lifecycle_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service request lifecycle is not configured")
    return service


LifecycleServiceDep = Annotated[LifecycleService, Depends(get_lifecycle_service)]
