import logging

from fastapi import APIRouter, HTTPException

from apps.portal.dependencies.requests import LifecycleServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="Storage readiness probe")
async def ready(service: LifecycleServiceDep) -> dict[str, str]:
    try:
        await service.ping()
    except Exception as exc:
        logger.warning("Readiness check failed: %s", exc)
        raise HTTPException(status_code=503, detail="Storage is not reachable") from exc
    return {"status": "ok"}
