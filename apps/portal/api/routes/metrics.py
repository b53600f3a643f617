from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from apps.portal.dependencies.requests import OversightUser
from apps.portal.metrics import metrics_registry

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse, summary="Prometheus metrics for supervisors")
async def export_metrics(_: OversightUser) -> PlainTextResponse:
    return PlainTextResponse(metrics_registry.render_prometheus(), media_type="text/plain; version=0.0.4")
