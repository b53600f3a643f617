import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from apps.portal.api.errors import register_exception_handlers
from apps.portal.api.routes import metrics, ping, requests
from apps.portal.core.config import Settings, get_settings
from apps.portal.core.logging import configure_logging, init_tracer, shutdown_tracer
from apps.portal.middleware import CorrelationIdMiddleware
from apps.portal.requests.directory import SqlStaffDirectory
from apps.portal.requests.memory import InMemoryRequestRepository, InMemoryStaffDirectory
from apps.portal.requests.repository import SqlRequestRepository
from apps.portal.requests.service import LifecycleService

logger = logging.getLogger(__name__)


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


async def build_lifecycle_service(settings: Settings) -> tuple[LifecycleService, AsyncEngine | None]:
    """Wire the lifecycle service to the configured storage backend."""

    if settings.storage_backend == "memory":
        directory = InMemoryStaffDirectory.from_config(settings.memory_staff)
        return LifecycleService(InMemoryRequestRepository(), directory=directory), None

    engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    repository = SqlRequestRepository(session_factory, engine=engine)
    try:
        await repository.ensure_schema()
    except Exception:
        await engine.dispose()
        raise
    service = LifecycleService(repository, directory=SqlStaffDirectory(session_factory))
    return service, engine


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    db_engine: AsyncEngine | None = None
    app.state.lifecycle_service = None
    try:
        app.state.lifecycle_service, db_engine = await build_lifecycle_service(settings)
    except Exception:  # service initialisation best effort; routes answer 503
        logger.exception("Could not initialise the %s storage backend", settings.storage_backend)
    try:
        yield
    finally:
        if db_engine is not None:
            await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(requests.router)
    return app


app = create_app()
