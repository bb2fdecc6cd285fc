from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.certificates import router as certificates_router
from app.api.health import router as health_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.progress import router as progress_router
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import async_session_factory, lifespan_db
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.repos.content_repo import seed_sample_content
from app.repos.unit_of_work import (
    InMemoryUnitOfWorkFactory,
    PgUnitOfWorkFactory,
    UnitOfWorkFactory,
)
from app.services.certificate_service import CertificateService
from app.services.progress_service import ProgressService

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


def build_uow_factory() -> UnitOfWorkFactory:
    """PostgreSQL when DATABASE_URL is set, otherwise in-memory repositories."""
    if async_session_factory is not None:
        return PgUnitOfWorkFactory(async_session_factory)
    factory = InMemoryUnitOfWorkFactory()
    if SETTINGS.is_dev:
        seed_sample_content(factory.content)
    return factory


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        yield


app = FastAPI(
    title="learning-progress",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Services are built once and shared; routers read them from app.state.
uow_factory = build_uow_factory()
certificate_service = CertificateService(uow_factory)
app.state.uow_factory = uow_factory
app.state.certificate_service = certificate_service
app.state.progress_service = ProgressService(
    uow_factory, certificates=certificate_service
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(progress_router)
app.include_router(certificates_router)

logger.info(
    "learning-progress started  env=%s log_level=%s port=%d storage=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "postgres" if async_session_factory is not None else "memory",
)
