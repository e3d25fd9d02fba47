"""Application factories for the two deployables.

  create_ledger_app   Enrollment Ledger: enroll / drop / roster / check
  create_grading_app  Grading Gate: grade submission and grade views

Both share the same package, middleware stack and ambient configuration.
SERVICE_NAME picks which one ``registrar.main:app`` serves:

  SERVICE_NAME=ledger  uvicorn registrar.main:app --port 8083
  SERVICE_NAME=grading uvicorn registrar.main:app --port 8084
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from registrar.api.enrollments import router as enrollments_router
from registrar.api.grades import router as grades_router
from registrar.api.health import router as health_router
from registrar.api.metrics_endpoint import router as metrics_router
from registrar.clients.base import ServiceClient, build_http_client
from registrar.clients.catalog import CatalogClient
from registrar.clients.identity import IdentityClient
from registrar.clients.ledger import LedgerClient
from registrar.core.config import SETTINGS
from registrar.core.logging import setup_logging
from registrar.db.engine import async_session_factory, lifespan_db
from registrar.middleware.metrics import MetricsMiddleware
from registrar.middleware.request_context import RequestContextMiddleware
from registrar.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from registrar.repos.grade_repo import GradeRepo, InMemoryGradeRepo
from registrar.repos.sql_enrollment_repo import SqlEnrollmentRepo
from registrar.repos.sql_grade_repo import SqlGradeRepo
from registrar.services.grading_service import GradingService
from registrar.services.ledger_service import LedgerService

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


def _client(
    cls: type[ServiceClient],
    base_url: str,
    transport: httpx.AsyncBaseTransport | None,
):
    return cls(
        build_http_client(
            base_url,
            timeout_seconds=SETTINGS.dependency_timeout_seconds,
            transport=transport,
        )
    )


def _lifespan(clients: list[ServiceClient]) -> Callable:
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        async with lifespan_db():
            try:
                yield
            finally:
                for client in clients:
                    await client.aclose()

    return lifespan


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"kind": "internal", "message": "Internal server error"}},
    )


def _build_app(
    title: str,
    routers: list[APIRouter],
    clients: list[ServiceClient],
) -> FastAPI:
    app = FastAPI(
        title=title,
        lifespan=_lifespan(clients),
        docs_url="/docs" if SETTINGS.is_dev else None,
        redoc_url="/redoc" if SETTINGS.is_dev else None,
    )

    app.add_exception_handler(Exception, _unhandled_error)

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
    for router in routers:
        app.include_router(router)
    return app


def create_ledger_app(
    *,
    repo: EnrollmentRepo | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the Enrollment Ledger app.

    ``transport`` replaces the network for outbound calls (tests and the
    demo script pass in-process transports).  Without ``repo`` the ledger
    uses the SQL store when DATABASE_URL is set, otherwise an in-memory one.
    """
    if repo is None:
        repo = (
            SqlEnrollmentRepo(async_session_factory)
            if async_session_factory is not None
            else InMemoryEnrollmentRepo()
        )
    catalog = _client(CatalogClient, SETTINGS.catalog_url, transport)
    identity = _client(IdentityClient, SETTINGS.identity_url, transport)

    app = _build_app("enrollment-ledger", [enrollments_router], [catalog, identity])
    app.state.ledger_service = LedgerService(repo, catalog, identity)
    return app


def create_grading_app(
    *,
    repo: GradeRepo | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the Grading Gate app.  Same knobs as create_ledger_app."""
    if repo is None:
        repo = (
            SqlGradeRepo(async_session_factory)
            if async_session_factory is not None
            else InMemoryGradeRepo()
        )
    catalog = _client(CatalogClient, SETTINGS.catalog_url, transport)
    identity = _client(IdentityClient, SETTINGS.identity_url, transport)
    ledger = _client(LedgerClient, SETTINGS.ledger_url, transport)

    app = _build_app("grading-gate", [grades_router], [catalog, identity, ledger])
    app.state.grading_service = GradingService(repo, catalog, identity, ledger)
    return app


# Only the selected app is built, so only its clients are opened.
app = create_ledger_app() if SETTINGS.service_name == "ledger" else create_grading_app()

logger.info(
    "%s started  env=%s log_level=%s port=%d docs=%s",
    app.title,
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
