"""
Trade Barriers Tracker

Main application entry point.

Tracks interprovincial agreements that reduce internal trade barriers:
their status, deadlines, participating jurisdictions and history.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tradebarriers.api import agreements_router, auth_router, dashboard_router, themes_router
from tradebarriers.core.errors import TrackerError
from tradebarriers.core.service import TrackerService
from tradebarriers.db.store import AgreementStore
from tradebarriers.observability import (
    RequestContextMiddleware,
    check_health,
    get_logger,
    get_metrics,
    setup_logging,
)
from tradebarriers.web.auth import AuthBackend, AuthError, create_auth_backend
from tradebarriers.web.projector import Projector
from tradebarriers.web.routes_admin import router as admin_router
from tradebarriers.web.routes_public import router as public_router
from tradebarriers.web.shared_store import create_store, create_templates, seed_demo_data

# Setup logging at import time
setup_logging()
logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    store = app.state.store
    store.init_schema()

    # Only seeds an empty store, and only when ENABLE_AUTO_SEED is set
    seed_demo_data(app.state.service)

    logger.info(
        "Application startup complete",
        store_type=type(store).__name__,
        auth_backend=app.state.auth.name,
        agreement_count=len(app.state.service.list_agreements()),
    )

    yield

    app.state.auth.close()
    logger.info("Application shutdown complete")


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError):
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return _error(400, f"Invalid request: {problems}")


def create_app(
    store: Optional[AgreementStore] = None,
    auth: Optional[AuthBackend] = None,
) -> FastAPI:
    """
    Build the application.

    Store and auth backend come from the environment unless given, so tests
    can pass an in-memory store and a local auth backend.
    """
    app = FastAPI(
        title="Trade Barriers Tracker",
        description="""
## Trade Barriers Tracker

Public dashboard and admin tooling for interprovincial agreements that
reduce internal trade barriers.

### Public reads

- Agreement list, detail and status timeline
- Dashboard: filters, title search, status counts, monthly activity, KPIs

### Admin writes

Create, update and delete agreements and themes. Writes need a bearer
token from `POST /api/auth/login`, sent in the Authorization header.

### Storage Backends

- **InMemoryAgreementStore**: Development/testing (default)
- **PostgresAgreementStore**: Production

Set `DATABASE_URL` or `DATABASE_HOST` environment variables to use PostgreSQL.
        """,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    store = store if store is not None else create_store()
    service = TrackerService(store)
    app.state.store = store
    app.state.service = service
    app.state.projector = Projector(service)
    app.state.templates = create_templates()
    app.state.auth = auth if auth is not None else create_auth_backend()

    _register_error_handlers(app)

    # Add request context middleware for logging
    app.add_middleware(RequestContextMiddleware)

    # CORS for a separately served frontend during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",  # Vite dev server
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=False,  # the API authenticates with a bearer header only
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(agreements_router)
    app.include_router(themes_router)
    app.include_router(dashboard_router)
    app.include_router(auth_router)
    app.include_router(public_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["System"])
    async def health():
        """
        Basic health check endpoint.

        Returns 200 if the service is running.
        For detailed health, use /health/detailed
        """
        return {"status": "healthy", "service": "tradebarriers"}

    @app.get("/health/detailed", tags=["System"])
    async def health_detailed(request: Request):
        """
        Detailed health check: liveness, store reachability, auth backend.

        Returns 200 if healthy, 503 if unhealthy.
        """
        health_status = check_health(
            store=request.app.state.store,
            auth=request.app.state.auth,
        )
        return JSONResponse(
            status_code=200 if health_status.healthy else 503,
            content={
                "status": "healthy" if health_status.healthy else "unhealthy",
                "checks": health_status.checks,
                "duration_ms": health_status.duration_ms,
            },
        )

    @app.get("/metrics", tags=["System"])
    async def metrics():
        """Request, login and mutation counters with latency percentiles."""
        return get_metrics().get_summary()

    @app.get("/api", tags=["System"])
    async def api_info(request: Request):
        return {
            "name": "Trade Barriers Tracker API",
            "version": VERSION,
            "storage_backend": type(request.app.state.store).__name__,
            "auth_backend": request.app.state.auth.name,
            "endpoints": {
                "agreements": "/api/agreements",
                "agreement_detail": "/api/agreements/{id}",
                "agreement_timeline": "/api/agreements/{id}/timeline",
                "themes": "/api/themes",
                "dashboard": "/api/dashboard",
                "activity": "/api/activity",
                "kpis": "/api/kpis",
                "login": "/api/auth/login",
                "session": "/api/auth/session",
                "update_password": "/api/auth/update-password",
            },
        }

    return app


app = create_app()
