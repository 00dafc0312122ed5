"""FastAPI application factory for the Shlink dashboard backend."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dashboard import __version__
from dashboard.api import (
    admin,
    api_keys,
    auth,
    expiring,
    favorites,
    folders,
    profile,
    servers,
    shlink_api_keys,
    users,
)
from dashboard.auth.middleware import AuthMiddleware
from dashboard.config import get_settings
from dashboard.db import engine as _db_engine_mod
from dashboard.db.models import Base
from dashboard.exceptions import DashboardException, ValidationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


async def _ensure_schema() -> None:
    """Create missing tables for SQLite setups. Other databases are migrated with alembic."""
    _engine = _db_engine_mod.engine  # Use module attribute (overridable by tests)
    if _engine.url.drivername.startswith("sqlite"):
        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create SQLite schema + outbound HTTP client. Shutdown: cleanup."""
    settings = get_settings()

    if not settings.get_session_secrets():
        logger.warning("SHLINK_DASHBOARD_SESSION_SECRETS is empty; logins will fail")

    await _ensure_schema()

    owns_http_client = getattr(app.state, "http_client", None) is None
    if owns_http_client:
        app.state.http_client = httpx.AsyncClient(timeout=10.0)

    yield

    # Shutdown
    if owns_http_client:
        await app.state.http_client.aclose()
        app.state.http_client = None
    await _db_engine_mod.engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Shlink Dashboard API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.http_client = None

    app.add_middleware(AuthMiddleware)

    # Routers
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(profile.router, prefix="/profile", tags=["profile"])
    app.include_router(users.router, prefix="/manage-users", tags=["users"])
    app.include_router(servers.router, prefix="/manage-servers", tags=["servers"])
    app.include_router(favorites.router, prefix="/server/{server_id}/favorites", tags=["favorites"])
    app.include_router(folders.router, prefix="/server/{server_id}/folders", tags=["folders"])
    app.include_router(api_keys.router, prefix="/server/{server_id}/api-keys", tags=["api-keys"])
    app.include_router(
        shlink_api_keys.router,
        prefix="/server/{server_id}/shlink-api-keys",
        tags=["api-keys"],
    )
    app.include_router(expiring.router, prefix="/server/{server_id}/expiring", tags=["short-urls"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    @app.exception_handler(DashboardException)
    async def dashboard_exception_handler(
        request: Request, exc: DashboardException
    ) -> JSONResponse:
        """Handle all DashboardException subclasses with consistent JSON."""
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "error": str(exc)},
                exc_info=exc,
            )
        error = {"code": exc.code, "message": str(exc)}
        if isinstance(exc, ValidationError):
            error["invalid_fields"] = exc.invalid_fields
        return JSONResponse({"error": error}, status_code=exc.status_code)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "oidc_enabled": settings.is_oidc_enabled(),
            "local_auth_enabled": settings.is_local_auth_enabled(),
        }

    return app


app = create_app()
