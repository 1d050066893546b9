"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hosting_admin.api import auth, billing, hosting
from hosting_admin.api.deps import Services
from hosting_admin.config import Settings, get_settings
from hosting_admin.database.engine import Database
from hosting_admin.exceptions import BackofficeError
from hosting_admin.webhook import handler as webhook

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Build the application; settings and database are created once here."""
    settings = settings or get_settings()
    database = database or Database(settings.database_url, echo=settings.debug)
    services = Services.build(settings, database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", settings.app_name)
        await database.init()
        async with database.session() as db_session:
            await services.sessions.purge_expired(db_session)
        logger.info("Database initialised")
        yield
        logger.info("Shutting down %s …", settings.app_name)
        await database.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Admin login and Stripe billing reconciliation for hosting customers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.include_router(auth.router)
    app.include_router(billing.router)
    app.include_router(hosting.router)
    app.include_router(webhook.router)

    @app.exception_handler(BackofficeError)
    async def backoffice_error_handler(request: Request, exc: BackofficeError):
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        message = str(exc) if exc.expose_message else exc.public_message
        return JSONResponse({"error": message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"error": exc.detail}, status_code=exc.status_code, headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request"}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse({"error": "Request failed"}, status_code=500)

    @app.get("/health")
    async def health_check():
        """Simple liveness probe."""
        return {"status": "healthy", "app": settings.app_name}

    return app


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


_configure_logging(get_settings())
app = create_app()
