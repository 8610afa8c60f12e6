"""
FastAPI application for the Presence Avatar broker.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..broker import (
    ConfigurationError,
    InvalidPersonaConfigError,
    SessionStore,
    StreamTokenClient,
    UnauthorizedError,
    UpstreamError,
)
from ..core.config import Settings, settings as default_settings

logger = logging.getLogger("avatar.api")


def validate_startup(cfg: Settings) -> str:
    """
    Check required configuration before serving.

    Returns:
        The effective shared secret

    Raises:
        ConfigurationError: upstream API key or shared secret missing
    """
    if not cfg.broker.anam_api_key:
        raise ConfigurationError("Missing ANAM_API_KEY in environment")

    password = cfg.broker.resolve_access_password()
    if password is None:
        raise ConfigurationError(
            "Missing ACCESS_PASSWORD in environment "
            "(set AVATAR_BROKER_ALLOW_DEFAULT_PASSWORD=true to use the insecure default)"
        )
    return password


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    cfg: Settings = app.state.settings

    # Startup
    logger.info("Presence Avatar broker starting on %s:%d", cfg.server.host, cfg.server.port)
    app.state.access_password = validate_startup(cfg)

    if getattr(app.state, "session_store", None) is None:
        app.state.session_store = SessionStore(ttl_seconds=cfg.broker.session_ttl_seconds)
    logger.info("Session store ready (ttl=%ds)", app.state.session_store.ttl_seconds)

    if getattr(app.state, "token_client", None) is None:
        app.state.token_client = StreamTokenClient(
            api_key=cfg.broker.anam_api_key,
            upstream_url=cfg.broker.upstream_url,
            timeout=cfg.broker.request_timeout,
        )

    yield

    # Shutdown
    logger.info("Presence Avatar broker shutting down")
    await app.state.token_client.close()
    app.state.session_store.clear()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(application: FastAPI) -> None:
    """Map broker errors onto `{error}` JSON responses."""

    @application.exception_handler(UnauthorizedError)
    async def _unauthorized(request: Request, exc: UnauthorizedError):
        return _error(401, str(exc))

    @application.exception_handler(InvalidPersonaConfigError)
    async def _invalid_persona(request: Request, exc: InvalidPersonaConfigError):
        return _error(400, str(exc))

    @application.exception_handler(UpstreamError)
    async def _upstream(request: Request, exc: UpstreamError):
        logger.error("Error generating session token: %s", exc)
        return _error(500, str(exc))

    @application.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body")


def create_app(
    app_settings: Optional[Settings] = None,
    session_store: Optional[SessionStore] = None,
    token_client=None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        app_settings: Settings override (defaults to the global settings)
        session_store: Pre-built session store
        token_client: Object with async exchange()/close() used instead of
            the upstream StreamTokenClient
    """
    application = FastAPI(
        title="Presence Avatar",
        description="Session broker for presence-gated avatar streaming",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.settings = app_settings or default_settings
    application.state.session_store = session_store
    application.state.token_client = token_client

    register_error_handlers(application)

    # Include routers
    from .health import router as health_router
    from .session import router as session_router
    from .tokens import router as tokens_router

    application.include_router(health_router, tags=["health"])
    application.include_router(session_router, prefix="/api", tags=["session"])
    application.include_router(tokens_router, prefix="/api/anam", tags=["tokens"])

    return application


# Create app instance
app = create_app()
