"""FastAPI application factory for turnbridge."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from turnbridge import __version__
from turnbridge.api.middleware.errors import setup_error_handlers
from turnbridge.api.middleware.preflight import PreflightMiddleware
from turnbridge.api.routes import health_router, models_router, turns_router
from turnbridge.config.settings import Settings, get_settings
from turnbridge.core.http_client import HTTPClientFactory
from turnbridge.core.logging import get_logger, setup_logging
from turnbridge.services.upstream import UpstreamClient


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the shared upstream client on startup and close it on shutdown."""
    settings: Settings = app.state.settings
    transport: httpx.AsyncBaseTransport | None = app.state.upstream_transport

    logger.info(
        "server_start",
        host=settings.server.host,
        port=settings.server.port,
        url=settings.server_url,
        upstream=settings.upstream.url,
        native_tools=settings.upstream.native_tools,
        stream_mode=settings.upstream.stream_mode,
    )

    extra = {"transport": transport} if transport is not None else {}
    async with HTTPClientFactory.managed_client(settings.upstream, **extra) as client:
        app.state.upstream = UpstreamClient(client, settings.upstream)
        yield
        app.state.upstream = None

    logger.debug("server_stop")


def create_app(
    settings: Settings | None = None,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().
        upstream_transport: Optional httpx transport for the upstream client

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.logging.format == "json",
            log_level_name=settings.logging.level,
        )

    app = FastAPI(
        title="turnbridge",
        description="Turn-based Responses API served from a Chat Completions upstream",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.upstream_transport = upstream_transport
    app.state.upstream = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_credentials=settings.cors.credentials,
        allow_methods=settings.cors.methods,
        allow_headers=settings.cors.headers,
        max_age=settings.cors.max_age,
    )
    # Outermost: answers OPTIONS before CORSMiddleware and the router
    app.add_middleware(PreflightMiddleware)
    setup_error_handlers(app)

    app.include_router(turns_router, tags=["turns"])
    app.include_router(models_router, tags=["models"])
    app.include_router(health_router, tags=["health"])

    return app
