"""FastAPI application factory for the translation proxy."""

import logging
import socket
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from .api.routes import ROUTE_METHODS, route_request
from .config import ProxySettings
from .core import ProxyError, UpstreamDispatcher

logger = logging.getLogger("wrapproxy")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Origin, Content-Type, Accept, Authorization",
    "Access-Control-Expose-Headers": "Content-Length",
    "Access-Control-Allow-Credentials": "true",
}


def _bind_client(app: FastAPI, client: httpx.AsyncClient) -> None:
    settings: ProxySettings = app.state.settings
    app.state.client = client
    app.state.dispatcher = UpstreamDispatcher(
        client,
        settings.upstream,
        fallback_model=settings.fallback_model,
        forward_client_headers=settings.variant.forward_client_headers,
    )


def _log_startup(settings: ProxySettings) -> None:
    logger.info("wrapproxy (%s variant) starting up...", settings.variant.name)
    logger.info("Configured bind address %s:%s", settings.host, settings.port)
    if settings.host == "0.0.0.0":
        hostname = socket.gethostname()
        logger.info("Reachable on local network at http://%s:%s", hostname, settings.port)
    logger.info("Upstream endpoint: %s", settings.endpoint)
    logger.info("Default model: %s (profile %s)", settings.default_model, settings.profile)
    if settings.fallback_model:
        logger.info("Fallback model: %s", settings.fallback_model)
    logger.info("Server API key configured: %s", bool(settings.api_key))


def create_app(settings: ProxySettings, client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the proxy application.

    Args:
        settings: Resolved runtime settings.
        client: Optional pre-built HTTP client. When omitted, one is created
            on startup and closed on shutdown.

    Returns:
        The configured FastAPI application instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_client = None
        if app.state.client is None:
            owned_client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.timeout_seconds),
                follow_redirects=False,
            )
            _bind_client(app, owned_client)
        _log_startup(settings)
        try:
            yield
        finally:
            if owned_client is not None:
                await owned_client.aclose()
            logger.info("wrapproxy shut down")

    app = FastAPI(title="wrapproxy", lifespan=lifespan)
    app.state.settings = settings
    app.state.client = None
    app.state.dispatcher = None
    if client is not None:
        _bind_client(app, client)

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(ProxyError)
    async def handle_proxy_error(request: Request, exc: ProxyError) -> PlainTextResponse:
        logger.error(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.message,
        )
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    app.api_route("/{path:path}", methods=ROUTE_METHODS)(route_request)
    logger.debug("FastAPI application created for %s variant", settings.variant.name)
    return app


__all__ = ["CORS_HEADERS", "create_app"]
