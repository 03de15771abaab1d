"""Catch-all route: path/method dispatch for both variants."""

import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from ...core.variants import CHAT_COMPLETIONS_PATH
from .chat import handle_chat_request
from .models import list_models

logger = logging.getLogger("wrapproxy")

MODELS_PATHS = {"/v1/models", "/models"}
ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def normalize_path(path: str) -> str:
    """Prefix ``/v1`` onto paths that lack it."""
    if path.startswith("/v1/"):
        return path
    if not path.startswith("/"):
        path = f"/{path}"
    return f"/v1{path}"


async def route_request(path: str, request: Request) -> Response:
    """Dispatch one request by method and path.

    Paths are normalized for matching only; chat requests go upstream
    with the path as received.
    """
    settings = request.app.state.settings
    variant = settings.variant
    request_path = request.url.path
    logger.info(f"Received request: {request.method} {request_path}")

    if request.method == "OPTIONS":
        return Response(status_code=200)

    if request.method == "GET" and request_path in MODELS_PATHS:
        return JSONResponse(await list_models(request))

    if variant.normalize_paths:
        normalized = normalize_path(request_path)
        if normalized == CHAT_COMPLETIONS_PATH and request.method == "POST":
            return await handle_chat_request(request, request_path)
        logger.warning(f"Invalid path: {request_path} (normalized: {normalized})")
        return PlainTextResponse("Not found", status_code=404)

    if request.method != "POST":
        return PlainTextResponse("Method not allowed", status_code=405)
    return await handle_chat_request(request, request_path)
