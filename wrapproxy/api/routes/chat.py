"""Chat completions endpoint: translate, dispatch, translate back."""

import json
import logging

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse
from starlette.requests import ClientDisconnect

from ...config import ProxySettings
from ...core import (
    AuthenticationError,
    InvalidRequestError,
    ResponseParseError,
    UpstreamDispatcher,
    UpstreamReadError,
    filter_response_headers,
    format_httpx_error,
    relay_upstream_response,
    resolve_api_key,
)
from ...core.backend import truncate_for_log
from ...translation import get_request_translator, translate_response

logger = logging.getLogger("wrapproxy")

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _decode_body(body: bytes):
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.error(f"Invalid JSON payload: {exc}")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Raw request body: %s", truncate_for_log(body))
        raise InvalidRequestError("Invalid JSON", code="invalid_json") from exc


async def handle_chat_request(request: Request, path: str) -> Response:
    """Handle one chat completion request.

    Args:
        request: The inbound request.
        path: Inbound request path, forwarded upstream by variants
            that do not pin the upstream path.

    Returns:
        A streamed SSE response, the translated JSON completion, or the
        upstream error response relayed as-is.
    """
    settings: ProxySettings = request.app.state.settings
    dispatcher: UpstreamDispatcher = request.app.state.dispatcher
    variant = settings.variant

    api_key = resolve_api_key(request.headers.get("authorization"), settings.api_key)
    if not api_key:
        logger.error("No API key provided in request and no server API key configured")
        raise AuthenticationError(
            "API key required: please provide Authorization header "
            f"or configure {variant.api_key_env} environment variable"
        )

    try:
        body = await request.body()
    except ClientDisconnect:
        logger.warning("Client disconnected while reading request body")
        return Response(status_code=499)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Request body: %s", truncate_for_log(body))
    payload = _decode_body(body)

    translate_request = get_request_translator(variant.name)
    translated = translate_request(payload, settings.default_model)
    logger.info(f"Processing request for model {translated.model}, stream={translated.stream}")

    result = await dispatcher.send(
        translated,
        api_key,
        method=request.method,
        path=path,
        query=request.url.query,
        headers=request.headers,
    )
    upstream = result.response

    if upstream.status_code >= 400:
        logger.error(
            "Upstream error %s for model %s: %s",
            upstream.status_code,
            result.used_model,
            truncate_for_log(upstream.content),
        )
        headers = filter_response_headers(upstream.headers, force_json=variant.force_json_errors)
        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers=headers,
        )

    if translated.stream:
        logger.info(
            "Streaming response for model %s (status %s, attempts %d)",
            result.used_model,
            upstream.status_code,
            result.attempts,
        )
        return StreamingResponse(
            relay_upstream_response(upstream, result.used_model),
            status_code=upstream.status_code,
            headers=STREAM_HEADERS,
            media_type="text/event-stream",
        )

    try:
        content = await upstream.aread()
    except httpx.RequestError as exc:
        logger.error(
            f"Error reading response for model {result.used_model}: "
            f"{format_httpx_error(exc)}"
        )
        raise UpstreamReadError("Error reading response from upstream") from exc
    finally:
        await upstream.aclose()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Upstream response body: %s", truncate_for_log(content))

    try:
        upstream_payload = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.error(f"Error parsing upstream response for model {result.used_model}: {exc}")
        raise ResponseParseError("Error parsing response") from exc
    translated_response = translate_response(upstream_payload, result.used_model)

    headers = filter_response_headers(upstream.headers)
    headers.pop("content-type", None)
    logger.info(f"Request for model {result.used_model} completed successfully")
    return Response(
        content=json.dumps(translated_response),
        status_code=upstream.status_code,
        headers=headers,
        media_type="application/json",
    )
