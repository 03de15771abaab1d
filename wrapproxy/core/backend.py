"""Upstream endpoint description and header utilities."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger("wrapproxy")

DEFAULT_TIMEOUT = 300.0
LOG_BODY_LIMIT = 1024


@dataclass(frozen=True)
class Upstream:
    """The upstream API a proxy instance forwards to."""

    endpoint: str
    timeout: float = DEFAULT_TIMEOUT
    fixed_path: Optional[str] = None

    def build_url(self, path: str, query: str = "") -> str:
        """Build the full URL for an upstream request.

        ``fixed_path`` wins over the inbound ``path`` when set.
        """
        base = self.endpoint.rstrip("/")
        normalized_path = self.fixed_path or path or "/"
        if not normalized_path.startswith("/"):
            normalized_path = f"/{normalized_path}"
        url = f"{base}{normalized_path}"
        if query:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{query}"
        return url


HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Recomputed by httpx for the outbound request.
BLOCKED_REQUEST_HEADERS = {
    "authorization",
    "content-length",
    "content-encoding",
    "host",
    "accept-encoding",
}

BLOCKED_RESPONSE_HEADERS = {
    "content-length",
    "content-encoding",
    "transfer-encoding",
}


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def resolve_api_key(authorization: Optional[str], server_key: Optional[str]) -> Optional[str]:
    """Prefer the caller's bearer token, falling back to the server key."""
    return extract_bearer_token(authorization) or server_key or None


def build_outbound_headers(
    incoming: Optional[Mapping[str, str]],
    api_key: str,
    stream: bool,
) -> dict[str, str]:
    """Build headers for the upstream request.

    ``incoming`` headers (``None`` when client headers are not forwarded)
    are copied minus hop-by-hop and transport headers. Auth, content type
    and, for streams, ``Accept`` are always set by the proxy.
    """
    overridden = {"content-type", "accept"} if stream else {"content-type"}
    headers: dict[str, str] = {}
    seen: set[str] = set()
    for key, value in (incoming or {}).items():
        key_lower = key.lower()
        if key_lower in HOP_BY_HOP_HEADERS or key_lower in BLOCKED_REQUEST_HEADERS:
            continue
        if key_lower in overridden or key_lower in seen:
            continue
        headers[key] = value
        seen.add(key_lower)

    headers["Authorization"] = f"Bearer {api_key}"
    headers["Content-Type"] = "application/json"
    if stream:
        headers["Accept"] = "text/event-stream"
    return headers


def filter_response_headers(
    headers: Mapping[str, str], force_json: bool = False
) -> dict[str, str]:
    """Filter upstream response headers before relaying them to the client."""
    filtered: dict[str, str] = {}
    for key, value in headers.items():
        key_lower = key.lower()
        # Starlette recomputes these for the body it actually sends.
        if key_lower in HOP_BY_HOP_HEADERS or key_lower in BLOCKED_RESPONSE_HEADERS:
            continue
        if force_json and key_lower == "content-type":
            continue
        filtered[key] = value
    if force_json:
        filtered["content-type"] = "application/json"
    return filtered


def format_httpx_error(exc: Any, url: Optional[str] = None, timeout: Optional[float] = None) -> str:
    """Produce a detailed description of an httpx error for logs."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)

    request = None
    try:
        request = exc.request
    except (AttributeError, RuntimeError):
        request = None
    if request is not None:
        parts.append(f"request={request.method} {request.url}")
    elif url:
        parts.append(f"url={url}")

    if isinstance(exc, httpx.TimeoutException) and timeout:
        parts.append(f"timeout={timeout}s")

    return "; ".join(parts)


def truncate_for_log(data: bytes | str, limit: int = LOG_BODY_LIMIT) -> str:
    """Decode and shorten a body for logging."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if len(data) <= limit:
        return data
    return f"{data[:limit]}... ({len(data)} chars)"
