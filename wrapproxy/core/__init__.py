"""Core module initialization."""

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidRequestError,
    ProxyError,
    ResponseParseError,
    UpstreamConnectionError,
    UpstreamReadError,
)
from .backend import (
    Upstream,
    build_outbound_headers,
    extract_bearer_token,
    filter_response_headers,
    format_httpx_error,
    resolve_api_key,
)
from .dispatcher import AttemptState, DispatchResult, UpstreamDispatcher, is_model_not_found
from .sse import iter_sse_lines, relay_sse_stream, relay_upstream_response
from .variants import CLAUDE_RELAY, DEEPSEEK, VARIANTS, ModelProfile, Variant, get_variant

__all__ = [
    "AttemptState",
    "AuthenticationError",
    "CLAUDE_RELAY",
    "ConfigurationError",
    "DEEPSEEK",
    "DispatchResult",
    "InvalidRequestError",
    "ModelProfile",
    "ProxyError",
    "ResponseParseError",
    "Upstream",
    "UpstreamConnectionError",
    "UpstreamReadError",
    "UpstreamDispatcher",
    "VARIANTS",
    "Variant",
    "build_outbound_headers",
    "extract_bearer_token",
    "filter_response_headers",
    "format_httpx_error",
    "get_variant",
    "is_model_not_found",
    "iter_sse_lines",
    "relay_sse_stream",
    "relay_upstream_response",
    "resolve_api_key",
]
