"""API routes for the proxy."""

from .chat import handle_chat_request
from .models import list_models
from .proxy import ROUTE_METHODS, normalize_path, route_request

__all__ = [
    "ROUTE_METHODS",
    "handle_chat_request",
    "list_models",
    "normalize_path",
    "route_request",
]
