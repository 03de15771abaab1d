"""wrapproxy - chat-completion schema translation proxy

Accepts OpenAI-style (or Claude-style) chat requests, rewrites them for a
different upstream API and translates the responses back, buffered or
streamed.

This module provides:
- create_app: FastAPI application factory
- load_settings: runtime settings from defaults, YAML, env and CLI flags
- Schema translators for both directions

Example:
    >>> from wrapproxy import create_app, load_settings
    >>> import uvicorn
    >>> settings = load_settings(variant="deepseek")
    >>> uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
"""

from .config import ProxySettings, load_settings
from .config_loader import load_config
from .core import ProxyError, UpstreamDispatcher
from .logging import logger, setup_logging
from .main import create_app
from .translation import translate_chat_request, translate_claude_request, translate_response

__version__ = "0.1.0"

__all__ = [
    "ProxyError",
    "ProxySettings",
    "UpstreamDispatcher",
    "create_app",
    "load_config",
    "load_settings",
    "logger",
    "setup_logging",
    "translate_chat_request",
    "translate_claude_request",
    "translate_response",
]
