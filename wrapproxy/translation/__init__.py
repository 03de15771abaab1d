"""Schema translation between client and upstream chat formats."""

from .claude import translate_claude_request
from .deepseek import translate_chat_request
from .response import translate_response
from .types import ChatMessage, ToolCall, TranslatedRequest

REQUEST_TRANSLATORS = {
    "deepseek": translate_chat_request,
    "claude": translate_claude_request,
}


def get_request_translator(variant_name: str):
    """Return the request translator registered for a variant."""
    try:
        return REQUEST_TRANSLATORS[variant_name]
    except KeyError:
        raise KeyError(f"No request translator for variant '{variant_name}'") from None


__all__ = [
    "ChatMessage",
    "REQUEST_TRANSLATORS",
    "ToolCall",
    "TranslatedRequest",
    "get_request_translator",
    "translate_chat_request",
    "translate_claude_request",
    "translate_response",
]
