"""Translate OpenAI chat-completion requests into DeepSeek requests."""

import logging
from typing import Any, Mapping

from ..core.exceptions import InvalidRequestError
from .content import (
    build_tools,
    convert_messages,
    copy_sampling_params,
    normalize_tool_choice,
    resolve_model,
)
from .types import TranslatedRequest

logger = logging.getLogger("wrapproxy")


def require_messages(payload: Any) -> list[Any]:
    """Validate the request shape and return its message list."""
    if not isinstance(payload, Mapping):
        raise InvalidRequestError(
            "Request body must be a JSON object", code="invalid_json_shape"
        )
    messages = payload.get("messages")
    if messages is None:
        return []
    if not isinstance(messages, list):
        raise InvalidRequestError(
            "messages must be an array", code="invalid_messages"
        )
    return messages


def translate_chat_request(payload: Any, default_model: str) -> TranslatedRequest:
    """Translate an OpenAI-style body into the DeepSeek schema.

    Args:
        payload: Decoded inbound request body.
        default_model: Model used when the request does not name one.

    Returns:
        The outbound body along with the effective model and stream flag.

    Raises:
        InvalidRequestError: If the body is not an object or ``messages``
            is not a list.
    """
    messages = require_messages(payload)
    model = resolve_model(payload.get("model"), default_model)
    stream = bool(payload.get("stream"))

    outbound: dict[str, Any] = {
        "model": model,
        "messages": convert_messages(messages),
    }
    copy_sampling_params(payload, outbound)
    outbound["stream"] = stream

    tools = build_tools(payload.get("tools"), payload.get("functions"))
    if tools:
        outbound["tools"] = tools
        tool_choice = normalize_tool_choice(payload.get("tool_choice"))
        if tool_choice:
            outbound["tool_choice"] = tool_choice

    logger.debug(
        "Translated request: model=%s stream=%s messages=%d tools=%d",
        model,
        stream,
        len(outbound["messages"]),
        len(tools or []),
    )
    return TranslatedRequest(payload=outbound, model=model, stream=stream)
