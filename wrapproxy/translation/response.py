"""Translate buffered upstream responses back into the client's schema."""

import logging
from typing import Any, Mapping

from ..core.exceptions import ResponseParseError

logger = logging.getLogger("wrapproxy")


def _filter_tool_calls(message: Mapping[str, Any], choice_index: Any) -> dict[str, Any]:
    filtered = dict(message)
    tool_calls = message.get("tool_calls")
    if not isinstance(tool_calls, list):
        return filtered

    kept = []
    for call in tool_calls:
        function = call.get("function") if isinstance(call, Mapping) else None
        name = function.get("name") if isinstance(function, Mapping) else None
        if not name:
            logger.warning(
                "Dropping tool call without a function name (choice %s): %s",
                choice_index,
                call,
            )
            continue
        kept.append(call)

    if kept:
        filtered["tool_calls"] = kept
    else:
        filtered.pop("tool_calls", None)
    return filtered


def translate_response(payload: Any, model: str) -> dict[str, Any]:
    """Rewrite an upstream chat completion for the client.

    The top-level ``model`` is replaced with ``model`` and tool calls with an
    empty function name are removed. Everything else in each choice is
    copied as received.

    Raises:
        ResponseParseError: If ``payload`` is not a JSON object.
    """
    if not isinstance(payload, Mapping):
        raise ResponseParseError("Upstream response is not a JSON object")

    choices = []
    raw_choices = payload.get("choices")
    for choice in raw_choices if isinstance(raw_choices, list) else []:
        if not isinstance(choice, Mapping):
            choices.append(choice)
            continue
        converted = dict(choice)
        message = choice.get("message")
        if isinstance(message, Mapping):
            converted["message"] = _filter_tool_calls(message, choice.get("index"))
        choices.append(converted)

    result: dict[str, Any] = {
        "id": payload.get("id", ""),
        "object": "chat.completion",
        "created": payload.get("created", 0),
        "model": model,
        "choices": choices,
    }
    if "usage" in payload:
        result["usage"] = payload["usage"]
    return result
