"""Message-level translation shared by both proxy variants.

Inbound messages may carry content as a plain string or as a list of typed
parts (``text``, ``tool_use``, ``tool_result``). Upstreams on the other side
only accept string content, so every message is flattened here:

- ``text`` parts are joined with newlines
- ``tool_use`` parts become OpenAI-style ``tool_calls``
- a message with ``tool_result`` parts is replaced by ``role: "tool"`` messages

Anything that cannot be decoded is treated as empty content rather than an
error, so schema drift on the client side never fails a request.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Optional

from .types import ChatMessage, ToolCall

logger = logging.getLogger("wrapproxy")

TOOL_CHOICE_PASSTHROUGH = ("auto", "none")


def resolve_model(raw_model: Any, default_model: str) -> str:
    """Return the requested model, or ``default_model`` when it is empty."""
    if isinstance(raw_model, str) and raw_model.strip():
        return raw_model
    return default_model


def serialize_tool_input(input_data: Any) -> str:
    """Serialize a ``tool_use`` input object into a JSON arguments string."""
    if input_data is None:
        input_data = {}
    return json.dumps(input_data, ensure_ascii=False, separators=(",", ":"))


def _tool_call_from_tool_use(part: Mapping[str, Any]) -> ToolCall:
    return {
        "id": str(part.get("id") or ""),
        "type": "function",
        "function": {
            "name": str(part.get("name") or ""),
            "arguments": serialize_tool_input(part.get("input")),
        },
    }


def extract_content(content: Any) -> tuple[str, list[ToolCall]]:
    """Flatten message content into ``(text, tool_calls)``.

    A string is returned as-is. A list of parts contributes its non-empty
    ``text`` parts (newline-joined) and its ``tool_use`` parts. Unknown part
    types and ``cache_control`` metadata are dropped.
    """
    if isinstance(content, str):
        return content, []
    if not isinstance(content, list):
        return "", []

    texts: list[str] = []
    tool_calls: list[ToolCall] = []
    for part in content:
        if not isinstance(part, Mapping):
            continue
        part_type = part.get("type")
        if part_type == "text":
            text = part.get("text")
            if isinstance(text, str) and text:
                texts.append(text)
        elif part_type == "tool_use":
            tool_calls.append(_tool_call_from_tool_use(part))
        else:
            logger.debug("Ignoring content part of type %r", part_type)
    return "\n".join(texts), tool_calls


def _tool_result_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for block in content:
            if isinstance(block, Mapping):
                text = block.get("text")
                if isinstance(text, str):
                    texts.append(text)
        return "\n".join(texts)
    return ""


def extract_tool_results(content: Any) -> Optional[list[ChatMessage]]:
    """Return tool-role messages for every ``tool_result`` part.

    Returns ``None`` when the content holds no ``tool_result`` part, so the
    caller can fall through to regular handling.
    """
    if not isinstance(content, list):
        return None
    results: list[ChatMessage] = []
    for part in content:
        if not isinstance(part, Mapping) or part.get("type") != "tool_result":
            continue
        message: ChatMessage = {
            "role": "tool",
            "content": _tool_result_text(part.get("content")),
        }
        tool_use_id = part.get("tool_use_id")
        if isinstance(tool_use_id, str):
            message["tool_call_id"] = tool_use_id
        results.append(message)
    return results or None


def normalize_tool_calls(tool_calls: Any) -> list[ToolCall]:
    """Normalize tool calls already present on a message to ``type: function``."""
    if not isinstance(tool_calls, list):
        return []
    normalized: list[ToolCall] = []
    for call in tool_calls:
        if not isinstance(call, Mapping):
            continue
        function = call.get("function")
        if not isinstance(function, Mapping):
            function = {}
        arguments = function.get("arguments", "")
        if not isinstance(arguments, str):
            arguments = serialize_tool_input(arguments)
        normalized.append({
            "id": str(call.get("id") or ""),
            "type": "function",
            "function": {
                "name": str(function.get("name") or ""),
                "arguments": arguments,
            },
        })
    return normalized


def convert_message(message: Mapping[str, Any]) -> list[ChatMessage]:
    """Convert one inbound message into zero or more outbound messages."""
    tool_messages = extract_tool_results(message.get("content"))
    if tool_messages is not None:
        return tool_messages

    role = str(message.get("role") or "user")
    if role == "function":
        role = "tool"

    text, tool_calls = extract_content(message.get("content"))
    tool_calls = tool_calls + normalize_tool_calls(message.get("tool_calls"))

    if not text and not tool_calls and role != "tool":
        return []

    converted: ChatMessage = {"role": role}
    if text:
        converted["content"] = text
    elif role == "assistant" and tool_calls:
        converted["content"] = None
    else:
        converted["content"] = ""
    if tool_calls:
        converted["tool_calls"] = tool_calls

    tool_call_id = message.get("tool_call_id")
    if isinstance(tool_call_id, str) and tool_call_id:
        converted["tool_call_id"] = tool_call_id
    name = message.get("name")
    if isinstance(name, str) and name:
        converted["name"] = name
    return [converted]


def convert_messages(messages: Iterable[Any]) -> list[ChatMessage]:
    """Convert an inbound message list, preserving order."""
    converted: list[ChatMessage] = []
    for index, message in enumerate(messages):
        if not isinstance(message, Mapping):
            logger.warning("Skipping message %d: expected an object", index)
            continue
        produced = convert_message(message)
        if not produced:
            logger.debug("Dropping empty message %d (role=%s)", index, message.get("role"))
        converted.extend(produced)
    return converted


def normalize_tool_choice(tool_choice: Any) -> Optional[str]:
    """Reduce a polymorphic ``tool_choice`` to ``"auto"``, ``"none"`` or ``None``.

    Pinning a single function is not supported upstream, so any structured
    function selector degrades to ``"auto"``.
    """
    if isinstance(tool_choice, str):
        return tool_choice if tool_choice in TOOL_CHOICE_PASSTHROUGH else None
    if isinstance(tool_choice, Mapping):
        choice_type = tool_choice.get("type")
        if choice_type in ("function", "tool", "auto", "any"):
            return "auto"
        if choice_type == "none":
            return "none"
    return None


def build_tools(tools: Any, functions: Any) -> Optional[list[dict[str, Any]]]:
    """Return the ``tools`` list, upgrading legacy ``functions`` when needed."""
    if isinstance(tools, list) and tools:
        return list(tools)
    if isinstance(functions, list) and functions:
        return [
            {"type": "function", "function": dict(function)}
            for function in functions
            if isinstance(function, Mapping)
        ]
    return None


def copy_sampling_params(payload: Mapping[str, Any], outbound: dict[str, Any]) -> None:
    """Copy ``max_tokens`` and ``temperature`` when present and not null."""
    for key in ("max_tokens", "temperature"):
        value = payload.get(key)
        if value is not None:
            outbound[key] = value
