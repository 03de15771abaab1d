"""Translate Claude-style requests into OpenAI-compatible relay requests.

Mapping:
- top-level ``system`` (string or text blocks) -> one leading system message
- ``tool_use`` / ``tool_result`` content parts -> tool calls / tool messages
- tools with ``input_schema`` -> ``{"type": "function", "function": {...}}``
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .content import (
    build_tools,
    convert_messages,
    copy_sampling_params,
    normalize_tool_choice,
    resolve_model,
)
from .deepseek import require_messages
from .types import ChatMessage, FunctionTool, TranslatedRequest

logger = logging.getLogger("wrapproxy")

SYSTEM_SEPARATOR = "\n\n"


def merge_system(system: Any) -> Optional[ChatMessage]:
    """Merge a Claude ``system`` field into a single system message.

    Text blocks are joined with a blank line; ``cache_control`` and
    non-text blocks are dropped. Returns ``None`` when there is no text.
    """
    if isinstance(system, str):
        return {"role": "system", "content": system} if system else None
    if not isinstance(system, list):
        return None

    texts: list[str] = []
    for block in system:
        if not isinstance(block, Mapping):
            continue
        if block.get("type") != "text":
            logger.warning(f"Non-text block in system parameter: {block.get('type')}")
            continue
        text = block.get("text")
        if isinstance(text, str) and text:
            texts.append(text)
    if not texts:
        return None
    return {"role": "system", "content": SYSTEM_SEPARATOR.join(texts)}


def convert_tools(tools: Optional[list[Any]]) -> Optional[list[FunctionTool]]:
    """Convert Claude tool declarations to function tools.

    Tools that are already in function shape are passed through.
    """
    if not tools:
        return None

    converted: list[FunctionTool] = []
    for tool in tools:
        if not isinstance(tool, Mapping):
            continue
        if tool.get("type") == "function" or "function" in tool:
            converted.append(dict(tool))
            continue
        converted.append({
            "type": "function",
            "function": {
                "name": tool.get("name", ""),
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema", {}),
            },
        })
    return converted or None


def translate_claude_request(payload: Any, default_model: str) -> TranslatedRequest:
    """Translate a Claude-style body into an OpenAI-compatible relay body."""
    messages = require_messages(payload)
    model = resolve_model(payload.get("model"), default_model)
    stream = bool(payload.get("stream"))

    outbound_messages: list[ChatMessage] = []
    system_message = merge_system(payload.get("system"))
    if system_message:
        outbound_messages.append(system_message)
    outbound_messages.extend(convert_messages(messages))

    outbound: dict[str, Any] = {"model": model, "messages": outbound_messages}
    copy_sampling_params(payload, outbound)
    outbound["stream"] = stream

    tools = convert_tools(build_tools(payload.get("tools"), payload.get("functions")))
    if tools:
        outbound["tools"] = tools
        tool_choice = normalize_tool_choice(payload.get("tool_choice"))
        if tool_choice:
            outbound["tool_choice"] = tool_choice

    logger.debug(
        "Translated Claude request: model=%s stream=%s messages=%d system=%s",
        model,
        stream,
        len(outbound_messages),
        system_message is not None,
    )
    return TranslatedRequest(payload=outbound, model=model, stream=stream)
