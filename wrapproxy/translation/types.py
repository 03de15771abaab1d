"""Types for the chat payloads that flow through the translators.

Everything on the wire is a plain JSON dictionary; these TypedDicts only
document the shapes the translators produce and rely on.
"""

from dataclasses import dataclass
from typing import Any

from typing_extensions import TypedDict


class FunctionCall(TypedDict, total=False):
    """The function part of a tool call.

    Attributes:
        name: Name of the function to call.
        arguments: JSON string with the call arguments. Never parsed by
            the proxy, only carried through.
    """
    name: str
    arguments: str


class ToolCall(TypedDict, total=False):
    """A tool call attached to an assistant message (OpenAI format)."""
    id: str
    type: str
    function: FunctionCall


class ChatMessage(TypedDict, total=False):
    """A message in the outbound (upstream) schema.

    ``content`` is always a plain string, or ``None`` for an assistant
    message that only carries tool calls.
    """
    role: str
    content: str | None
    tool_calls: list[ToolCall]
    tool_call_id: str
    name: str


class FunctionTool(TypedDict, total=False):
    """A tool declaration in the outbound schema."""
    type: str
    function: dict[str, Any]


@dataclass(frozen=True)
class TranslatedRequest:
    """Result of translating an inbound request body.

    Attributes:
        payload: The outbound request body.
        model: Effective model, used later to rewrite responses.
        stream: Whether the caller asked for a streamed response.
    """

    payload: dict[str, Any]
    model: str
    stream: bool

    def with_model(self, model: str) -> "TranslatedRequest":
        """Return a copy targeting a different model."""
        payload = dict(self.payload)
        payload["model"] = model
        return TranslatedRequest(payload=payload, model=model, stream=self.stream)
