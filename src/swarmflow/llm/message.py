"""Message types for the conversation history."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A tool call request carried by an assistant message."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_openai_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


@dataclass
class SystemMessage:
    """System prompt, kept at index 0 of the model-visible history."""

    content: str = ""
    role: Literal["system"] = "system"

    @property
    def tool_calls(self) -> list[ToolCall]:
        return []

    def to_openai_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class UserMessage:
    content: str = ""
    role: Literal["user"] = "user"

    @property
    def tool_calls(self) -> list[ToolCall]:
        return []

    def to_openai_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class AssistantMessage:
    """Model output: text, tool call requests, or both."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    name: str | None = None  # Scrubbed agent name that produced the message
    role: Literal["assistant"] = "assistant"

    def to_openai_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "role": self.role,
            "content": self.content or None,
        }
        if self.name:
            result["name"] = self.name
        if self.tool_calls:
            result["tool_calls"] = [tc.to_openai_dict() for tc in self.tool_calls]
        return result


@dataclass
class ToolResultMessage:
    """The output of one executed tool call."""

    content: str = ""
    tool_call_id: str = ""
    name: str = ""  # Tool name
    arguments: dict[str, Any] = field(default_factory=dict)
    is_error: bool = False
    role: Literal["tool"] = "tool"

    @property
    def tool_calls(self) -> list[ToolCall]:
        return []

    def to_openai_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }


Message = SystemMessage | UserMessage | AssistantMessage | ToolResultMessage


@dataclass
class PrivateMessage:
    """Visibility wrapper around a message.

    Only the agents named in ``visible`` see the wrapped message when the
    history is filtered for the model. Every read (``role``, ``content``,
    ``tool_calls``, ``to_openai_dict()``...) is forwarded to the wrapped
    message, so code that only reads messages does not need to care whether
    a message is private.

    Wrapping a ``PrivateMessage`` re-wraps its inner message instead of
    nesting.
    """

    object: Message
    visible: frozenset[str] = frozenset()
    last_turn: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.object, PrivateMessage):
            self.object = self.object.object
        self.visible = frozenset(self.visible)

    def __getattr__(self, name: str) -> Any:
        # Only reached for attributes not defined on the wrapper itself
        if name == "object":
            raise AttributeError(name)
        return getattr(self.object, name)

    def __repr__(self) -> str:
        return (
            f"PrivateMessage(visible=[{', '.join(sorted(self.visible))}], "
            f"last_turn={self.last_turn}, object={self.object!r})"
        )


AnyMessage = Message | PrivateMessage


def parse_arguments(name: str, raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode tool call arguments from the model.

    Malformed JSON is logged and treated as no arguments.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(
            "Failed to parse tool call arguments for %s: %s", name, raw[:200]
        )
        return {}
    if not isinstance(args, dict):
        logger.warning(
            "Tool call arguments for %s are not an object: %s", name, raw[:200]
        )
        return {}
    return args


def is_tool_result(message: AnyMessage) -> bool:
    """True for tool-result messages, private or not."""
    if isinstance(message, PrivateMessage):
        message = message.object
    return isinstance(message, ToolResultMessage)
