"""Wire — progress reporting for a session.

Events flow from the turn loop to observers. Every event is kept in
``Wire.events`` and, when a text stream is attached, rendered as one
human-readable line. The turn loop never reads events back.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Callable, TextIO

from rich.console import Console


class EventType(enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    HANDOFF = "handoff"
    EARLY_EXIT = "early_exit"
    TERMINATION = "termination"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


_STYLES = {
    EventType.USER: "red",
    EventType.ASSISTANT: "green",
    EventType.TOOL_CALL: "magenta",
    EventType.TOOL_RESULT: "cyan",
    EventType.HANDOFF: "blue",
    EventType.EARLY_EXIT: "yellow",
    EventType.TERMINATION: "yellow",
}


class Wire:
    """Append-only progress sink.

    Pass ``stream=None`` for a silent sink (events are still recorded).
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self.events: list[WireEvent] = []
        self._subscribers: list[Callable[[WireEvent], None]] = []
        self._console = (
            Console(file=stream, highlight=False, markup=False, soft_wrap=True)
            if stream is not None
            else None
        )

    def send(self, event: WireEvent) -> None:
        """Record an event, notify subscribers and render it."""
        self.events.append(event)
        for callback in self._subscribers:
            callback(event)
        if self._console is not None:
            self._console.print(render(event), style=_STYLES.get(event.type))

    def send_user(self, text: str) -> None:
        self.send(WireEvent(type=EventType.USER, data={"text": text}))

    def send_assistant(self, agent: str, text: str) -> None:
        self.send(
            WireEvent(type=EventType.ASSISTANT, data={"agent": agent, "text": text})
        )

    def send_tool_call(self, agent: str, name: str, arguments: dict[str, Any]) -> None:
        self.send(
            WireEvent(
                type=EventType.TOOL_CALL,
                data={"agent": agent, "name": name, "arguments": arguments},
            )
        )

    def send_tool_result(
        self, agent: str, name: str, content: str, is_error: bool = False
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.TOOL_RESULT,
                data={
                    "agent": agent,
                    "name": name,
                    "content": content,
                    "is_error": is_error,
                },
            )
        )

    def send_handoff(self, source: str, target: str) -> None:
        self.send(
            WireEvent(type=EventType.HANDOFF, data={"from": source, "to": target})
        )

    def send_early_exit(self, name: str) -> None:
        self.send(WireEvent(type=EventType.EARLY_EXIT, data={"name": name}))

    def send_termination(self, reason: str) -> None:
        self.send(WireEvent(type=EventType.TERMINATION, data={"reason": reason}))

    def subscribe(self, callback: Callable[[WireEvent], None]) -> None:
        """Call ``callback`` for every future event."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[WireEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)


def render(event: WireEvent) -> str:
    """One-line text rendering of an event."""
    data = event.data
    if event.type is EventType.USER:
        return f">> User: {data['text']}"
    if event.type is EventType.ASSISTANT:
        return f">> Assistant ({data['agent']}): {data['text']}"
    if event.type is EventType.TOOL_CALL:
        args = json.dumps(data["arguments"], default=str)
        return f">> Tool Request: {data['name']}, args: {args}"
    if event.type is EventType.TOOL_RESULT:
        prefix = "Tool Error" if data.get("is_error") else "Tool Output"
        return f">> {prefix}: {data['content']}"
    if event.type is EventType.HANDOFF:
        return f">> Handoff: {data['from']} -> {data['to']}"
    if event.type is EventType.EARLY_EXIT:
        return f">> Early exit: no active agent (skipped {data['name']})"
    return f"Termination condition triggered: {data['reason']}"
