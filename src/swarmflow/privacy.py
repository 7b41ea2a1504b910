"""Message visibility between agents sharing a session.

Messages produced by a private agent are wrapped in ``PrivateMessage`` and
hidden from other agents, except when they must stay visible for
continuity:

1. the terminal message of the exchange (``last_turn=True``),
2. assistant messages without tool calls (final answers),
3. messages produced during a handoff to another agent.

Only intermediate tool chatter stays private. Privacy applies to what the
model is shown; flow rules and termination checks always read the raw
history (see ``swarmflow.flow``).
"""

from __future__ import annotations

from typing import Sequence

from swarmflow.agent.agent import Agent
from swarmflow.llm.message import AnyMessage, AssistantMessage, Message, PrivateMessage


def unwrap(message: AnyMessage) -> Message:
    """The raw message, with any visibility wrapper removed."""
    if isinstance(message, PrivateMessage):
        return message.object
    return message


def is_visible(message: AnyMessage, agent: Agent) -> bool:
    """Whether ``agent`` may see ``message``."""
    if isinstance(message, PrivateMessage):
        return agent.name in message.visible
    return True


def filter_history(history: Sequence[AnyMessage], agent: Agent) -> list[AnyMessage]:
    """The subsequence of ``history`` visible to ``agent``, order preserved."""
    return [msg for msg in history if is_visible(msg, agent)]


def apply_privacy(
    message: AnyMessage,
    agent: Agent | None,
    last_turn: bool = False,
    handoff: bool = False,
) -> AnyMessage:
    """Wrap ``message`` as private to ``agent`` when the agent is private.

    Public agents (and no agent) leave the message public. A private agent's
    message also stays public when it is the terminal message of the
    exchange, an assistant message without tool calls, or part of a
    handoff.
    """
    if agent is None:
        return message

    raw = unwrap(message)
    if not agent.private:
        return raw
    if last_turn or handoff:
        return raw
    if isinstance(raw, AssistantMessage) and not raw.tool_calls:
        return raw
    return PrivateMessage(raw, frozenset({agent.name}), last_turn=False)
