"""Session — the mutable root of one conversation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, TextIO

from swarmflow.agent.agent import AgentLike
from swarmflow.agent.registry import AgentRegistry
from swarmflow.config import SwarmConfig
from swarmflow.flow import FlowRule
from swarmflow.flow.rules import is_tool_rule
from swarmflow.flow.termination import is_termination_rule
from swarmflow.llm.message import AnyMessage
from swarmflow.llm.provider import CompletionService
from swarmflow.session.wire import Wire
from swarmflow.tool.base import Tool
from swarmflow.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Conversation state owned by a single caller.

    ``history`` only grows; ``artifacts`` keeps the raw return value of
    every tool call (including lookup failures); ``rules`` is evaluated in
    insertion order; ``tools`` holds session-wide tools offered to every
    agent after its own. Not internally synchronized: independent sessions
    share nothing, but one session must not be driven concurrently.
    """

    agent: AgentLike | None
    history: list[AnyMessage] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    artifacts: list[Any] = field(default_factory=list)
    rules: list[FlowRule] = field(default_factory=list)
    tools: ToolRegistry = field(default_factory=lambda: ToolRegistry(owner="session"))
    agent_map: AgentRegistry = field(default_factory=AgentRegistry)
    wire: Wire = field(default_factory=Wire)
    provider: CompletionService | None = None
    config: SwarmConfig = field(default_factory=SwarmConfig)

    def __repr__(self) -> str:
        agent = self.agent.name if self.agent is not None else "None"
        return f"Session(messages={len(self.history)}, agent={agent})"


def new_session(
    agent: AgentLike,
    context: dict[str, Any] | None = None,
    *,
    stream: TextIO | None = None,
    provider: CompletionService | None = None,
    config: SwarmConfig | None = None,
) -> Session:
    """Create a session with ``agent`` active.

    Args:
        agent: Starting agent or reference (references must be registered
            with ``register_agent`` before the first turn).
        context: Key/value store passed to tools that accept ``context``.
        stream: Where progress lines are written; ``None`` for silence.
        provider: Completion service; defaults to a litellm provider built
            from ``config.llm`` on first use.
        config: Settings; defaults to ``SwarmConfig()``.
    """
    return Session(
        agent=agent,
        context=context if context is not None else {},
        wire=Wire(stream),
        provider=provider,
        config=config or SwarmConfig(),
    )


def add_rules(
    session: Session,
    rules: FlowRule | Tool | Callable[..., Any] | Iterable[FlowRule | Tool | Callable[..., Any]],
) -> Session:
    """Append flow rules to the session. Duplicate rules are kept.

    A ``Tool`` (or plain callable, wrapped with ``Tool.from_function``) is
    registered in ``session.tools`` instead: it is offered to every agent
    and duplicate names raise ``DuplicateToolError``.
    """
    if _is_rule_item(rules):
        rules = [rules]  # type: ignore[list-item]
    for rule in rules:  # type: ignore[union-attr]
        if is_tool_rule(rule) or is_termination_rule(rule):
            session.rules.append(rule)
            logger.debug("Added rule %s", rule.name)
        elif isinstance(rule, Tool):
            session.tools.register(rule)
        elif callable(rule):
            session.tools.register(Tool.from_function(rule))
        else:
            raise TypeError(f"Not a flow rule or tool: {rule!r}")
    return session


def _is_rule_item(value: object) -> bool:
    return (
        is_tool_rule(value)
        or is_termination_rule(value)
        or isinstance(value, Tool)
        or callable(value)
    )


def register_agent(session: Session, agent: AgentLike) -> Session:
    """Add an agent or reference to the session's agent map."""
    session.agent_map.register(agent)
    return session
