"""The turn loop — the heart of swarmflow."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from swarmflow.agent.agent import Agent, AgentLike, is_agent_like, scrub_agent_name
from swarmflow.flow.rules import Combine, get_allowed_tools
from swarmflow.flow.termination import get_used_tools, run_termination_checks
from swarmflow.llm.message import (
    AnyMessage,
    AssistantMessage,
    SystemMessage,
    ToolResultMessage,
    UserMessage,
)
from swarmflow.llm.provider import CompletionService, create_provider
from swarmflow.privacy import apply_privacy, filter_history, unwrap
from swarmflow.session.session import Session
from swarmflow.tool.base import Tool, to_display_text
from swarmflow.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)


class TurnOutcome(enum.Enum):
    """Why did the turn end?"""

    COMPLETE = "complete"  # Terminal assistant message (no more tool calls)
    MAX_TURNS = "max_turns"  # Message budget exhausted
    TERMINATED = "terminated"  # Termination rule fired or no agent left


@dataclass
class Response:
    """Result of ``run_full_turn``."""

    messages: list[AnyMessage] = field(default_factory=list)
    agent: AgentLike | None = None
    context: dict[str, Any] = field(default_factory=dict)
    outcome: TurnOutcome = TurnOutcome.COMPLETE


def update_system_message(
    history: list[AnyMessage], agent: Agent | None
) -> list[AnyMessage]:
    """Make ``history[0]`` a system message with the agent's instructions.

    Replaces an existing system message, otherwise prepends one. Mutates and
    returns ``history``.
    """
    if agent is None:
        return history
    system = SystemMessage(agent.instructions)
    if history and isinstance(unwrap(history[0]), SystemMessage):
        history[0] = system
    else:
        history.insert(0, system)
    return history


def handle_tool_calls(
    active_agent: Agent | None,
    history: list[AnyMessage],
    session: Session,
    batch_start: int | None = None,
) -> AgentLike | None:
    """Execute the tool calls requested by the last message of ``history``.

    Calls run one after the other, in the order the model returned them.
    Results are appended to ``history`` and raw return values to
    ``session.artifacts``. A tool returning an agent (or reference) hands
    off: messages from ``batch_start`` on are made public so the outgoing
    agent's last words stay visible to the next agent.

    Returns the agent for the next iteration.
    """
    calls = history[-1].tool_calls if history else []
    if not calls:
        return active_agent
    if batch_start is None:
        batch_start = len(history) - 1

    next_agent: AgentLike | None = active_agent
    for call in calls:
        if active_agent is None:
            logger.warning("Early exit: no active agent, skipping %s", call.name)
            session.wire.send_early_exit(call.name)
            continue

        session.wire.send_tool_call(active_agent.name, call.name, call.arguments)
        registry = _registry_for(call.name, active_agent, session)
        output, is_error = registry.dispatch(call, session.context)
        session.artifacts.append(output)

        handoff = False
        if is_agent_like(output):
            target = session.agent_map.resolve(output)
            next_agent = target
            handoff = target.name != active_agent.name
            payload = {"assistant": target.name, **call.arguments}
            content = json.dumps(payload, default=str)
            if handoff:
                logger.info("Handoff: %s -> %s", active_agent.name, target.name)
                session.wire.send_handoff(active_agent.name, target.name)
                for i in range(batch_start, len(history)):
                    history[i] = unwrap(history[i])
        else:
            content = to_display_text(output)

        result = ToolResultMessage(
            content=content,
            tool_call_id=call.id,
            name=call.name,
            arguments=call.arguments,
            is_error=is_error,
        )
        session.wire.send_tool_result(active_agent.name, call.name, content, is_error)
        history.append(apply_privacy(result, active_agent, handoff=handoff))

    return next_agent


def run_full_turn(
    agent: AgentLike,
    messages: Sequence[AnyMessage],
    session: Session,
    *,
    provider: CompletionService | None = None,
    max_turns: int = 5,
    combine: Combine | str = Combine.UNION,
) -> Response:
    """Run the agent loop until the model stops calling tools.

    Each iteration:
    1. Compute the tools allowed by the session's flow rules
    2. Call the model with the privacy-filtered history
    3. Execute requested tool calls (possibly handing off)
    4. Run termination checks
    and repeats while fewer than ``max_turns`` messages have been appended
    and an agent is active.

    ``messages`` is not modified; the returned ``Response.messages`` holds
    only the newly appended messages.
    """
    provider = _get_provider(session, provider)
    combine = Combine(combine)
    dedupe = combine is not Combine.VCAT

    active_agent: AgentLike | None = session.agent_map.resolve(agent)
    history = list(messages)
    init_len = len(history)
    used_tools = get_used_tools(history, dedupe=dedupe)

    outcome: TurnOutcome | None = None
    step_no = 0
    while len(history) - init_len < max_turns and active_agent is not None:
        active_agent = session.agent_map.resolve(active_agent)
        step_no += 1
        logger.info("Agent %s: step %d", active_agent.name, step_no)

        # 1. Allowed tools, from the raw history
        all_tools = available_tools(active_agent, session)
        allowed = get_allowed_tools(session.rules, used_tools, all_tools, combine)
        tools = [
            _lookup_tool(name, active_agent, session)
            for name in dict.fromkeys(allowed)
        ]

        # 2. Model-visible history
        visible = update_system_message(
            filter_history(history, active_agent), active_agent
        )

        # 3. Call the model
        response = provider.complete(
            visible,
            tools,
            active_agent.model,
            tool_choice=active_agent.tool_choice if tools else None,
            name=scrub_agent_name(active_agent),
        )
        batch_start = len(history)
        for msg in response:
            terminal = isinstance(msg, AssistantMessage) and not msg.tool_calls
            history.append(apply_privacy(msg, active_agent, last_turn=terminal))
            if isinstance(msg, AssistantMessage) and msg.content:
                session.wire.send_assistant(active_agent.name, msg.content)

        # 4. Done when the model stops calling tools
        if not response or not response[-1].tool_calls:
            outcome = TurnOutcome.COMPLETE
            logger.info("Agent %s completed after %d steps", active_agent.name, step_no)
            break

        # 5-6. Execute tool calls, possibly handing off
        active_agent = handle_tool_calls(
            active_agent, history, session, batch_start=batch_start
        )

        # 7. Usage tracking ignores privacy
        used_tools = get_used_tools(history, dedupe=dedupe)

        # 8. Termination checks
        active_agent = run_termination_checks(
            history, active_agent, session.rules, session.wire
        )

    if outcome is None:
        if active_agent is None:
            outcome = TurnOutcome.TERMINATED
        else:
            outcome = TurnOutcome.MAX_TURNS
            logger.warning(
                "Agent %s hit max turns (%d)", active_agent.name, max_turns
            )

    return Response(
        messages=history[init_len:],
        agent=active_agent,
        context=session.context,
        outcome=outcome,
    )


def run_turn(
    session: Session,
    user_text: str,
    *,
    provider: CompletionService | None = None,
    max_turns: int | None = None,
    combine: Combine | str | None = None,
) -> Session:
    """Run a full turn for a user message, updating the session in place.

    ``max_turns`` and ``combine`` default to ``session.config.run``.
    """
    if session.agent is None:
        raise ValueError("Session has no active agent")

    run_config = session.config.run
    session.history.append(UserMessage(user_text))
    session.wire.send_user(user_text)

    resp = run_full_turn(
        session.agent,
        session.history,
        session,
        provider=provider,
        max_turns=max_turns if max_turns is not None else run_config.max_turns,
        combine=combine if combine is not None else run_config.combine,
    )
    session.history.extend(resp.messages)
    session.agent = resp.agent
    session.context = resp.context
    logger.info("Turn ended: %s", resp.outcome.value)
    return session


def _get_provider(
    session: Session, provider: CompletionService | None
) -> CompletionService:
    if provider is not None:
        return provider
    if session.provider is None:
        llm = session.config.llm
        session.provider = create_provider(
            llm.model, temperature=llm.temperature, max_tokens=llm.max_tokens
        )
    return session.provider


def available_tools(agent: Agent, session: Session) -> list[str]:
    """Tool names offered to ``agent``: its own, then the session's.

    A session tool shadowed by an agent tool of the same name is left out.
    """
    names = agent.tool_map.names()
    return names + [name for name in session.tools.names() if name not in agent.tool_map]


def _lookup_tool(name: str, agent: Agent, session: Session) -> Tool:
    return _registry_for(name, agent, session)[name]


def _registry_for(name: str, agent: Agent, session: Session) -> ToolRegistry:
    # Missing tools are reported by the agent's registry
    if name not in agent.tool_map and name in session.tools:
        return session.tools
    return agent.tool_map
