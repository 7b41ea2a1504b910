"""Termination rules — detect runaway loops over the raw history.

Checks run once per executed tool batch, in registration order. They read
the unwrapped history: a private agent's tool calls count like any other.
A check signals termination by returning ``None`` as the next agent; it
never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from swarmflow.errors import InvalidRuleError
from swarmflow.llm.message import AnyMessage, PrivateMessage, ToolResultMessage

if TYPE_CHECKING:
    from swarmflow.agent.agent import AgentLike
    from swarmflow.session.wire import Wire

logger = logging.getLogger(__name__)

# (history, active_agent) -> next active agent, or None to terminate
Predicate = Callable[[Sequence[AnyMessage], "AgentLike | None"], "AgentLike | None"]


def _keep_agent(history: Sequence[AnyMessage], agent: AgentLike | None) -> AgentLike | None:
    return agent


@dataclass(frozen=True)
class CycleCheck:
    """Terminate on ``n_cycles`` back-to-back repetitions of a tool cycle.

    Cycles of length 2 up to ``span`` are considered.
    """

    n_cycles: int = 3
    span: int = 3
    name: str = "CycleCheck"

    def __post_init__(self) -> None:
        if self.n_cycles <= 1:
            raise InvalidRuleError(self.name, "n_cycles must be > 1")
        if self.span <= 1:
            raise InvalidRuleError(self.name, "span must be > 1")


@dataclass(frozen=True)
class RepeatCheck:
    """Terminate when the same tool is called ``n`` times in a row."""

    n: int
    name: str = "RepeatCheck"

    def __post_init__(self) -> None:
        if self.n <= 1:
            raise InvalidRuleError(self.name, "n must be > 1")


@dataclass(frozen=True)
class GenericCheck:
    """Custom check: ``predicate(history, active_agent)``.

    Returning ``None`` terminates; returning an agent (or reference)
    makes it the active agent.
    """

    predicate: Predicate = _keep_agent
    name: str = "GenericCheck"


TerminationRule = CycleCheck | RepeatCheck | GenericCheck


def is_termination_rule(rule: object) -> bool:
    return isinstance(rule, (CycleCheck, RepeatCheck, GenericCheck))


# ---------------------------------------------------------------------------
# History helpers
# ---------------------------------------------------------------------------


def tool_sequence(history: Iterable[AnyMessage]) -> list[str]:
    """Names of executed tools, in order, ignoring privacy."""
    names = []
    for msg in history:
        if isinstance(msg, PrivateMessage):
            msg = msg.object
        if isinstance(msg, ToolResultMessage) and msg.name:
            names.append(msg.name)
    return names


def get_used_tools(history: Iterable[AnyMessage], dedupe: bool = True) -> list[str]:
    """Tools used in ``history``, ignoring privacy.

    Privacy never affects usage tracking: flow rules and prerequisite
    gating depend on it.
    """
    names = tool_sequence(history)
    if dedupe:
        return list(dict.fromkeys(names))
    return names


def _as_names(history: Sequence[AnyMessage] | Sequence[str]) -> list[str]:
    if all(isinstance(item, str) for item in history):
        return list(history)  # type: ignore[arg-type]
    return tool_sequence(history)  # type: ignore[arg-type]


def is_cycle(history: Sequence[AnyMessage] | Sequence[str], n: int, span: int) -> bool:
    """Whether the tool sequence ends with ``n`` identical cycles.

    Accepts a message history or a plain list of tool names. Cycle lengths
    from ``min(span, len // n)`` down to 2 are tried.
    """
    names = _as_names(history)
    if len(names) < n * 2:
        return False

    for length in range(min(span, len(names) // n), 1, -1):
        recent = names[-n * length :]
        chunks = [recent[i : i + length] for i in range(0, n * length, length)]
        if all(chunk == chunks[0] for chunk in chunks[1:]):
            return True
    return False


def num_subsequent_repeats(history: Sequence[AnyMessage] | Sequence[str]) -> int:
    """Longest run of the same tool called back to back."""
    names = _as_names(history)
    if not names:
        return 0

    longest = current = 1
    for prev, tool in zip(names, names[1:]):
        if tool == prev:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def run_termination_checks(
    history: Sequence[AnyMessage],
    active_agent: AgentLike | None,
    rules: Iterable[object],
    wire: Wire | None = None,
) -> AgentLike | None:
    """Run every termination rule in order.

    Returns the (possibly replaced) active agent, or ``None`` as soon as one
    rule terminates. Tool flow rules are ignored.
    """
    for rule in rules:
        reason = None
        if isinstance(rule, CycleCheck):
            if is_cycle(history, n=rule.n_cycles, span=rule.span):
                reason = f"Cycle detected ({rule.n_cycles} cycles of span {rule.span})"
        elif isinstance(rule, RepeatCheck):
            if num_subsequent_repeats(history) >= rule.n:
                reason = f"Tool repeated {rule.n} times"
        elif isinstance(rule, GenericCheck):
            result = rule.predicate(history, active_agent)
            if result is None:
                reason = f"Generic check ({rule.name})"
            else:
                active_agent = result
        else:
            continue

        if reason is not None:
            logger.warning("Termination condition triggered: %s", reason)
            if wire is not None:
                wire.send_termination(reason)
            return None
    return active_agent
