"""Tool flow rules — narrow the set of tools offered to the model.

Each rule maps ``(used_tools, all_tools)`` to the tool names it allows.
``get_allowed_tools`` combines the rules registered on a session:

- no tool rules: every tool is allowed;
- the first ``FixedOrder`` with a non-empty result wins outright;
- otherwise the remaining rules are combined with ``union``,
  ``intersect`` or ``vcat``.

Rules only ever see tool names taken from the raw history, so message
privacy never changes what they allow.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)


class Combine(enum.Enum):
    """How the results of several tool rules are merged."""

    UNION = "union"  # Deduplicated, first-seen order
    INTERSECT = "intersect"  # Allowed by every rule, in tool order
    VCAT = "vcat"  # Concatenated, duplicates kept


@dataclass(frozen=True)
class FixedOrder:
    """Offer tools one at a time, in a strict sequence.

    After the last tool of the sequence has been used, no tool is offered.
    Progress is the highest position in ``order`` whose tool appears
    anywhere in the used tools, not the most recently used tool.
    """

    order: tuple[str, ...] = ()
    name: str = "FixedOrder"

    def __post_init__(self) -> None:
        object.__setattr__(self, "order", tuple(self.order))

    def allowed_tools(
        self, used_tools: Sequence[str], all_tools: Sequence[str]
    ) -> list[str]:
        if not self.order:
            return list(all_tools)

        available = set(all_tools)
        valid = [t for t in self.order if t in available]
        if not valid:
            logger.debug("%s: none of %s are available", self.name, self.order)
            return []

        used = set(used_tools)
        if not used:
            return [valid[0]]

        last_used = max((i for i, t in enumerate(valid) if t in used), default=-1)
        if last_used == len(valid) - 1:
            return []
        return [valid[last_used + 1]]


@dataclass(frozen=True)
class FixedPrerequisites:
    """Gate tools on other tools having been used, in any order.

    A tool with no prerequisites is always allowed. A tool whose
    prerequisites are not all available is never allowed.
    """

    prerequisites: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    name: str = "FixedPrerequisites"

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "prerequisites",
            {tool: tuple(reqs) for tool, reqs in self.prerequisites.items()},
        )

    @classmethod
    def from_order(cls, order: Iterable[str]) -> FixedPrerequisites:
        """Each tool requires every tool listed before it."""
        order = list(order)
        return cls({tool: tuple(order[:i]) for i, tool in enumerate(order)})

    def allowed_tools(
        self, used_tools: Sequence[str], all_tools: Sequence[str]
    ) -> list[str]:
        if not self.prerequisites:
            return list(all_tools)

        available = set(all_tools)
        used = set(used_tools)
        allowed = []
        for tool in all_tools:
            reqs = self.prerequisites.get(tool, ())
            if not all(r in available for r in reqs):
                logger.debug("%s: %s has unavailable prerequisites", self.name, tool)
                continue
            if all(r in used for r in reqs):
                allowed.append(tool)
        return allowed


ToolFlowRule = FixedOrder | FixedPrerequisites


def is_tool_rule(rule: object) -> bool:
    return isinstance(rule, (FixedOrder, FixedPrerequisites))


# ---------------------------------------------------------------------------
# Combiners
# ---------------------------------------------------------------------------


def union(results: Sequence[Sequence[str]], all_tools: Sequence[str]) -> list[str]:
    available = set(all_tools)
    combined = dict.fromkeys(t for result in results for t in result if t in available)
    return list(combined)


def intersect(results: Sequence[Sequence[str]], all_tools: Sequence[str]) -> list[str]:
    sets = [set(result) for result in results]
    return [t for t in dict.fromkeys(all_tools) if all(t in s for s in sets)]


def vcat(results: Sequence[Sequence[str]], all_tools: Sequence[str]) -> list[str]:
    available = set(all_tools)
    return [t for result in results for t in result if t in available]


_COMBINERS: dict[Combine, Callable[[Sequence[Sequence[str]], Sequence[str]], list[str]]] = {
    Combine.UNION: union,
    Combine.INTERSECT: intersect,
    Combine.VCAT: vcat,
}


def get_allowed_tools(
    rules: Iterable[object],
    used_tools: Sequence[str],
    all_tools: Sequence[str],
    combine: Combine | str = Combine.UNION,
) -> list[str]:
    """Tool names the model may call on this turn.

    Args:
        rules: Session rules. Termination rules are ignored.
        used_tools: Tool names used so far, from the raw history.
        all_tools: Tool names of the active agent, in offer order.
        combine: How to merge the results of non-``FixedOrder`` rules.
    """
    combine = Combine(combine)
    tool_rules: list[ToolFlowRule] = [r for r in rules if is_tool_rule(r)]  # type: ignore[misc]
    if not tool_rules:
        return list(all_tools)

    for rule in tool_rules:
        if isinstance(rule, FixedOrder):
            allowed = rule.allowed_tools(used_tools, all_tools)
            if allowed:
                logger.debug("%s takes precedence: %s", rule.name, allowed)
                return allowed

    results = [
        rule.allowed_tools(used_tools, all_tools)
        for rule in tool_rules
        if not isinstance(rule, FixedOrder)
    ]
    if not any(results):
        return []

    allowed = _COMBINERS[combine](results, all_tools)
    logger.debug("Allowed tools (%s): %s", combine.value, allowed)
    return allowed
