"""Agent registry — the session's agent map and reference resolution."""

from __future__ import annotations

import logging
from typing import Iterator, Mapping

from swarmflow.agent.agent import Agent, AgentLike, AgentRef, discover_agents
from swarmflow.errors import AgentNotFoundError, CircularReferenceError
from swarmflow.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)


def resolve(agent_map: Mapping[str, AgentLike], agent: AgentLike | str) -> Agent:
    """Follow references through ``agent_map`` until a concrete agent.

    A concrete ``Agent`` is returned unchanged, even if it is not in the
    map. A bare string is treated as ``AgentRef(name)``.

    Raises:
        AgentNotFoundError: a name in the chain is not in the map.
        CircularReferenceError: a name recurs in the chain.
    """
    if isinstance(agent, Agent):
        return agent
    if isinstance(agent, str):
        agent = AgentRef(agent)
    if not isinstance(agent, AgentRef):
        raise TypeError(f"Invalid agent reference type: {type(agent).__name__}")

    chain: list[str] = []
    visited: set[str] = set()
    current: AgentLike = agent
    while isinstance(current, AgentRef):
        name = current.name
        if name in visited:
            raise CircularReferenceError(name, chain)
        visited.add(name)
        chain.append(name)

        if name not in agent_map:
            raise AgentNotFoundError(name)
        current = agent_map[name]

    if not isinstance(current, Agent):
        raise TypeError(f"Invalid agent type in map: {type(current).__name__}")
    return current


class AgentRegistry:
    """Registry of agents and agent references, keyed by name.

    This is the only mutation path for a session's agent map.
    """

    def __init__(self) -> None:
        self._agents: dict[str, AgentLike] = {}

    def register(self, agent: AgentLike) -> None:
        """Register an agent or reference, overwriting with a warning."""
        if agent.name in self._agents:
            logger.warning("Overwriting existing agent %r in agent map", agent.name)
        self._agents[agent.name] = agent

    def get(self, name: str) -> AgentLike | None:
        """Get an agent or reference by name."""
        return self._agents.get(name)

    def resolve(self, agent: AgentLike | str) -> Agent:
        """Resolve an agent, reference or name to a concrete agent."""
        return resolve(self._agents, agent)

    def names(self) -> list[str]:
        """Get all registered agent names."""
        return list(self._agents.keys())

    def discover(self, search_dirs: list[str], tools: ToolRegistry | None = None) -> None:
        """Discover and register agents from markdown files."""
        for agent in discover_agents(search_dirs, tools=tools):
            self.register(agent)
            logger.info("Discovered agent: %s", agent.name)

    def __getitem__(self, name: str) -> AgentLike:
        return self._agents[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, name: object) -> bool:
        return name in self._agents
