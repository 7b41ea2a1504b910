"""Agent system — definitions, references and registry.

The turn loop lives in ``swarmflow.agent.loop``.
"""

from swarmflow.agent.agent import (
    Agent,
    AgentLike,
    AgentRef,
    add_tools,
    discover_agents,
    scrub_agent_name,
)
from swarmflow.agent.registry import AgentRegistry, resolve

__all__ = [
    "Agent",
    "AgentLike",
    "AgentRef",
    "add_tools",
    "discover_agents",
    "scrub_agent_name",
    "AgentRegistry",
    "resolve",
]
