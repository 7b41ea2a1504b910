"""Agent definitions and symbolic agent references."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from swarmflow.tool.base import Tool
from swarmflow.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class Agent:
    """A named configuration of instructions, model and tools.

    Agents can be built in code:

        agent = Agent(name="Sales", instructions="You sell shoes.")
        add_tools(agent, [check_stock, place_order])

    or loaded from markdown files with YAML frontmatter:

        ---
        name: Sales
        model: openai/gpt-4o
        tools: [check_stock, place_order]
        private: false
        ---

        You sell shoes...

    Agents are immutable by convention once registered in a session.
    ``parallel_tool_calls`` is declared for completeness but tool calls are
    always executed one after the other.
    """

    name: str
    model: str = "gpt-4o"
    instructions: str = "You are a helpful agent."
    tool_map: ToolRegistry = field(default_factory=ToolRegistry)
    tool_choice: str | None = None
    parallel_tool_calls: bool = True
    private: bool = False

    def __post_init__(self) -> None:
        if not self.tool_map.owner:
            self.tool_map.owner = f"agent {self.name!r}"

    def __repr__(self) -> str:
        return f"Agent({self.name}, tools={len(self.tool_map)}, private={self.private})"

    @classmethod
    def from_markdown(cls, path: str, tools: ToolRegistry | None = None) -> Agent:
        """Load an agent definition from a markdown file with YAML frontmatter.

        Tool names listed in the frontmatter are looked up in ``tools``;
        unknown names are skipped with a warning.
        """
        with open(path, "r") as f:
            content = f.read()

        config, prompt = _parse_frontmatter(content)
        return cls.from_dict(config, instructions=prompt.strip(), tools=tools)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        instructions: str = "",
        tools: ToolRegistry | None = None,
    ) -> Agent:
        """Create an agent from a dictionary config."""
        data = dict(data)
        tool_names = data.pop("tools", None) or []
        if instructions:
            data["instructions"] = instructions
        agent = cls(**data)
        if tool_names:
            if tools is None:
                logger.warning(
                    "Agent %s lists tools but no tool registry was given", agent.name
                )
            else:
                add_tools(agent, tools.subset(tool_names))
        return agent


@dataclass(frozen=True)
class AgentRef:
    """Symbolic pointer to an agent by name.

    Lets an agent hand off to agents that are registered later. Always
    resolved through the session's agent map before use.
    """

    name: str


AgentLike = Agent | AgentRef


def is_agent_like(value: Any) -> bool:
    """True for values that trigger a handoff when returned by a tool."""
    return isinstance(value, (Agent, AgentRef))


def add_tools(
    agent: Agent,
    tools: Tool | Callable[..., Any] | Iterable[Tool | Callable[..., Any]],
) -> Agent:
    """Add one or more tools to ``agent``.

    Plain callables are wrapped with ``Tool.from_function``. Duplicate names
    raise ``DuplicateToolError``.
    """
    if isinstance(tools, Tool) or callable(tools):
        tools = [tools]  # type: ignore[list-item]
    for tool in tools:  # type: ignore[union-attr]
        if not isinstance(tool, Tool):
            tool = Tool.from_function(tool)
        agent.tool_map.register(tool)
    return agent


def scrub_agent_name(agent: Agent | AgentRef) -> str:
    """Agent name usable as a chat participant name (no whitespace)."""
    return re.sub(r"\s+", "_", agent.name.strip())


def _parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Returns (config_dict, body_text).
    """
    import yaml  # lazy import

    pattern = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)", re.DOTALL)
    match = pattern.match(content)

    if not match:
        return {}, content

    frontmatter = match.group(1)
    body = match.group(2)

    try:
        config = yaml.safe_load(frontmatter) or {}
    except yaml.YAMLError as e:
        logger.warning("Invalid agent frontmatter: %s", e)
        config = {}

    return config, body


def discover_agents(
    search_dirs: list[str], tools: ToolRegistry | None = None
) -> list[Agent]:
    """Discover agent definitions from markdown files in directories.

    Searches for *.md files with YAML frontmatter containing a 'name' field.
    """
    agents = []
    for dir_path in search_dirs:
        if not os.path.isdir(dir_path):
            continue
        for fname in sorted(os.listdir(dir_path)):
            if not fname.endswith(".md"):
                continue
            full_path = os.path.join(dir_path, fname)
            try:
                agent = Agent.from_markdown(full_path, tools=tools)
            except (OSError, TypeError) as e:
                logger.warning("Skipping agent file %s: %s", full_path, e)
                continue
            agents.append(agent)
    return agents
