"""Structured error hierarchy.

Three families, matching how callers react to them:

- ``ConfigurationError``: programmer errors at registration/construction
  time (duplicate tool names, malformed rule parameters). Fatal.
- ``AgentReferenceError``: an ``AgentRef`` that cannot be resolved. Fatal.
- ``ToolExecutionError``: a tool that is missing or raised. Never propagates
  out of the turn loop; it is recorded as tool-result content and as an
  artifact.

Termination is not an error: it is reported as a ``TurnOutcome``.
"""

from __future__ import annotations


class SwarmError(Exception):
    def __init__(self, code: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(SwarmError):
    def __init__(self, message: str, code: str = "CONFIG_ERROR") -> None:
        super().__init__(code, message)


class DuplicateToolError(ConfigurationError, ValueError):
    def __init__(self, tool_name: str, owner: str = "") -> None:
        where = f" in {owner}" if owner else ""
        super().__init__(
            f"Tool {tool_name!r} already exists{where}. Only unique tool names are allowed.",
            code="DUPLICATE_TOOL",
        )
        self.tool_name = tool_name


class InvalidRuleError(ConfigurationError, ValueError):
    def __init__(self, rule_name: str, message: str) -> None:
        super().__init__(f"{rule_name}: {message}", code="INVALID_RULE")
        self.rule_name = rule_name


# ---------------------------------------------------------------------------
# Reference errors
# ---------------------------------------------------------------------------


class AgentReferenceError(SwarmError):
    def __init__(self, code: str, agent_name: str, message: str) -> None:
        super().__init__(code, message)
        self.agent_name = agent_name


class AgentNotFoundError(AgentReferenceError, KeyError):
    def __init__(self, agent_name: str) -> None:
        super().__init__(
            "AGENT_NOT_FOUND", agent_name, f"Agent {agent_name!r} not found in agent map"
        )

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class CircularReferenceError(AgentReferenceError):
    def __init__(self, agent_name: str, chain: list[str]) -> None:
        path = " -> ".join([*chain, agent_name])
        super().__init__(
            "CIRCULAR_REFERENCE",
            agent_name,
            f"Circular reference detected for agent {agent_name!r}: {path}",
        )
        self.chain = chain


# ---------------------------------------------------------------------------
# Execution errors
# ---------------------------------------------------------------------------


class ToolExecutionError(SwarmError):
    def __init__(
        self,
        tool_name: str,
        message: str,
        cause: Exception | None = None,
        code: str = "TOOL_EXECUTION",
    ) -> None:
        super().__init__(code, message, cause)
        self.tool_name = tool_name


class ToolNotFoundError(ToolExecutionError):
    def __init__(self, tool_name: str, available: list[str] | None = None) -> None:
        self.available = list(available or [])
        listing = ", ".join(self.available) if self.available else "none"
        super().__init__(
            tool_name,
            f"Unknown tool: {tool_name}. Available tools: {listing}",
            code="TOOL_NOT_FOUND",
        )
