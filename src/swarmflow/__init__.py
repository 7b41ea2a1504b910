"""swarmflow — multi-agent tool orchestration with flow rules and privacy."""

from swarmflow.agent import (
    Agent,
    AgentRef,
    AgentRegistry,
    add_tools,
    resolve,
    scrub_agent_name,
)
from swarmflow.agent.loop import (
    Response,
    TurnOutcome,
    available_tools,
    handle_tool_calls,
    run_full_turn,
    run_turn,
    update_system_message,
)
from swarmflow.config import SwarmConfig, setup_logging
from swarmflow.errors import (
    AgentNotFoundError,
    AgentReferenceError,
    CircularReferenceError,
    ConfigurationError,
    DuplicateToolError,
    InvalidRuleError,
    SwarmError,
    ToolExecutionError,
    ToolNotFoundError,
)
from swarmflow.flow import (
    Combine,
    CycleCheck,
    FixedOrder,
    FixedPrerequisites,
    GenericCheck,
    RepeatCheck,
    get_allowed_tools,
    get_used_tools,
    is_cycle,
    num_subsequent_repeats,
)
from swarmflow.llm import (
    AssistantMessage,
    CompletionService,
    PrivateMessage,
    SystemMessage,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from swarmflow.privacy import apply_privacy, filter_history, is_visible
from swarmflow.session import Session, add_rules, new_session, register_agent
from swarmflow.tool import Tool, ToolRegistry
from swarmflow.tool.builtin import add_transfers, transfer_tool

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentRef",
    "AgentRegistry",
    "add_tools",
    "resolve",
    "scrub_agent_name",
    "Response",
    "TurnOutcome",
    "available_tools",
    "handle_tool_calls",
    "run_full_turn",
    "run_turn",
    "update_system_message",
    "SwarmConfig",
    "setup_logging",
    "AgentNotFoundError",
    "AgentReferenceError",
    "CircularReferenceError",
    "ConfigurationError",
    "DuplicateToolError",
    "InvalidRuleError",
    "SwarmError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "Combine",
    "CycleCheck",
    "FixedOrder",
    "FixedPrerequisites",
    "GenericCheck",
    "RepeatCheck",
    "get_allowed_tools",
    "get_used_tools",
    "is_cycle",
    "num_subsequent_repeats",
    "AssistantMessage",
    "CompletionService",
    "PrivateMessage",
    "SystemMessage",
    "ToolCall",
    "ToolResultMessage",
    "UserMessage",
    "apply_privacy",
    "filter_history",
    "is_visible",
    "Session",
    "add_rules",
    "new_session",
    "register_agent",
    "Tool",
    "ToolRegistry",
    "add_transfers",
    "transfer_tool",
]
