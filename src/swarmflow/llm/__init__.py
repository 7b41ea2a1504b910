"""LLM abstraction layer — message model and completion service."""

from swarmflow.llm.message import (
    AnyMessage,
    AssistantMessage,
    Message,
    PrivateMessage,
    SystemMessage,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from swarmflow.llm.provider import (
    CompletionService,
    LiteLLMProvider,
    ProviderConfig,
    create_provider,
)

__all__ = [
    "AnyMessage",
    "AssistantMessage",
    "Message",
    "PrivateMessage",
    "SystemMessage",
    "ToolCall",
    "ToolResultMessage",
    "UserMessage",
    "CompletionService",
    "LiteLLMProvider",
    "ProviderConfig",
    "create_provider",
]
