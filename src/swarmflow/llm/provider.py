"""Completion service abstraction — unified via litellm.

The turn loop only depends on the ``CompletionService`` protocol: given the
model-visible history, the allowed tools and a model identifier, return the
new messages. ``LiteLLMProvider`` is the bundled implementation; litellm
handles provider detection from the model string prefix
(e.g. "openai/gpt-4o", "anthropic/claude-...") and reads API keys from
environment variables.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from swarmflow.llm.message import (
    AnyMessage,
    AssistantMessage,
    Message,
    ToolCall,
    parse_arguments,
)

if TYPE_CHECKING:
    from litellm import ModelResponse

    from swarmflow.tool.base import Tool

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for a completion provider."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None


@runtime_checkable
class CompletionService(Protocol):
    """Protocol for the external chat-completion backend."""

    def complete(
        self,
        messages: Sequence[AnyMessage],
        tools: Sequence[Tool],
        model: str,
        *,
        tool_choice: str | None = None,
        name: str | None = None,
    ) -> list[Message]:
        """Return the new messages produced for ``messages``.

        The last returned message is either a terminal assistant message or
        an assistant message carrying tool call requests.
        """
        ...


# ---------------------------------------------------------------------------
# litellm provider
# ---------------------------------------------------------------------------


@dataclass
class LiteLLMProvider:
    """Blocking completion provider using ``litellm.completion``."""

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def complete(
        self,
        messages: Sequence[AnyMessage],
        tools: Sequence[Tool],
        model: str | None = None,
        *,
        tool_choice: str | None = None,
        name: str | None = None,
    ) -> list[Message]:
        kwargs: dict[str, Any] = {
            "model": model or self._config.model,
            "messages": [m.to_openai_dict() for m in messages],
        }

        if tools:
            kwargs["tools"] = [t.to_openai_spec() for t in tools]
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature

        if self._config.max_tokens is not None:
            kwargs["max_tokens"] = self._config.max_tokens

        response = _completion_with_retry(**kwargs)
        return [_response_to_message(response, name=name)]


@retry(
    retry=retry_if_exception_type((ConnectionError, TimeoutError, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _completion_with_retry(**kwargs: Any) -> ModelResponse:
    """Call litellm.completion with retry on transient errors."""
    import litellm

    return litellm.completion(**kwargs)


def _response_to_message(response: Any, name: str | None = None) -> AssistantMessage:
    """Convert a litellm ModelResponse into an ``AssistantMessage``.

    litellm responses have the same shape as OpenAI ChatCompletion objects:
      response.choices[0].message.{content, tool_calls}
    """
    choices = getattr(response, "choices", None)
    if not choices:
        logger.warning("Completion response has no choices")
        return AssistantMessage(name=name)

    message = choices[0].message
    tool_calls: list[ToolCall] = []
    for tc in getattr(message, "tool_calls", None) or []:
        func = tc.function
        tc_name = func.name if func and func.name else ""
        tool_calls.append(
            ToolCall(
                id=tc.id or "",
                name=tc_name,
                arguments=parse_arguments(tc_name, func.arguments if func else None),
            )
        )

    return AssistantMessage(
        content=getattr(message, "content", None) or "",
        tool_calls=tool_calls,
        name=name,
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> LiteLLMProvider:
    """Create a LiteLLM provider.

    Args:
        model: Default model name with provider prefix. Agents override it
            with their own ``model`` on every call.
        temperature: Sampling temperature.
        max_tokens: Max output tokens.
    """
    config = ProviderConfig(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return LiteLLMProvider(_config=config)
