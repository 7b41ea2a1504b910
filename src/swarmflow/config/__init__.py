"""Configuration — Pydantic models for swarmflow settings."""

from __future__ import annotations

import logging
import os
from typing import Any, Literal

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """Completion provider configuration.

    Model names use litellm's provider-prefix format:
        "openai/gpt-4o"
        "anthropic/claude-sonnet-4-5-20250929"

    API keys are read from env vars automatically by litellm
    (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...). The model here is only the
    provider default; each agent passes its own ``model`` on every call.
    """

    model: str = Field(default="gpt-4o")
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)


class RunConfig(BaseModel):
    """Turn loop configuration."""

    max_turns: int = Field(
        default=5, ge=1, description="Max messages appended per user turn"
    )
    combine: Literal["union", "intersect", "vcat"] = Field(
        default="union", description="How tool flow rule results are merged"
    )


class SwarmConfig(BaseModel):
    """Top-level swarmflow configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    run: RunConfig = Field(default_factory=RunConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> SwarmConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            SWARMFLOW_MODEL        - Default model (litellm format with provider prefix)
            SWARMFLOW_TEMPERATURE  - Sampling temperature
            SWARMFLOW_MAX_TOKENS   - Max output tokens
            SWARMFLOW_MAX_TURNS    - Max messages appended per user turn
            SWARMFLOW_COMBINE      - Flow rule combination (union/intersect/vcat)
        """
        from dotenv import load_dotenv

        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            import json

            with open(config_path) as f:
                config_data = json.load(f)

        llm = config_data.get("llm", {})
        run = config_data.get("run", {})

        env_model = os.environ.get("SWARMFLOW_MODEL")
        if env_model:
            llm["model"] = env_model

        env_temperature = os.environ.get("SWARMFLOW_TEMPERATURE")
        if env_temperature:
            llm["temperature"] = float(env_temperature)

        env_max_tokens = os.environ.get("SWARMFLOW_MAX_TOKENS")
        if env_max_tokens:
            llm["max_tokens"] = int(env_max_tokens)

        env_max_turns = os.environ.get("SWARMFLOW_MAX_TURNS")
        if env_max_turns:
            run["max_turns"] = int(env_max_turns)

        env_combine = os.environ.get("SWARMFLOW_COMBINE")
        if env_combine:
            run["combine"] = env_combine.lower()

        if llm:
            config_data["llm"] = llm
        if run:
            config_data["run"] = run

        return cls.model_validate(config_data)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
