"""Transfer tools — hand the conversation off to another agent."""

from __future__ import annotations

import re
from typing import Iterable

from pydantic import BaseModel, Field

from swarmflow.agent.agent import Agent, AgentLike, AgentRef, add_tools
from swarmflow.tool.base import Tool


class TransferParams(BaseModel):
    reason: str = Field(
        default="",
        description="Why the conversation is being handed off (shown to the next agent).",
    )


def transfer_tool(
    target: AgentLike | str,
    name: str | None = None,
    description: str | None = None,
) -> Tool:
    """Build a tool that hands off to ``target`` when called.

    The tool returns the target itself (an ``Agent``, or an ``AgentRef`` for
    names), which the turn loop recognizes as a handoff. The call's
    arguments are included in the handoff acknowledgment.
    """
    if isinstance(target, str):
        target = AgentRef(target)
    slug = re.sub(r"\W+", "_", target.name).strip("_").lower()

    def _transfer(reason: str = "") -> Agent | AgentRef:
        return target

    return Tool(
        name=name or f"transfer_to_{slug}",
        callable=_transfer,
        description=description
        or f"Transfer the conversation to the {target.name} agent.",
        param_model=TransferParams,
    )


def add_transfers(agent: Agent, targets: Iterable[AgentLike | str]) -> Agent:
    """Give ``agent`` one transfer tool per target."""
    return add_tools(agent, [transfer_tool(t) for t in targets])
