"""Flow rules — tool gating and termination checks."""

from swarmflow.flow.rules import (
    Combine,
    FixedOrder,
    FixedPrerequisites,
    ToolFlowRule,
    get_allowed_tools,
    intersect,
    union,
    vcat,
)
from swarmflow.flow.termination import (
    CycleCheck,
    GenericCheck,
    RepeatCheck,
    TerminationRule,
    get_used_tools,
    is_cycle,
    num_subsequent_repeats,
    run_termination_checks,
    tool_sequence,
)

FlowRule = ToolFlowRule | TerminationRule

__all__ = [
    "Combine",
    "FixedOrder",
    "FixedPrerequisites",
    "ToolFlowRule",
    "get_allowed_tools",
    "intersect",
    "union",
    "vcat",
    "CycleCheck",
    "GenericCheck",
    "RepeatCheck",
    "TerminationRule",
    "get_used_tools",
    "is_cycle",
    "num_subsequent_repeats",
    "run_termination_checks",
    "tool_sequence",
    "FlowRule",
]
