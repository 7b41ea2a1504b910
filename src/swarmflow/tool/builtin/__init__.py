"""Built-in tools."""

from swarmflow.tool.builtin.transfer import TransferParams, add_transfers, transfer_tool

__all__ = [
    "TransferParams",
    "add_transfers",
    "transfer_tool",
]
