"""Session state and progress reporting."""

from swarmflow.session.session import Session, add_rules, new_session, register_agent
from swarmflow.session.wire import EventType, Wire, WireEvent

__all__ = [
    "Session",
    "add_rules",
    "new_session",
    "register_agent",
    "EventType",
    "Wire",
    "WireEvent",
]
