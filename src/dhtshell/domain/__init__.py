"""Domain models for dhtshell.

This package contains the command descriptors, command results and the
enumerations describing sessions and transports. All models use
Pydantic v2 for validation.
"""

from dhtshell.domain.models import (
    Command,
    CommandHandler,
    CommandResult,
    SessionAction,
    SessionInfo,
    SessionState,
    TransportKind,
)

__all__ = [
    "Command",
    "CommandHandler",
    "CommandResult",
    "SessionAction",
    "SessionInfo",
    "SessionState",
    "TransportKind",
]
