"""Domain models for photonterm.

This package contains the core data structures, enumerations, and wire
payloads used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from photonterm.domain.models import (
    ExecEndPayload,
    ExecStartPayload,
    SessionSnapshot,
    SessionState,
    StdinPayload,
    StdinRequestPayload,
    StdoutPayload,
    SuppressionEntry,
)

__all__ = [
    "ExecEndPayload",
    "ExecStartPayload",
    "SessionSnapshot",
    "SessionState",
    "StdinPayload",
    "StdinRequestPayload",
    "StdoutPayload",
    "SuppressionEntry",
]
