"""Core domain models for the photonterm system.

These models represent the data flowing through an interactive run:
the execution lifecycle state, the suppression entries that keep local
input echo from being shown twice, the read-only snapshot handed to
front ends, and the payloads exchanged with the remote runner.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Channel event names
# ---------------------------------------------------------------------------

EVENT_EXEC_START = "exec_start"
EVENT_STDIN = "stdin"
EVENT_STDOUT = "stdout"
EVENT_STDIN_REQUEST = "stdin_request"
EVENT_EXEC_END = "exec_end"
EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_CONNECT_ERROR = "connect_error"

INBOUND_EVENTS = (
    EVENT_CONNECT,
    EVENT_DISCONNECT,
    EVENT_CONNECT_ERROR,
    EVENT_STDOUT,
    EVENT_STDIN_REQUEST,
    EVENT_EXEC_END,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    """Lifecycle state of the current execution session."""

    IDLE = "idle"
    RUNNING = "running"
    WAITING_FOR_INPUT = "waiting_for_input"
    ENDED = "ended"

    @property
    def is_active(self) -> bool:
        """Whether a remote process is believed to be running."""
        return self in (SessionState.RUNNING, SessionState.WAITING_FOR_INPUT)


# ---------------------------------------------------------------------------
# Session Models
# ---------------------------------------------------------------------------


class SuppressionEntry(BaseModel):
    """Input already rendered locally whose remote echo must be elided."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(description="The submitted text, without its trailing newline")
    prompt: str | None = Field(default=None, description="Prompt the input answered, if any")


class SessionSnapshot(BaseModel):
    """Read-only view of a session handed to front ends."""

    model_config = ConfigDict(frozen=True)

    state: SessionState = Field(default=SessionState.IDLE)
    transcript: str = Field(default="", description="Everything the user sees, in order")
    pending_prompt: str | None = Field(
        default=None, description="Unanswered prompt, only while waiting for input"
    )
    generation: int = Field(default=0, ge=0, description="Bumped on every start and abort")
    connected: bool = Field(default=False, description="Last known channel connectivity")


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------


class ExecStartPayload(BaseModel):
    """Outbound ``exec_start`` body."""

    code: str = ""
    auto_indent: bool = True
    run_id: int | None = Field(default=None, description="Only sent when run tagging is enabled")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class StdinPayload(BaseModel):
    """Outbound ``stdin`` body."""

    text: str = ""

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class _InboundPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    run_id: int | None = None

    @classmethod
    def parse(cls, data: Any) -> "_InboundPayload":
        """Build a payload from whatever the runner sent.

        The runner is lenient: bodies may be missing, ``null`` or carry
        ``null`` fields, so anything that is not a mapping is treated as
        an empty body.
        """
        if not isinstance(data, dict):
            data = {}
        return cls.model_validate({k: v for k, v in data.items() if v is not None})


class StdoutPayload(_InboundPayload):
    """Inbound ``stdout`` body."""

    text: str = ""


class StdinRequestPayload(_InboundPayload):
    """Inbound ``stdin_request`` body."""

    prompt: str = ""


class ExecEndPayload(_InboundPayload):
    """Inbound ``exec_end`` body."""
