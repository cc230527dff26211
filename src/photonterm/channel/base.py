"""Abstract base class for event channels to the remote runner.

All channel implementations must conform to this interface, enabling
the session controller to run against the Socket.IO transport, an
in-process loopback, or a test double without changing any other code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

EventHandler = Callable[..., Any]


class EventChannel(ABC):
    """Abstract interface for a bidirectional, named-event channel.

    Implementations deliver inbound events to handlers registered with
    :meth:`on` and send outbound events fire-and-forget with :meth:`emit`.
    Transport-level reconnection is the implementation's job; it surfaces
    as ``disconnect`` followed later by ``connect``.

    Inbound handler signatures::

        connect()
        disconnect(reason: str)
        connect_error(error: Any)
        stdout(data: dict), stdin_request(data: dict), exec_end(data: dict)

    Example usage::

        async with SocketIOChannel(url="http://127.0.0.1:5001") as channel:
            channel.on("stdout", lambda data: print(data["text"], end=""))
            channel.emit("exec_start", {"code": "print(1)", "auto_indent": True})
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the transport is currently connected."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the remote runner.

        Raises:
            ChannelError: If the connection cannot be established.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call multiple times."""
        ...

    @abstractmethod
    def emit(self, event: str, data: dict[str, Any]) -> None:
        """Send an event without waiting for delivery.

        Raises:
            ChannelError: If the channel can no longer send at all.
        """
        ...

    def on(self, event: str, handler: EventHandler) -> None:
        """Register ``handler`` for an inbound event."""
        self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler | None = None) -> None:
        """Unregister one handler, or every handler for ``event``."""
        if handler is None:
            self._handlers.pop(event, None)
            return
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def _dispatch(self, event: str, *args: Any) -> None:
        """Run every handler for ``event`` in registration order."""
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception("Handler for %r failed", event)

    async def __aenter__(self) -> EventChannel:
        """Async context manager entry -- connects the channel."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- disconnects the channel."""
        await self.disconnect()


class ChannelError(Exception):
    """Raised when the event channel cannot connect or send."""

    def __init__(self, message: str, transport: str = "") -> None:
        super().__init__(message)
        self.transport = transport
