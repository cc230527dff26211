"""Event channel module for photonterm.

Carries named events between the session controller and the remote
runner. The abstract interface keeps the controller independent of the
transport.

Public API:
    EventChannel -- Abstract base class
    ChannelError -- Raised when a channel cannot connect or send
    SocketIOChannel -- Socket.IO backend for the remote runner
"""

from photonterm.channel.base import ChannelError, EventChannel

__all__ = ["ChannelError", "EventChannel", "SocketIOChannel"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "SocketIOChannel":
        from photonterm.channel.socketio_channel import SocketIOChannel
        return SocketIOChannel
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
