"""Socket.IO event channel backend.

Talks to the remote runner with python-socketio's asyncio client, which
handles reconnection with backoff. Events emitted while the transport is
down are queued and sent in order once it reconnects.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from photonterm.channel.base import ChannelError, EventChannel
from photonterm.domain.models import (
    EVENT_CONNECT,
    EVENT_CONNECT_ERROR,
    EVENT_DISCONNECT,
    EVENT_EXEC_END,
    EVENT_STDIN_REQUEST,
    EVENT_STDOUT,
)

logger = logging.getLogger(__name__)


class SocketIOChannel(EventChannel):
    """Reconnecting Socket.IO connection to the remote runner."""

    def __init__(
        self,
        url: str = "http://127.0.0.1:5001",
        transports: list[str] | None = None,
        socketio_path: str = "socket.io",
        reconnection: bool = True,
        reconnection_attempts: int = 10,
        reconnection_delay: float = 1.0,
        reconnection_delay_max: float = 5.0,
        connect_timeout: float = 25.0,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._url = url.rstrip("/")
        self._transports = list(transports or ["polling"])
        self._socketio_path = socketio_path
        self._reconnection = reconnection
        self._connect_timeout = connect_timeout
        self._client = client or socketio.AsyncClient(
            reconnection=reconnection,
            reconnection_attempts=reconnection_attempts,
            reconnection_delay=reconnection_delay,
            reconnection_delay_max=reconnection_delay_max,
        )
        self._connected = False
        self._closed = False
        self._outbox: deque[tuple[str, dict[str, Any]]] = deque()
        self._tasks: set[asyncio.Task[Any]] = set()

        self._client.on(EVENT_CONNECT, self._on_connect)
        self._client.on(EVENT_DISCONNECT, self._on_disconnect)
        self._client.on(EVENT_CONNECT_ERROR, self._on_connect_error)
        for event in (EVENT_STDOUT, EVENT_STDIN_REQUEST, EVENT_EXEC_END):
            self._client.on(event, self._relay(event))

    @classmethod
    def from_config(cls, config: Any) -> SocketIOChannel:
        """Build a channel from a ``ChannelConfig``."""
        return cls(
            url=config.url,
            transports=list(config.transports),
            socketio_path=config.socketio_path,
            reconnection=config.reconnection,
            reconnection_attempts=config.reconnection_attempts,
            reconnection_delay=config.reconnection_delay,
            reconnection_delay_max=config.reconnection_delay_max,
            connect_timeout=config.connect_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def url(self) -> str:
        return self._url

    @property
    def pending_sends(self) -> int:
        """Events queued while the transport is down."""
        return len(self._outbox)

    async def connect(self) -> None:
        """Connect to the runner, retrying per the reconnection policy."""
        self._closed = False
        try:
            await self._client.connect(
                self._url,
                transports=self._transports,
                socketio_path=self._socketio_path,
                wait_timeout=self._connect_timeout,
                retry=self._reconnection,
            )
        except SocketIOConnectionError as e:
            raise ChannelError(
                f"Failed to connect to runner at {self._url}: {e}", transport="socketio"
            ) from e
        logger.info("Connected to runner at %s", self._url)

    async def disconnect(self) -> None:
        """Close the connection and drop anything still queued."""
        self._closed = True
        if self._outbox:
            logger.warning("Dropping %d unsent events on disconnect", len(self._outbox))
            self._outbox.clear()
        await self._client.disconnect()
        self._connected = False

    def emit(self, event: str, data: dict[str, Any]) -> None:
        """Send ``event`` now, or queue it until the transport reconnects."""
        if self._closed:
            raise ChannelError(f"Channel closed; cannot send {event!r}", transport="socketio")
        if not self._connected:
            self._outbox.append((event, data))
            logger.debug("Queued %s until reconnect (%d pending)", event, len(self._outbox))
            return
        self._send(event, data)

    def _send(self, event: str, data: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise ChannelError(
                f"Cannot send {event!r} outside an event loop", transport="socketio"
            ) from e
        task = loop.create_task(self._client.emit(event, data))
        self._tasks.add(task)
        task.add_done_callback(self._on_sent)
        logger.debug("Sent %s", event)

    def _on_sent(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to send event to runner: %s", exc)

    def _relay(self, event: str):
        def handler(data: Any = None) -> None:
            self._dispatch(event, data)

        return handler

    def _on_connect(self) -> None:
        self._connected = True
        while self._outbox:
            event, data = self._outbox.popleft()
            self._send(event, data)
        self._dispatch(EVENT_CONNECT)

    def _on_disconnect(self, reason: Any = None) -> None:
        self._connected = False
        logger.warning("Disconnected from runner: %s", reason)
        self._dispatch(EVENT_DISCONNECT, str(reason or "transport close"))

    def _on_connect_error(self, data: Any = None) -> None:
        logger.warning("Connect error: %s", data)
        self._dispatch(EVENT_CONNECT_ERROR, data)
