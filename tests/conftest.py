"""Shared test fixtures for the photonterm test suite.

Provides common fixtures used across unit tests: an in-memory event
channel that records what the controller sends and lets a test play the
runner's side, plus ready-made controllers.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator

import pytest

from photonterm.channel.base import ChannelError, EventChannel
from photonterm.session.controller import SessionController


class FakeChannel(EventChannel):
    """In-memory channel: records outbound events, replays inbound ones."""

    def __init__(self, connected: bool = True) -> None:
        super().__init__()
        self._connected = connected
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.fail_sends = False
        self.fail_connect = False
        self.responder: Callable[[str, dict[str, Any]], None] | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise ChannelError("connection refused", transport="fake")
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def emit(self, event: str, data: dict[str, Any]) -> None:
        if self.fail_sends:
            raise ChannelError("channel closed", transport="fake")
        self.sent.append((event, data))
        if self.responder is not None:
            self.responder(event, data)

    def fire(self, event: str, *args: Any) -> None:
        """Deliver an inbound event as if the runner had sent it."""
        self._dispatch(event, *args)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [data for event, data in self.sent if event == name]


# ---------------------------------------------------------------------------
# Logging Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Remove handlers installed by setup_logging so they never outlive a test."""
    yield
    logger = logging.getLogger("photonterm")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Channel Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_channel() -> FakeChannel:
    """A connected in-memory channel."""
    return FakeChannel()


# ---------------------------------------------------------------------------
# Session Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def controller(fake_channel: FakeChannel) -> SessionController:
    """An idle controller attached to ``fake_channel``."""
    return SessionController(fake_channel)


@pytest.fixture
def waiting_controller(controller: SessionController, fake_channel: FakeChannel) -> SessionController:
    """A controller whose run is blocked on ``input('Name: ')``."""
    controller.start("x = input('Name: ')")
    fake_channel.fire("stdin_request", {"prompt": "Name: "})
    return controller
