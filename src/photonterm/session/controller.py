"""The session controller that drives one interactive run at a time.

Owns the execution lifecycle (idle -> running -> waiting for input ->
ended), reacts to inbound channel events, and exposes the read-only
session view that front ends render.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import ValidationError

from photonterm.channel.base import ChannelError, EventChannel
from photonterm.domain.models import (
    EVENT_CONNECT,
    EVENT_CONNECT_ERROR,
    EVENT_DISCONNECT,
    EVENT_EXEC_END,
    EVENT_EXEC_START,
    EVENT_STDIN,
    EVENT_STDIN_REQUEST,
    EVENT_STDOUT,
    ExecEndPayload,
    ExecStartPayload,
    SessionSnapshot,
    SessionState,
    StdinPayload,
    StdinRequestPayload,
    StdoutPayload,
    SuppressionEntry,
)
from photonterm.transcript.reconciler import TranscriptReconciler, merge_prompt_and_input

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionSnapshot], None]


class SessionController:
    """State machine for one interactive run against the remote runner.

    Every method runs to completion without awaiting anything: outbound
    events go through :meth:`EventChannel.emit` fire-and-forget, and
    inbound events arrive later as separate handler calls. Nothing here
    raises for unexpected event ordering; such events are logged and
    dropped.

    Example usage::

        controller = SessionController(channel)
        controller.subscribe(lambda snap: render(snap.transcript))
        controller.start("name = input('Name: ')\\nprint('Hi', name)")
        ...
        controller.submit_input("Ada\\n")
    """

    def __init__(
        self,
        channel: EventChannel | None = None,
        auto_indent: bool = True,
        default_prompt: str = "Input:",
        abort_notice: str = "[process aborted]",
        tag_runs: bool = False,
    ) -> None:
        self._channel: EventChannel | None = None
        self._auto_indent = auto_indent
        self._default_prompt = default_prompt
        self._abort_notice = abort_notice
        self._tag_runs = tag_runs

        self._reconciler = TranscriptReconciler()
        self._state = SessionState.IDLE
        self._transcript = ""
        self._pending_prompt: str | None = None
        self._last_prompt_seen: str | None = None
        self._generation = 0
        self._connected = False
        self._listeners: list[SessionListener] = []

        if channel is not None:
            self.attach(channel)

    @classmethod
    def from_config(cls, config: Any, channel: EventChannel | None = None) -> SessionController:
        """Build a controller from a ``SessionConfig``."""
        return cls(
            channel=channel,
            auto_indent=config.auto_indent,
            default_prompt=config.default_prompt,
            abort_notice=config.abort_notice,
            tag_runs=config.tag_runs,
        )

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def pending_prompt(self) -> str | None:
        return self._pending_prompt

    @property
    def last_prompt_seen(self) -> str | None:
        return self._last_prompt_seen

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self._state.is_active

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def suppression_queue(self) -> tuple[SuppressionEntry, ...]:
        return self._reconciler.queue

    def snapshot(self) -> SessionSnapshot:
        """Return an immutable copy of the state front ends may render."""
        return SessionSnapshot(
            state=self._state,
            transcript=self._transcript,
            pending_prompt=self._pending_prompt,
            generation=self._generation,
            connected=self._connected,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every change.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def attach(self, channel: EventChannel) -> None:
        """Route ``channel``'s inbound events to this controller."""
        self._channel = channel
        self._connected = channel.is_connected
        channel.on(EVENT_CONNECT, self.handle_connect)
        channel.on(EVENT_DISCONNECT, self.handle_disconnect)
        channel.on(EVENT_CONNECT_ERROR, self.handle_connect_error)
        channel.on(EVENT_STDOUT, self.handle_stdout)
        channel.on(EVENT_STDIN_REQUEST, self.handle_stdin_request)
        channel.on(EVENT_EXEC_END, self.handle_exec_end)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start(self, code: str, auto_indent: bool | None = None) -> None:
        """Start a fresh run of ``code``, discarding the previous transcript.

        Starting while a run is still active restarts it, as the web
        client's Restart button does: the old run is abandoned locally and
        a second ``exec_start`` is sent for the new one.
        """
        if self._state.is_active:
            logger.info("Restarting active run (generation %d)", self._generation)

        self._generation += 1
        self._transcript = ""
        self._reconciler.clear()
        self._pending_prompt = None
        self._last_prompt_seen = None
        self._state = SessionState.RUNNING

        payload = ExecStartPayload(
            code=code or "",
            auto_indent=self._auto_indent if auto_indent is None else auto_indent,
            run_id=self._generation if self._tag_runs else None,
        )
        logger.info(
            "Starting run %d (%d chars, auto_indent=%s)",
            self._generation, len(payload.code), payload.auto_indent,
        )
        if not self._emit(EVENT_EXEC_START, payload.to_wire()):
            self._state = SessionState.IDLE
        self._notify()

    def submit_input(self, text: str) -> None:
        """Answer the outstanding input request with ``text``.

        The answer is echoed into the transcript right away and queued for
        suppression, then forwarded verbatim to the runner.
        """
        if self._state is not SessionState.WAITING_FOR_INPUT:
            logger.warning("Ignoring input while %s", self._state.value)
            return

        clean = text[:-1] if text.endswith("\n") else text
        clean = clean[:-1] if clean.endswith("\r") else clean
        prompt = self._last_prompt_seen or self._pending_prompt

        self._reconciler.expect_echo(clean, prompt)
        self._transcript = merge_prompt_and_input(self._transcript, prompt, clean)
        self._pending_prompt = None
        self._state = SessionState.RUNNING

        self._emit(EVENT_STDIN, StdinPayload(text=text).to_wire())
        self._notify()

    def abort(self) -> bool:
        """Return control to the user without waiting for the runner.

        This is local only: the remote process may keep running and its
        late output is dropped while the session is idle.

        Returns:
            True if a run was aborted, False if there was nothing to abort.
        """
        if not self._state.is_active:
            logger.debug("Abort ignored while %s", self._state.value)
            return False

        self._generation += 1
        self._state = SessionState.IDLE
        self._pending_prompt = None
        self._transcript += self._reconciler.flush()
        self._reconciler.clear()
        self._append_line(self._abort_notice)
        logger.info("Run aborted locally (generation now %d)", self._generation)
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def handle_connect(self) -> None:
        self._connected = True
        self._append_line("✓ Connected to runner")
        self._notify()

    def handle_disconnect(self, reason: Any = None) -> None:
        self._connected = False
        self._append_line(f"! Disconnected: {reason}")
        self._notify()

    def handle_connect_error(self, error: Any = None) -> None:
        if isinstance(error, dict):
            message = error.get("message") or error
        else:
            message = getattr(error, "message", None) or error
        self._append_line(f"× Connect error: {message}")
        self._notify()

    def handle_stdout(self, data: Any = None) -> None:
        payload = self._parse(StdoutPayload, data)
        if payload is None or not self._accepts(EVENT_STDOUT, payload):
            return

        chunk = self._reconciler.feed(payload.text)
        if chunk:
            self._transcript += chunk
            self._notify()

    def handle_stdin_request(self, data: Any = None) -> None:
        payload = self._parse(StdinRequestPayload, data)
        if payload is None or not self._accepts(EVENT_STDIN_REQUEST, payload):
            return
        if self._state is SessionState.WAITING_FOR_INPUT:
            logger.warning(
                "Protocol violation: stdin_request %r while still waiting on %r",
                payload.prompt, self._pending_prompt,
            )
            return

        self._transcript += self._reconciler.flush()
        prompt = payload.prompt or self._default_prompt
        self._pending_prompt = prompt
        self._last_prompt_seen = prompt
        self._state = SessionState.WAITING_FOR_INPUT
        logger.debug("Runner requested input: %r", prompt)
        self._notify()

    def handle_exec_end(self, data: Any = None) -> None:
        payload = self._parse(ExecEndPayload, data)
        if payload is None or not self._accepts(EVENT_EXEC_END, payload):
            return

        self._transcript += self._reconciler.flush()
        self._reconciler.clear()
        self._pending_prompt = None
        self._state = SessionState.ENDED
        logger.info("Run %d ended", self._generation)
        self._notify()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse(self, model: type, data: Any) -> Any:
        try:
            return model.parse(data)
        except ValidationError as e:
            logger.warning("Dropping malformed %s payload: %s", model.__name__, e)
            return None

    def _accepts(self, event: str, payload: Any) -> bool:
        """Whether an inbound run event belongs to the current run."""
        if not self._state.is_active:
            logger.warning("Protocol violation: %s while %s, ignored", event, self._state.value)
            return False
        if self._tag_runs and payload.run_id is not None and payload.run_id != self._generation:
            logger.info(
                "Dropping %s for stale run %s (current %d)", event, payload.run_id, self._generation
            )
            return False
        return True

    def _append_line(self, line: str) -> None:
        """Append an informational line, starting it on a fresh line.

        Held output was delivered before the line, so it is released first.
        """
        self._transcript += self._reconciler.flush()
        if self._transcript and not self._transcript.endswith("\n"):
            self._transcript += "\n"
        self._transcript += line + "\n"

    def _emit(self, event: str, data: dict[str, Any]) -> bool:
        if self._channel is None:
            logger.warning("No channel attached; dropping %s", event)
            return True
        try:
            self._channel.emit(event, data)
        except ChannelError as e:
            logger.error("Could not send %s: %s", event, e)
            self._append_line(f"× Send failed: {e}")
            return False
        return True

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener failed")
