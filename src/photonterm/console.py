"""Interactive terminal front end for a remote run.

Renders the session transcript to a local terminal as it grows, reads
answers from stdin when the runner asks for input, and aborts the run
on Ctrl-C.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
from typing import Awaitable, Callable, TextIO

from photonterm.channel.base import EventChannel
from photonterm.domain.models import SessionSnapshot, SessionState
from photonterm.session.controller import SessionController

logger = logging.getLogger(__name__)

LineReader = Callable[[], Awaitable["str | None"]]


class StdinLineReader:
    """Reads stdin line by line without blocking the event loop.

    Uses ``loop.add_reader`` where the platform supports it for the
    stream, and falls back to a worker thread otherwise (e.g. when stdin
    is a regular file).
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdin
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._fd: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def open(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            fd = self._stream.fileno()
            loop.add_reader(fd, self._on_readable)
        except (OSError, ValueError, NotImplementedError, AttributeError) as e:
            logger.debug("stdin not pollable (%s), reading in a worker thread", e)
            return
        self._fd = fd
        self._loop = loop

    def close(self) -> None:
        if self._fd is not None and self._loop is not None:
            self._loop.remove_reader(self._fd)
        self._fd = None

    async def readline(self) -> str | None:
        """Return the next line including its newline, or None at EOF."""
        if self._fd is None and self._lines.empty():
            line = await asyncio.get_running_loop().run_in_executor(None, self._stream.readline)
            return line or None
        return await self._lines.get()

    def _on_readable(self) -> None:
        data = os.read(self._fd, 4096)
        if not data:
            if self._buffer:
                self._lines.put_nowait(self._buffer)
                self._buffer = ""
            self._lines.put_nowait(None)
            self.close()
            return
        self._buffer += self._decoder.decode(data)
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._lines.put_nowait(line + "\n")


class ConsoleSession:
    """Runs one program interactively against the remote runner.

    Example usage::

        channel = SocketIOChannel(url="http://127.0.0.1:5001")
        controller = SessionController(channel)
        state = await ConsoleSession(controller, channel).run(source)
    """

    def __init__(
        self,
        controller: SessionController,
        channel: EventChannel,
        output: TextIO | None = None,
        read_line: LineReader | None = None,
    ) -> None:
        self._controller = controller
        self._channel = channel
        self._output = output or sys.stdout
        self._read_line = read_line
        self._shown = ""
        self._echoed_locally = False
        self._prompt_shown = False
        self._changed = asyncio.Event()

    async def run(self, code: str, auto_indent: bool | None = None) -> SessionState:
        """Connect, run ``code`` to completion or abort, then disconnect.

        Raises:
            ChannelError: If the runner cannot be reached.
        """
        stdin_reader: StdinLineReader | None = None
        read_line = self._read_line
        if read_line is None:
            stdin_reader = StdinLineReader()
            read_line = stdin_reader.readline

        async with self._channel:
            unsubscribe = self._controller.subscribe(self._on_change)
            self._install_interrupt()
            if stdin_reader is not None:
                stdin_reader.open()
            try:
                self._render(self._controller.snapshot())
                self._controller.start(code, auto_indent)
                await self._drive(read_line)
            finally:
                unsubscribe()
                self._remove_interrupt()
                if stdin_reader is not None:
                    stdin_reader.close()
        return self._controller.state

    async def _drive(self, read_line: LineReader) -> None:
        read_task: asyncio.Future[str | None] | None = None
        try:
            while self._controller.is_running:
                self._changed.clear()
                waiter = asyncio.ensure_future(self._changed.wait())
                pending = {waiter}

                if self._controller.state is SessionState.WAITING_FOR_INPUT:
                    self._show_prompt()
                    if read_task is None:
                        read_task = asyncio.ensure_future(read_line())
                    pending.add(read_task)

                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                waiter.cancel()

                if read_task is not None and read_task in done:
                    line = read_task.result()
                    read_task = None
                    self._answer(line)
        finally:
            if read_task is not None:
                read_task.cancel()

    def _answer(self, line: str | None) -> None:
        if line is None:
            logger.info("stdin closed while the program waits for input; aborting")
            self._controller.abort()
            return
        if self._controller.state is not SessionState.WAITING_FOR_INPUT:
            return
        # The terminal already echoed what the user typed
        self._echoed_locally = True
        self._prompt_shown = False
        self._controller.submit_input(line)

    def _show_prompt(self) -> None:
        if self._prompt_shown:
            return
        self._prompt_shown = True
        prompt = self._controller.pending_prompt or ""
        if prompt and not self._shown.endswith(prompt):
            self._write(prompt.rstrip() + " ")

    def _on_change(self, snapshot: SessionSnapshot) -> None:
        self._render(snapshot)
        self._changed.set()

    def _render(self, snapshot: SessionSnapshot) -> None:
        transcript = snapshot.transcript
        if self._echoed_locally:
            self._echoed_locally = False
            self._shown = transcript
            return
        if transcript.startswith(self._shown):
            self._write(transcript[len(self._shown):])
        elif transcript:
            self._write("\n" + transcript)
        self._shown = transcript

    def _write(self, text: str) -> None:
        if text:
            self._output.write(text)
            self._output.flush()

    def _install_interrupt(self) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, self._interrupt)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("SIGINT handler unavailable; Ctrl-C will not abort cleanly")

    def _remove_interrupt(self) -> None:
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError, ValueError):
            pass

    def _interrupt(self) -> None:
        if not self._controller.abort():
            self._changed.set()
