"""Transcript reconciliation for interactive runs.

Remote output arrives in arbitrarily chunked fragments, and the runner
may echo back input that the client already rendered optimistically.
This module normalizes fragments and elides those echoes before they
reach the transcript, so every line shows up exactly once and nothing
already rendered is ever taken back.
"""

from __future__ import annotations

import logging
import re
from collections import deque

from photonterm.domain.models import SuppressionEntry

logger = logging.getLogger(__name__)

# Horizontal whitespace only; a match must never run across a line break.
_HSPACE = r"[^\S\n]*"


def normalize_newlines(text: str) -> str:
    """Convert ``\\r\\n`` and lone ``\\r`` terminators to ``\\n``."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def merge_prompt_and_input(transcript: str, prompt: str | None, user_text: str) -> str:
    """Return ``transcript`` with the user's answer echoed after its prompt.

    When the transcript already ends with the prompt on its own line, the
    answer is joined onto that line the way a terminal shows typed input.
    Otherwise a new ``"<prompt> <answer>"`` line (or just the answer when
    there is no prompt) is appended.

    Args:
        transcript: Current transcript text.
        prompt: Prompt that requested the input, if any.
        user_text: Submitted text; trailing line terminators are ignored.

    Returns:
        The new transcript. Unchanged when the answer is empty.
    """
    user = user_text.rstrip("\r\n")
    if not user:
        return transcript

    prompt_text = (prompt or "").rstrip()
    if prompt_text:
        tail = re.compile(rf"(?:^|(?<=\n)){re.escape(prompt_text)}{_HSPACE}\Z")
        match = tail.search(transcript)
        if match:
            return f"{transcript[:match.start()]}{prompt_text} {user}\n"
        line = f"{prompt_text} {user}\n"
    else:
        line = f"{user}\n"

    if transcript and not transcript.endswith("\n"):
        line = "\n" + line
    return transcript + line


def _line_pattern(*parts: str) -> re.Pattern[str]:
    """Compile a pattern matching one whole line made of ``parts``.

    Parts are literal text separated by optional horizontal whitespace.
    The match includes the line terminator so removing it leaves no
    blank line behind.
    """
    body = _HSPACE.join(re.escape(part) for part in parts)
    return re.compile(rf"^{_HSPACE}{body}{_HSPACE}(?:\n|\Z)", re.MULTILINE)


def _is_line_prefix(text: str, parts: tuple[str, ...]) -> bool:
    """Whether ``text`` could still grow into a line made of ``parts``."""
    if not text.strip():
        return False
    rest = text.lstrip()
    for index, part in enumerate(parts):
        if index:
            rest = rest.lstrip()
        if len(rest) <= len(part):
            return part.startswith(rest)
        if not rest.startswith(part):
            return False
        rest = rest[len(part):]
    return not rest.strip()


def _echo_shapes(entry: SuppressionEntry) -> list[tuple[str, ...]]:
    """Line shapes the runner may use when echoing ``entry``, in match order."""
    token = entry.token.strip()
    prompt = (entry.prompt or "").strip()
    shapes: list[tuple[str, ...]] = []
    if prompt:
        if token:
            shapes.append((prompt, token))
        shapes.append((prompt,))
    if token:
        shapes.append((token,))
    return shapes


class TranscriptReconciler:
    """Turns raw output fragments into text that is safe to append.

    Holds a FIFO queue of :class:`SuppressionEntry` for input that was
    already echoed locally. Each entry is consumed the first time its
    echo is found in remote output. While entries are queued, a trailing
    partial line that could still become one of their echoes is held back
    until the rest of the line arrives or :meth:`flush` is called.

    Example usage::

        reconciler = TranscriptReconciler()
        reconciler.expect_echo("Ada", prompt="Name: ")
        transcript += reconciler.feed("Name: A")   # held back -> ""
        transcript += reconciler.feed("da\\nHi Ada\\n")  # -> "Hi Ada\\n"
    """

    def __init__(self) -> None:
        self._queue: deque[SuppressionEntry] = deque()
        self._held = ""

    @property
    def queue(self) -> tuple[SuppressionEntry, ...]:
        """Entries still waiting for their remote echo, oldest first."""
        return tuple(self._queue)

    @property
    def held(self) -> str:
        """Raw text held back from the transcript until its line completes."""
        return self._held

    def expect_echo(self, token: str, prompt: str | None = None) -> SuppressionEntry | None:
        """Queue locally echoed input so its remote duplicate is dropped.

        Empty submissions have nothing to suppress and are not queued.
        """
        token = token.rstrip("\r\n")
        if not token:
            return None
        entry = SuppressionEntry(token=token, prompt=prompt or None)
        self._queue.append(entry)
        logger.debug("Expecting echo of %r (prompt=%r)", token[:50], entry.prompt)
        return entry

    def clear(self) -> None:
        """Drop queued entries and any held text."""
        if self._queue:
            logger.debug("Discarding %d unmatched suppression entries", len(self._queue))
        self._queue.clear()
        self._held = ""

    def feed(self, fragment: str) -> str:
        """Process one output fragment and return the text to append."""
        text = self._held + fragment
        self._held = ""

        # A "\r" may be the first half of a "\r\n" split across fragments
        carriage = ""
        if text.endswith("\r"):
            text, carriage = text[:-1], "\r"

        text = normalize_newlines(text)

        if self._queue:
            cut = text.rfind("\n") + 1
            partial = text[cut:]
            if partial and self._could_become_echo(partial):
                text = text[:cut]
                self._held = partial
        self._held += carriage

        if self._held:
            logger.debug("Holding %d chars until the line completes", len(self._held))
        return self._eliminate(text) if text else ""

    def flush(self) -> str:
        """Release held text, treating end of text as the end of its line."""
        text = normalize_newlines(self._held)
        self._held = ""
        return self._eliminate(text) if text else ""

    def _could_become_echo(self, partial: str) -> bool:
        return any(
            _is_line_prefix(partial, shape)
            for entry in self._queue
            for shape in _echo_shapes(entry)
        )

    def _eliminate(self, text: str) -> str:
        """Remove at most one echo line per shape for each queued entry."""
        if not self._queue:
            return text

        had_trailing_newline = text.endswith("\n")
        unmatched: deque[SuppressionEntry] = deque()
        for entry in self._queue:
            before = text
            for shape in _echo_shapes(entry):
                text = _line_pattern(*shape).sub("", text, count=1)
            if text == before:
                unmatched.append(entry)
            else:
                logger.debug("Suppressed remote echo of %r", entry.token[:50])
        self._queue = unmatched

        if text and had_trailing_newline and not text.endswith("\n"):
            text += "\n"
        return text
