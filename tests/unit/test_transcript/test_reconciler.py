"""Tests for output normalization and remote echo suppression."""

from __future__ import annotations

import pytest

from photonterm.domain.models import SuppressionEntry
from photonterm.transcript.reconciler import TranscriptReconciler, normalize_newlines


@pytest.fixture
def reconciler() -> TranscriptReconciler:
    return TranscriptReconciler()


class TestNormalizeNewlines:
    def test_crlf_and_lone_cr(self) -> None:
        assert normalize_newlines("a\r\nb\rc\n") == "a\nb\nc\n"

    def test_plain_text_untouched(self) -> None:
        assert normalize_newlines("no breaks") == "no breaks"


class TestExpectEcho:
    def test_returns_queued_entry(self, reconciler: TranscriptReconciler) -> None:
        entry = reconciler.expect_echo("Ada\r\n", "Name: ")
        assert entry == SuppressionEntry(token="Ada", prompt="Name: ")
        assert reconciler.queue == (entry,)

    def test_empty_input_not_queued(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.expect_echo("\n", "Name: ") is None
        assert reconciler.queue == ()

    def test_empty_prompt_stored_as_none(self, reconciler: TranscriptReconciler) -> None:
        entry = reconciler.expect_echo("42", "")
        assert entry is not None
        assert entry.prompt is None

    def test_clear_drops_queue_and_held_text(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        reconciler.feed("Name: A")
        assert reconciler.held == "Name: A"
        reconciler.clear()
        assert reconciler.queue == ()
        assert reconciler.held == ""


class TestPassThrough:
    """Output with nothing queued is only normalized."""

    def test_fragments_returned_verbatim(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.feed("hello\nwor") == "hello\nwor"
        assert reconciler.feed("ld\n") == "ld\n"
        assert reconciler.held == ""

    def test_empty_fragment(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.feed("") == ""

    def test_crlf_normalized(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.feed("a\r\nb\r\n") == "a\nb\n"

    def test_lone_carriage_return_becomes_newline(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.feed("50%\r100%\n") == "50%\n100%\n"

    def test_crlf_split_across_fragments(self, reconciler: TranscriptReconciler) -> None:
        first = reconciler.feed("line one\r")
        assert first == "line one"
        assert reconciler.held == "\r"
        second = reconciler.feed("\nline two\n")
        assert first + second == "line one\nline two\n"

    def test_trailing_carriage_return_released_on_flush(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.feed("done\r") == "done"
        assert reconciler.flush() == "\n"


class TestSuppression:
    def test_exact_echo_removed(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Name: Ada\n") == ""
        assert reconciler.queue == ()

    def test_echo_followed_by_output(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Name: Ada\nHello, Ada!\n") == "Hello, Ada!\n"

    def test_echo_between_output_lines(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Hi\nName: Ada\nbye\n") == "Hi\nbye\n"

    def test_token_only_echo(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("42", "Guess: ")
        assert reconciler.feed("42\nToo low\n") == "Too low\n"
        assert reconciler.queue == ()

    def test_prompt_only_echo(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("42", "Guess: ")
        assert reconciler.feed("Guess: \nToo low\n") == "Too low\n"
        assert reconciler.queue == ()

    def test_echo_without_prompt(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("42")
        assert reconciler.feed("42\n") == ""

    def test_crlf_echo(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Name: Ada\r\n") == ""

    def test_surrounding_spaces_tolerated(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("  Name:   Ada  \n") == ""

    def test_prompt_with_regex_metacharacters(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("y", "Continue (y/n)? ")
        assert reconciler.feed("Continue (y/n)? y\nok\n") == "ok\n"

    def test_only_one_copy_removed(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("5", "n? ")
        assert reconciler.feed("5\n5\n") == "5\n"

    def test_entries_matched_in_order(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("a", "A? ")
        reconciler.expect_echo("b", "B? ")
        assert reconciler.feed("A? a\nB? b\nbye\n") == "bye\n"
        assert reconciler.queue == ()

    def test_unmatched_entry_stays_queued(self, reconciler: TranscriptReconciler) -> None:
        first = reconciler.expect_echo("a", "A? ")
        reconciler.expect_echo("b", "B? ")
        assert reconciler.feed("B? b\n") == ""
        assert reconciler.queue == (first,)
        assert reconciler.feed("a\n") == ""
        assert reconciler.queue == ()


class TestNonMatchingOutput:
    """Lines that only resemble an echo must never lose characters."""

    def test_longer_token_not_matched(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Adam\nName: Adam\n") == "Adam\nName: Adam\n"
        assert len(reconciler.queue) == 1

    def test_token_inside_a_line_not_matched(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("1")
        assert reconciler.feed("step 1\n") == "step 1\n"

    def test_unrelated_partial_line_not_held(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Loading") == "Loading"
        assert reconciler.held == ""

    def test_whitespace_only_partial_not_held(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("out\n    ") == "out\n    "
        assert reconciler.held == ""


class TestSplitFragments:
    """An echo split anywhere across two fragments is still removed once."""

    ECHO = "Name: Ada\n"

    @pytest.mark.parametrize("cut", range(1, len(ECHO)))
    def test_echo_split(self, reconciler: TranscriptReconciler, cut: int) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        out = reconciler.feed(self.ECHO[:cut]) + reconciler.feed(self.ECHO[cut:])
        assert out == ""
        assert reconciler.queue == ()

    @pytest.mark.parametrize("cut", range(1, len("Hi\nName: Ada\nbye\n")))
    def test_echo_split_with_surrounding_output(self, reconciler: TranscriptReconciler, cut: int) -> None:
        text = "Hi\nName: Ada\nbye\n"
        reconciler.expect_echo("Ada", "Name: ")
        out = reconciler.feed(text[:cut]) + reconciler.feed(text[cut:])
        assert out == "Hi\nbye\n"

    def test_crlf_echo_split_at_carriage_return(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Name: Ada\r") == ""
        assert reconciler.feed("\n") == ""
        assert reconciler.queue == ()


class TestFlush:
    def test_flush_releases_unmatched_text(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Na") == ""
        assert reconciler.flush() == "Na"
        assert reconciler.held == ""

    def test_flush_completes_echo_without_newline(self, reconciler: TranscriptReconciler) -> None:
        reconciler.expect_echo("Ada", "Name: ")
        assert reconciler.feed("Name: Ada") == ""
        assert reconciler.flush() == ""
        assert reconciler.queue == ()

    def test_flush_with_nothing_held(self, reconciler: TranscriptReconciler) -> None:
        assert reconciler.flush() == ""
