"""Unit tests for the single-read pattern buffer."""

from __future__ import annotations

import re

import pytest

from orbitlink.errors import PendingReadError
from orbitlink.pattern_buffer import PatternBuffer


def test_request_resolves_immediately_when_text_already_matches() -> None:
    # Why: text buffered before the read is registered must satisfy it at once.
    buffer = PatternBuffer()
    buffer.append("banner\r\nHorizons> 399 echoed")
    captured: list[str] = []

    buffer.request_until("Horizons> ", captured.append)

    assert captured == ["banner\r\nHorizons> "]
    assert buffer.text == "399 echoed"
    assert not buffer.pending


def test_request_resolves_on_later_append() -> None:
    # Why: a prompt split across chunks resolves only once it is complete.
    buffer = PatternBuffer()
    captured: list[str] = []
    buffer.request_until(re.compile(r"\] : "), captured.append)

    buffer.append("Reference plane [eclip, frame, body ]")
    assert captured == []
    assert buffer.pending

    buffer.append(" : tail")
    assert captured == ["Reference plane [eclip, frame, body ] : "]
    assert buffer.text == "tail"


def test_leftmost_match_wins_and_remainder_is_kept() -> None:
    # Why: each read consumes up to the first match and leaves the rest for the next.
    buffer = PatternBuffer()
    buffer.append("one] : two] : three")
    captured: list[str] = []

    buffer.request_until(r"\] : ", captured.append)
    buffer.request_until(r"\] : ", captured.append)

    assert captured == ["one] : ", "two] : "]
    assert buffer.text == "three"


def test_second_registration_while_pending_is_rejected() -> None:
    # Why: only one read may wait on the buffer at a time.
    buffer = PatternBuffer()
    buffer.request_until("never", lambda text: None)
    with pytest.raises(PendingReadError):
        buffer.request_until("other", lambda text: None)


def test_continuation_may_register_the_next_read() -> None:
    # Why: chained reads are how the driver walks prompt after prompt.
    buffer = PatternBuffer()
    captured: list[str] = []

    def _first(text: str) -> None:
        captured.append(text)
        buffer.request_until("B", captured.append)

    buffer.request_until("A", _first)
    buffer.append("xAyBz")

    assert captured == ["xA", "yB"]
    assert buffer.text == "z"


def test_cancel_drops_pending_read_and_keeps_text() -> None:
    # Why: closing the connection cancels the read without losing buffered text.
    buffer = PatternBuffer()
    captured: list[str] = []
    buffer.request_until("prompt", captured.append)
    buffer.cancel()
    buffer.append("prompt")

    assert captured == []
    assert buffer.drain() == "prompt"
    assert buffer.text == ""
