"""Text accumulator with a single suspend-until-match read."""

from __future__ import annotations

import re
from typing import Callable, Pattern, Union

from .errors import PendingReadError

PatternLike = Union[str, Pattern[str]]
Continuation = Callable[[str], None]


def compile_pattern(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


class PatternBuffer:
    """Buffer decoded text and hand out prefixes that end in a pattern match.

    Every :meth:`append` re-scans the whole buffer, which is fine for the
    prompt-sized chunks exchanged with Horizons.
    """

    def __init__(self) -> None:
        self._text = ""
        self._pattern: Pattern[str] | None = None
        self._continuation: Continuation | None = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def pending(self) -> bool:
        return self._continuation is not None

    def append(self, text: str) -> None:
        """Add ``text`` to the tail and try to satisfy the pending read."""

        if not text:
            return
        self._text += text
        self._try_resolve()

    def request_until(self, pattern: PatternLike, continuation: Continuation) -> None:
        """Call ``continuation`` with the text up to and including ``pattern``.

        Fires immediately when the buffer already matches; otherwise on the
        first append that produces a match.
        """

        if self._continuation is not None:
            raise PendingReadError("a read is already pending on this buffer")
        self._pattern = compile_pattern(pattern)
        self._continuation = continuation
        self._try_resolve()

    def cancel(self) -> None:
        """Drop the pending read without firing it."""

        self._pattern = None
        self._continuation = None

    def drain(self) -> str:
        """Return and discard everything buffered."""

        text, self._text = self._text, ""
        return text

    def _try_resolve(self) -> None:
        pattern = self._pattern
        continuation = self._continuation
        if pattern is None or continuation is None:
            return
        match = pattern.search(self._text)
        if match is None:
            return
        end = match.end()
        prefix, self._text = self._text[:end], self._text[end:]
        # Clear before firing so the continuation may register the next read.
        self._pattern = None
        self._continuation = None
        continuation(prefix)


__all__ = ["PatternBuffer", "PatternLike", "compile_pattern"]
