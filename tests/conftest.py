"""Pytest configuration and scripted Horizons peers shared by the tests."""
from __future__ import annotations

import asyncio
import sys
from collections import deque
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Iterable, Sequence

import pytest

_SRC = Path(__file__).resolve().parents[1] / "src"
_src_str = str(_SRC)
if _SRC.exists() and _src_str not in sys.path:
    sys.path.insert(0, _src_str)


IAC, SB, SE, WILL, DO = 255, 250, 240, 251, 253

# WILL ECHO, WILL SUPPRESS-GO-AHEAD, DO NAWS, DO TERMINAL-TYPE.
HANDSHAKE = bytes([IAC, WILL, 1, IAC, WILL, 3, IAC, DO, 31, IAC, DO, 24])

BANNER = (
    b"\r\n JPL Horizons, version 3.75\r\n"
    b" Type `?' for brief intro, `?!' for more details\r\n"
    b" System news updated June 07, 2013\r\n\r\n"
    b"Horizons> "
)

EARTH_OBJECT_DATA = (
    b"\r\n*******************************************************************\r\n"
    b" Revised: July 31, 2013                  Earth                     399\r\n\r\n"
    b" GEOPHYSICAL PROPERTIES:\r\n"
    b" Mean radius, km          = 12345.0+-0.01   Mass, 10^23 kg = 5.43+-0.0006\r\n"
    b" Sidereal rot. period  =    1.0 d          Density, gm cm^-3  = 5.515\r\n"
    b"*******************************************************************\r\n"
    b"  Select ... [E]phemeris, [F]tp, [M]ail, [R]edisplay, ?, <cr>: "
)

EARTH_ELEMENTS = (
    b"\r\n$$SOE\r\n"
    b"2456790.500000000 = A.D. 2014-May-13 00:00:00.0000 (CT)\r\n"
    b" EC= 1.721107296809000E-02 QR= 1.468975648085326E+08 IN= 1.356373174557279E-03\r\n"
    b" OM= 1.245752380286001E+02 W = 3.361773303000747E+02 Tp=  2457024.308695656713\r\n"
    b" N = 1.142214289946943E-05 MA= 1.215741901404047E+02 TA= 1.232355108860352E+02\r\n"
    b" A = 1.494701057043585E+08 AD= 1.520426466001843E+08 PR= 3.151772860561238E+07\r\n"
    b"$$EOE\r\n"
    b">>> Select... [A]gain, [N]ew-case, [F]tp, [K]ermit, [M]ail, [R]edisplay, ? : "
)

SETTING_PROMPT = b"\r\n Observe, Elements, Vectors  [o,e,v] : "


def elements_replies(
    object_data: bytes = EARTH_OBJECT_DATA, elements: bytes = EARTH_ELEMENTS
) -> list[bytes]:
    """Replies in script order: object page, twelve setting prompts, elements."""

    return [object_data] + [SETTING_PROMPT] * 12 + [elements]


class ScriptedHorizonsWriter:
    """Stream writer that answers each newline-terminated command in turn."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        replies: Iterable[bytes],
        *,
        eof_after_replies: bool = False,
    ) -> None:
        # Why: feed the paired reader so the connection sees the remote's answer.
        self.reader = reader
        self.writes: list[bytes] = []
        self.closed = False
        self._replies = deque(replies)
        self._eof_after_replies = eof_after_replies

    def write(self, data: bytes) -> None:
        self.writes.append(data)
        if not data.endswith(b"\n") or self.closed:
            return
        if self._replies:
            self.reader.feed_data(self._replies.popleft())
        if not self._replies and self._eof_after_replies:
            self.reader.feed_eof()

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        return None

    @property
    def commands(self) -> list[str]:
        # Why: negotiation replies never end in a newline, commands always do.
        return [
            data.decode("latin-1") for data in self.writes if data.endswith(b"\n")
        ]

    @property
    def negotiation(self) -> bytes:
        return b"".join(data for data in self.writes if not data.endswith(b"\n"))


PeerFactory = Callable[..., tuple[asyncio.StreamReader, ScriptedHorizonsWriter]]


@pytest.fixture
def horizons_peer() -> PeerFactory:
    """Return a factory building a reader/writer pair around scripted replies.

    Must be called inside a running event loop.
    """

    def _build(
        replies: Sequence[bytes],
        *,
        greeting: bytes = HANDSHAKE + BANNER,
        eof_after_replies: bool = False,
    ) -> tuple[asyncio.StreamReader, ScriptedHorizonsWriter]:
        reader = asyncio.StreamReader()
        if greeting:
            reader.feed_data(greeting)
        writer = ScriptedHorizonsWriter(
            reader, replies, eof_after_replies=eof_after_replies
        )
        return reader, writer

    return _build


@pytest.fixture
def horizons_pages() -> SimpleNamespace:
    """Canned Horizons pages for a body of 12345 km radius and 5.43e23 kg."""

    return SimpleNamespace(
        object_data=EARTH_OBJECT_DATA,
        elements=EARTH_ELEMENTS,
        setting_prompt=SETTING_PROMPT,
        elements_replies=elements_replies,
    )
