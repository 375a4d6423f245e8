"""Incremental telnet framing decoder used by the Horizons connection.

Only the subset of RFC 854 that the Horizons service exercises is handled:
option negotiation commands, subnegotiation blocks, and escaped ``IAC`` data
bytes.  The single option we agree to is NAWS (RFC 1073), answered with a
fixed window size so that the remote pager does not wrap its tables.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from typing import List

from .errors import ProtocolError

LOGGER = logging.getLogger(__name__)

CR = 13
LF = 10
DEFAULT_WINDOW_COLUMNS = 80
DEFAULT_WINDOW_ROWS = 100


class TelnetCommand(IntEnum):
    """Command bytes that may follow ``IAC``."""

    SE = 240
    NOP = 241
    DM = 242
    BRK = 243
    IP = 244
    AO = 245
    AYT = 246
    EC = 247
    EL = 248
    GA = 249
    SB = 250
    WILL = 251
    WONT = 252
    DO = 253
    DONT = 254
    IAC = 255


class TelnetOption(IntEnum):
    """Option identifiers the Horizons server is known to negotiate."""

    ECHO = 1
    SUPPRESS_GO_AHEAD = 3
    TERMINAL_TYPE = 24
    NAWS = 31


_NEGOTIATION_COMMANDS = frozenset(
    {TelnetCommand.WILL, TelnetCommand.WONT, TelnetCommand.DO, TelnetCommand.DONT}
)


class _DecodeState(Enum):
    DATA = auto()
    COMMAND = auto()
    OPTION = auto()
    SUBNEGOTIATION_OPTION = auto()
    SUBNEGOTIATION_DATA = auto()
    SUBNEGOTIATION_IAC = auto()


@dataclass(frozen=True, slots=True)
class TelnetChunk:
    """Result of decoding one inbound chunk."""

    text: str
    replies: tuple[bytes, ...] = ()


@dataclass(frozen=True, slots=True)
class UnhandledNegotiation:
    """A negotiation request the codec chose not to answer."""

    command: int
    option: int | None

    def describe(self) -> str:
        parts = ["IAC", command_name(self.command)]
        if self.option is not None:
            parts.append(option_name(self.option))
        return " ".join(parts)


def command_name(value: int) -> str:
    try:
        return TelnetCommand(value).name
    except ValueError:
        return str(value)


def option_name(value: int) -> str:
    try:
        return TelnetOption(value).name
    except ValueError:
        return str(value)


def escape(data: bytes) -> bytes:
    """Double every ``IAC`` byte so ``data`` survives as telnet payload."""

    iac = bytes([TelnetCommand.IAC])
    return data.replace(iac, iac + iac)


def encode_window_size(columns: int, rows: int) -> bytes:
    """Return the NAWS subnegotiation block announcing ``columns`` x ``rows``."""

    for label, value in (("columns", columns), ("rows", rows)):
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"window {label} must fit in 16 bits, got {value}")
    payload = columns.to_bytes(2, "big") + rows.to_bytes(2, "big")
    return (
        bytes([TelnetCommand.IAC, TelnetCommand.SB, TelnetOption.NAWS])
        + escape(payload)
        + bytes([TelnetCommand.IAC, TelnetCommand.SE])
    )


def decode_data_byte(byte: int) -> str:
    """Map one data byte to text, marking stray control bytes as ``[n]``."""

    if byte < 32 and byte not in (CR, LF):
        return f"[{byte}]"
    return chr(byte)


class TelnetCodec:
    """Split an inbound byte stream into readable text and negotiation replies."""

    def __init__(
        self,
        *,
        window_columns: int = DEFAULT_WINDOW_COLUMNS,
        window_rows: int = DEFAULT_WINDOW_ROWS,
    ) -> None:
        self.window_columns = window_columns
        self.window_rows = window_rows
        self.unhandled: List[UnhandledNegotiation] = []
        self._state = _DecodeState.DATA
        self._command: int | None = None
        self._subnegotiation_option: int | None = None
        self._subnegotiation_payload = bytearray()

    @property
    def pending(self) -> bool:
        """Return ``True`` while a command or subnegotiation is half read."""

        return self._state is not _DecodeState.DATA

    def feed(self, data: bytes) -> TelnetChunk:
        """Decode ``data`` continuing from any sequence left open by earlier calls."""

        text: List[str] = []
        replies: List[bytes] = []
        for byte in data:
            state = self._state
            if state is _DecodeState.DATA:
                if byte == TelnetCommand.IAC:
                    self._state = _DecodeState.COMMAND
                else:
                    text.append(decode_data_byte(byte))
            elif state is _DecodeState.COMMAND:
                self._handle_command(byte, text)
            elif state is _DecodeState.OPTION:
                command = self._command
                if command is not None:
                    replies.extend(self._negotiate(command, byte))
                self._command = None
                self._state = _DecodeState.DATA
            elif state is _DecodeState.SUBNEGOTIATION_OPTION:
                self._subnegotiation_option = byte
                self._subnegotiation_payload.clear()
                self._state = _DecodeState.SUBNEGOTIATION_DATA
            elif state is _DecodeState.SUBNEGOTIATION_DATA:
                if byte == TelnetCommand.IAC:
                    self._state = _DecodeState.SUBNEGOTIATION_IAC
                else:
                    self._subnegotiation_payload.append(byte)
            else:
                self._handle_subnegotiation_iac(byte)
        return TelnetChunk("".join(text), tuple(replies))

    def finish(self) -> None:
        """Signal end of stream; raise if it stopped inside a telnet sequence."""

        if not self.pending:
            return
        state = self._state
        self._reset()
        if state in (
            _DecodeState.SUBNEGOTIATION_OPTION,
            _DecodeState.SUBNEGOTIATION_DATA,
            _DecodeState.SUBNEGOTIATION_IAC,
        ):
            raise ProtocolError("stream ended inside an unterminated subnegotiation")
        raise ProtocolError("stream ended inside a telnet command")

    def window_size_reply(self) -> bytes:
        return encode_window_size(self.window_columns, self.window_rows)

    # Decoder helpers ----------------------------------------------------

    def _handle_command(self, byte: int, text: List[str]) -> None:
        if byte == TelnetCommand.IAC:
            text.append(chr(byte))
            self._state = _DecodeState.DATA
        elif byte in _NEGOTIATION_COMMANDS:
            self._command = byte
            self._state = _DecodeState.OPTION
        elif byte == TelnetCommand.SB:
            self._state = _DecodeState.SUBNEGOTIATION_OPTION
        else:
            self._record_unhandled(byte, None)
            self._state = _DecodeState.DATA

    def _handle_subnegotiation_iac(self, byte: int) -> None:
        option = self._subnegotiation_option
        if byte == TelnetCommand.IAC:
            self._subnegotiation_payload.append(byte)
            self._state = _DecodeState.SUBNEGOTIATION_DATA
            return
        if byte == TelnetCommand.SE:
            LOGGER.debug(
                "ignoring subnegotiation %s (%d payload bytes)",
                option_name(option) if option is not None else "?",
                len(self._subnegotiation_payload),
            )
        else:
            LOGGER.warning(
                "malformed subnegotiation %s terminated by IAC %s",
                option_name(option) if option is not None else "?",
                command_name(byte),
            )
        self._reset()

    def _negotiate(self, command: int, option: int) -> List[bytes]:
        if command == TelnetCommand.DO and option == TelnetOption.NAWS:
            LOGGER.debug(
                "negotiating window size %dx%d", self.window_columns, self.window_rows
            )
            return [
                bytes([TelnetCommand.IAC, TelnetCommand.WILL, TelnetOption.NAWS]),
                self.window_size_reply(),
            ]
        self._record_unhandled(command, option)
        return []

    def _record_unhandled(self, command: int, option: int | None) -> None:
        event = UnhandledNegotiation(command, option)
        self.unhandled.append(event)
        LOGGER.debug("unhandled telnet command: %s", event.describe())

    def _reset(self) -> None:
        self._state = _DecodeState.DATA
        self._command = None
        self._subnegotiation_option = None
        self._subnegotiation_payload.clear()


__all__ = [
    "TelnetChunk",
    "TelnetCodec",
    "TelnetCommand",
    "TelnetOption",
    "UnhandledNegotiation",
    "command_name",
    "decode_data_byte",
    "encode_window_size",
    "escape",
    "option_name",
]
