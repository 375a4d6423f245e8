"""Asyncio telnet connection used by the Horizons session driver."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum, auto
from typing import Awaitable, Callable, Optional, Tuple

from ..errors import ProtocolError, SessionTimeoutError, TransportError
from ..pattern_buffer import PatternBuffer, PatternLike
from ..telnet_codec import TelnetCodec, escape

LOGGER = logging.getLogger(__name__)

StreamPair = Tuple[asyncio.StreamReader, asyncio.StreamWriter]
Connector = Callable[[str, int], Awaitable[StreamPair]]

READ_CHUNK_SIZE = 4096


class ConnectionState(Enum):
    """Lifecycle of a :class:`TelnetConnection`."""

    CONNECTING = auto()
    NEGOTIATING = auto()
    OPEN = auto()
    CLOSING = auto()
    CLOSED = auto()
    FAILED = auto()


class RemoteClosed(ConnectionError):
    """The peer closed the stream cleanly while a read was pending."""


class TelnetConnection:
    """Pump bytes from ``reader`` through a :class:`TelnetCodec` into a buffer.

    Negotiation replies produced by the codec are written back to ``writer``
    as they are decoded; readable text lands in :attr:`buffer` where
    :meth:`read_until` waits for prompts.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        codec: TelnetCodec | None = None,
        encoding: str = "latin-1",
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.codec = codec or TelnetCodec()
        self.encoding = encoding
        self.buffer = PatternBuffer()
        self.state = ConnectionState.CONNECTING
        self.last_activity = 0.0

        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._waiter: asyncio.Future[str] | None = None
        self._close_reason: BaseException | None = None
        self._closing = False

    @property
    def closed(self) -> bool:
        return self.state in (ConnectionState.CLOSED, ConnectionState.FAILED)

    # Lifecycle ----------------------------------------------------------

    def open(self) -> None:
        if self._loop is not None:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        self.last_activity = loop.time()
        self.state = ConnectionState.NEGOTIATING
        self._reader_task = loop.create_task(self._pump_reader())

    def close(self) -> None:
        """Close the stream and drop the pending read, if any."""

        self._shutdown(ConnectionState.CLOSED)

    def abort(self) -> None:
        """Close the stream after a failure."""

        self._shutdown(ConnectionState.FAILED)

    async def wait_closed(self) -> None:
        task = self._reader_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        with contextlib.suppress(ConnectionError, OSError):
            await self.writer.wait_closed()

    # I/O ----------------------------------------------------------------

    async def write(self, text: str) -> None:
        """Send ``text`` and wait until the transport has accepted it."""

        if self.closed or self._closing:
            raise TransportError("connection is closed")
        payload = escape(text.encode(self.encoding, errors="replace"))
        LOGGER.debug("sending %r", text)
        try:
            self.writer.write(payload)
            await self.writer.drain()
        except (ConnectionError, OSError) as exc:
            raise TransportError(f"write failed: {exc}") from exc

    async def read_until(
        self, pattern: PatternLike, *, timeout: Optional[float] = None
    ) -> str:
        """Return buffered text up to and including the next ``pattern`` match.

        ``timeout`` is an inactivity window: it restarts whenever bytes arrive.
        Raises :class:`RemoteClosed` when the peer hangs up first, or the
        failure that ended the stream.
        """

        loop = self._require_loop()
        future: asyncio.Future[str] = loop.create_future()

        def _resolve(text: str) -> None:
            if not future.done():
                future.set_result(text)

        self.buffer.request_until(pattern, _resolve)
        if not future.done() and self._close_reason is not None:
            self.buffer.cancel()
            raise self._close_reason
        self._waiter = future
        try:
            while not future.done():
                if timeout is None:
                    await asyncio.wait({future})
                    break
                remaining = self.last_activity + timeout - loop.time()
                if remaining <= 0:
                    raise SessionTimeoutError(
                        f"no data from remote within {timeout:g} seconds"
                    )
                await asyncio.wait({future}, timeout=remaining)
            text = future.result()
        finally:
            self._waiter = None
            if self.buffer.pending:
                self.buffer.cancel()
        self.last_activity = loop.time()
        return text

    # Internals ----------------------------------------------------------

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("connection not opened")
        return self._loop

    def _shutdown(self, final_state: ConnectionState) -> None:
        if self._closing:
            return
        self._closing = True
        self.state = ConnectionState.CLOSING
        task = self._reader_task
        if task is not None and not task.done():
            task.cancel()
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            waiter.cancel()
        self.buffer.cancel()
        with contextlib.suppress(ConnectionError, OSError):
            self.writer.close()
        self.state = final_state

    def _finish(self, reason: BaseException) -> None:
        if self._close_reason is None:
            self._close_reason = reason
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            waiter.set_exception(reason)
        self.buffer.cancel()

    async def _pump_reader(self) -> None:
        loop = self._require_loop()
        while True:
            try:
                data = await self.reader.read(READ_CHUNK_SIZE)
            except (ConnectionError, OSError) as exc:
                LOGGER.debug("read failed: %s", exc)
                failure = TransportError(f"connection lost: {exc}")
                failure.__cause__ = exc
                self._finish(failure)
                return
            if not data:
                self._on_end_of_stream()
                return
            self.last_activity = loop.time()
            chunk = self.codec.feed(data)
            if chunk.replies:
                try:
                    for reply in chunk.replies:
                        self.writer.write(reply)
                    await self.writer.drain()
                except (ConnectionError, OSError) as exc:
                    failure = TransportError(f"negotiation reply failed: {exc}")
                    failure.__cause__ = exc
                    self._finish(failure)
                    return
            if chunk.text:
                if self.state is ConnectionState.NEGOTIATING:
                    self.state = ConnectionState.OPEN
                self.buffer.append(chunk.text)

    def _on_end_of_stream(self) -> None:
        LOGGER.debug("remote closed the connection")
        try:
            self.codec.finish()
        except ProtocolError as exc:
            self._finish(exc)
            return
        self._finish(RemoteClosed("remote closed the connection"))


async def open_telnet_connection(
    host: str,
    port: int,
    *,
    timeout: float,
    codec: TelnetCodec | None = None,
    connector: Connector | None = None,
) -> TelnetConnection:
    """Connect to ``host``:``port`` and wrap the streams in a connection."""

    connect = connector or asyncio.open_connection
    LOGGER.info("connecting to %s:%d", host, port)
    deadline = asyncio.timeout(timeout)
    try:
        async with deadline:
            reader, writer = await connect(host, port)
    except TimeoutError as exc:
        # ETIMEDOUT from the socket is also a TimeoutError; only our deadline
        # counts as a session timeout.
        if deadline.expired():
            raise SessionTimeoutError(
                f"timed out connecting to {host}:{port} after {timeout:g} seconds"
            ) from exc
        raise TransportError(f"cannot connect to {host}:{port}: {exc}") from exc
    except OSError as exc:
        raise TransportError(f"cannot connect to {host}:{port}: {exc}") from exc
    return TelnetConnection(reader, writer, codec=codec)


__all__ = [
    "ConnectionState",
    "Connector",
    "RemoteClosed",
    "TelnetConnection",
    "open_telnet_connection",
]
