"""Interpret a :class:`SessionScript` against a live telnet connection."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto

from ..bodies import Body
from ..errors import OrbitlinkError, ProtocolError, SessionTimeoutError
from ..extraction import DEFAULT_EXTRACTOR, FieldExtractor
from ..session_config import SessionConfig
from ..session_script import (
    AwaitStep,
    ResultRecord,
    ResultRecordBuilder,
    SessionScript,
    WriteStep,
    build_elements_script,
    build_physical_script,
)
from ..telnet_codec import TelnetCodec
from .transports import Connector, RemoteClosed, TelnetConnection, open_telnet_connection

LOGGER = logging.getLogger(__name__)


class SessionState(Enum):
    """Forward-only lifecycle of a :class:`SessionDriver` run."""

    IDLE = auto()
    NEGOTIATING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()


class SessionDriver:
    """Run one script to completion over one connection.

    Steps execute strictly in order; a write is drained before the following
    await is registered, so at most one read is ever pending.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        extractor: FieldExtractor = DEFAULT_EXTRACTOR,
        partial_results: bool = False,
    ) -> None:
        self.timeout = timeout
        self.extractor = extractor
        self.partial_results = partial_results
        self.state = SessionState.IDLE
        self.step_index: int | None = None

    async def run(
        self,
        script: SessionScript,
        connection: TelnetConnection,
        *,
        body: str | None = None,
    ) -> ResultRecord:
        if self.state is not SessionState.IDLE:
            raise RuntimeError("a SessionDriver runs exactly one script")
        builder = ResultRecordBuilder(body=body, expected=script.expected_fields)
        connection.open()
        self.state = SessionState.NEGOTIATING
        LOGGER.debug("running script %s (%d steps)", script.name, len(script))
        try:
            for index, step in enumerate(script):
                self.step_index = index
                LOGGER.debug("step %d: %s", index, step.describe())
                if isinstance(step, WriteStep):
                    await asyncio.wait_for(connection.write(step.data), self.timeout)
                    continue
                text = await self._read(step, index, connection)
                self._extract(step, text, builder)
                if self.state is SessionState.NEGOTIATING:
                    self.state = SessionState.RUNNING
        except OrbitlinkError as exc:
            self._fail(exc, script, builder, connection)
            await connection.wait_closed()
            raise
        except asyncio.TimeoutError as exc:
            failure = SessionTimeoutError(
                f"no response within {self.timeout:g} seconds"
            )
            self._fail(failure, script, builder, connection)
            await connection.wait_closed()
            raise failure from exc
        except asyncio.CancelledError:
            self.state = SessionState.FAILED
            connection.abort()
            raise
        except Exception:
            self.state = SessionState.FAILED
            connection.abort()
            LOGGER.exception(
                "script %s failed at step %s", script.name, self.step_index
            )
            await connection.wait_closed()
            raise
        connection.close()
        await connection.wait_closed()
        self.state = SessionState.COMPLETED
        record = builder.freeze()
        LOGGER.info(
            "script %s completed with %d fields%s",
            script.name,
            len(record.values),
            f" (missing {', '.join(record.missing)})" if record.missing else "",
        )
        return record

    async def _read(
        self, step: AwaitStep, index: int, connection: TelnetConnection
    ) -> str:
        try:
            return await connection.read_until(step.pattern, timeout=self.timeout)
        except RemoteClosed as exc:
            if not step.final:
                raise ProtocolError(
                    "remote closed the connection before the final step"
                ) from exc
        # Closed while collecting the final block: keep what arrived.
        LOGGER.debug("remote closed during final step %d", index)
        return connection.buffer.drain()

    def _extract(self, step: AwaitStep, text: str, builder: ResultRecordBuilder) -> None:
        if not step.fields:
            return
        values = self.extractor.extract_fields(step.fields, text)
        builder.update(values)
        absent = [name for name in step.fields if name not in values]
        if absent:
            LOGGER.debug("fields absent from reply: %s", ", ".join(absent))

    def _fail(
        self,
        exc: OrbitlinkError,
        script: SessionScript,
        builder: ResultRecordBuilder,
        connection: TelnetConnection,
    ) -> None:
        self.state = SessionState.FAILED
        connection.abort()
        index = self.step_index
        if exc.step is None and index is not None:
            exc.step = index
            exc.step_description = script.steps[index].describe()
        if self.partial_results:
            exc.record = builder.freeze(complete=False)
        LOGGER.warning("script %s failed: %s", script.name, exc)


def script_for(body: Body, config: SessionConfig) -> SessionScript:
    """Select the linear script matching ``body`` before the run starts."""

    if body.has_orbit:
        return build_elements_script(
            body.horizons_id, window=config.window, center=config.center
        )
    return build_physical_script(body.horizons_id)


async def query_body(
    name: str,
    config: SessionConfig | None = None,
    *,
    connector: Connector | None = None,
    extractor: FieldExtractor = DEFAULT_EXTRACTOR,
    partial_results: bool = False,
) -> ResultRecord:
    """Look up ``name``, connect to Horizons and collect its record."""

    config = config or SessionConfig()
    body = config.body_table().resolve(name)
    script = script_for(body, config)
    codec = TelnetCodec(
        window_columns=config.window_columns, window_rows=config.window_rows
    )
    connection = await open_telnet_connection(
        config.host,
        config.port,
        timeout=config.timeout,
        codec=codec,
        connector=connector,
    )
    driver = SessionDriver(
        timeout=config.timeout, extractor=extractor, partial_results=partial_results
    )
    try:
        return await driver.run(script, connection, body=body.name)
    finally:
        if not connection.closed:
            connection.abort()
        await connection.wait_closed()


__all__ = ["SessionDriver", "SessionState", "query_body", "script_for"]
