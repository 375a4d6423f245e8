"""Query a body from JPL Horizons and print it as a PlaneworldML object."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import IO, Sequence

from ..errors import ConfigurationError, OrbitlinkError
from ..orbit_conversion import REQUIRED_ELEMENTS, ConversionError, elements_to_state
from ..planeworld_xml import body_from_record, render_body
from ..session_config import SessionConfig, load_session_config
from ..session_script import ResultRecord
from .session_driver import query_body

LOGGER = logging.getLogger(__name__)

EXIT_CONFIGURATION = 1
EXIT_SESSION = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed arguments for the query CLI."""

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("body", help="Body name, e.g. earth or moon")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML file with [horizons], [terminal] and [ephemeris] tables",
    )
    parser.add_argument("--host", default=None, help="Override the Horizons host")
    parser.add_argument("--port", type=int, default=None, help="Override the port")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds of remote silence tolerated before aborting",
    )
    parser.add_argument("--start", default=None, help="First ephemeris date")
    parser.add_argument("--stop", default=None, help="Last ephemeris date")
    parser.add_argument("--step", default=None, help="Ephemeris output interval")
    parser.add_argument(
        "--center", default=None, help="Coordinate center for the elements"
    )
    parser.add_argument(
        "--format",
        choices=("xml", "json"),
        default="xml",
        help="Emit a PlaneworldML document (default) or the raw record as JSON",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the document to this path instead of stdout",
    )
    parser.add_argument(
        "--partial",
        action="store_true",
        help="Print whatever was collected when the session fails",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SessionConfig:
    """Load ``--config`` (if any) and apply command-line overrides."""

    config = SessionConfig()
    if args.config is not None:
        if not args.config.is_file():
            raise ConfigurationError(f"configuration file not found: {args.config}")
        config = load_session_config(args.config)
    return config.with_overrides(
        host=args.host,
        port=args.port,
        timeout=args.timeout,
        center=args.center,
        start=args.start,
        stop=args.stop,
        step=args.step,
    )


def render_record(record: ResultRecord, name: str, output_format: str) -> str:
    """Serialize ``record`` in the requested format."""

    if output_format == "json":
        return json.dumps(record.as_dict(), indent=2, sort_keys=True) + "\n"
    state = None
    # A record that expected elements must convert, even if none were found.
    if any(
        field in record or field in record.missing for field in REQUIRED_ELEMENTS
    ):
        state = elements_to_state(record.values)
    return render_body(body_from_record(name, record.values, state))


def _emit(text: str, output: Path | None, stream: IO[str]) -> None:
    if output is None:
        stream.write(text)
        stream.flush()
        return
    output.write_text(text, encoding="utf-8")
    LOGGER.info("wrote %s", output)


def main(
    argv: Sequence[str] | None = None,
    *,
    stdout: IO[str] = sys.stdout,
    stderr: IO[str] = sys.stderr,
) -> int:
    """Entry point for the ``orbitlink`` command."""

    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        config = build_config(args)
        config.body_table().resolve(args.body)
    except ConfigurationError as exc:
        stderr.write(f"orbitlink: {exc}\n")
        return EXIT_CONFIGURATION

    try:
        record = asyncio.run(
            query_body(args.body, config, partial_results=args.partial)
        )
    except OrbitlinkError as exc:
        stderr.write(f"orbitlink: {exc}\n")
        if args.partial and exc.record is not None:
            _emit(render_record(exc.record, args.body, "json"), args.output, stdout)
        return EXIT_SESSION

    try:
        document = render_record(record, args.body.strip().lower(), args.format)
    except ConversionError as exc:
        stderr.write(f"orbitlink: {exc}\n")
        return EXIT_SESSION
    _emit(document, args.output, stdout)
    return 0


__all__ = ["build_config", "main", "parse_args", "render_record"]


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(main())
