"""Load Horizons session settings from TOML files."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping

import tomllib

from .bodies import BodyTable
from .errors import ConfigurationError
from .session_script import DEFAULT_CENTER, EphemerisWindow
from .telnet_codec import DEFAULT_WINDOW_COLUMNS, DEFAULT_WINDOW_ROWS

DEFAULT_HOST = "horizons.jpl.nasa.gov"
DEFAULT_PORT = 6775
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class SessionConfig:
    """Connection, terminal and query settings for one Horizons run."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    window_columns: int = DEFAULT_WINDOW_COLUMNS
    window_rows: int = DEFAULT_WINDOW_ROWS
    window: EphemerisWindow = field(default_factory=EphemerisWindow)
    center: str = DEFAULT_CENTER
    body_overrides: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "body_overrides", dict(self.body_overrides))

    def body_table(self) -> BodyTable:
        return BodyTable.with_overrides(self.body_overrides)

    def with_overrides(self, **changes: Any) -> "SessionConfig":
        """Return a copy with every non-``None`` entry of ``changes`` applied."""

        window_changes = {
            key: changes.pop(key)
            for key in ("start", "stop", "step")
            if key in changes
        }
        window_changes = {k: v for k, v in window_changes.items() if v is not None}
        applied = {key: value for key, value in changes.items() if value is not None}
        if window_changes:
            applied["window"] = replace(self.window, **window_changes)
        config = replace(self, **applied)
        _validate(config)
        return config


def load_session_config(config_path: Path) -> SessionConfig:
    """Parse and validate the session configuration at ``config_path``."""

    try:
        with config_path.open("rb") as stream:
            data = tomllib.load(stream)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{config_path}: {exc}") from exc

    horizons = _section(data, "horizons")
    terminal = _section(data, "terminal")
    ephemeris = _section(data, "ephemeris")
    bodies = _parse_bodies(data.get("bodies", {}))

    defaults = EphemerisWindow()
    window = EphemerisWindow(
        start=_coerce_text(ephemeris, "ephemeris.start", "start", defaults.start),
        stop=_coerce_text(ephemeris, "ephemeris.stop", "stop", defaults.stop),
        step=_coerce_text(ephemeris, "ephemeris.step", "step", defaults.step),
    )
    config = SessionConfig(
        host=_coerce_text(horizons, "horizons.host", "host", DEFAULT_HOST),
        port=_coerce_int(horizons, "horizons.port", "port", DEFAULT_PORT),
        timeout=_coerce_float(horizons, "horizons.timeout", "timeout", DEFAULT_TIMEOUT),
        window_columns=_coerce_int(
            terminal, "terminal.columns", "columns", DEFAULT_WINDOW_COLUMNS
        ),
        window_rows=_coerce_int(terminal, "terminal.rows", "rows", DEFAULT_WINDOW_ROWS),
        window=window,
        center=_coerce_text(ephemeris, "ephemeris.center", "center", DEFAULT_CENTER),
        body_overrides=bodies,
    )
    _validate(config)
    return config


def _validate(config: SessionConfig) -> None:
    if not config.host:
        raise ConfigurationError("horizons.host must not be empty")
    if not 0 < config.port < 65536:
        raise ConfigurationError(f"horizons.port {config.port} outside 1-65535")
    if config.timeout <= 0:
        raise ConfigurationError("horizons.timeout must be positive")
    for label, value in (
        ("terminal.columns", config.window_columns),
        ("terminal.rows", config.window_rows),
    ):
        if not 0 < value <= 0xFFFF:
            raise ConfigurationError(f"{label} {value} outside 1-65535")


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"[{name}] section must be a table")
    return section


def _parse_bodies(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("[bodies] section must map names to Horizons ids")
    bodies: Dict[str, int] = {}
    for name, raw_id in raw.items():
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raise ConfigurationError(f"bodies.{name} must be an integer Horizons id")
        bodies[str(name)] = raw_id
    return bodies


def _coerce_text(section: Mapping[str, Any], label: str, key: str, default: str) -> str:
    value = section.get(key, default)
    # TOML parses bare ``2014-05-13`` as a date.
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise ConfigurationError(f"{label} must be a string")
    return value.strip()


def _coerce_int(section: Mapping[str, Any], label: str, key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigurationError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ConfigurationError(f"{label} must be an integer") from exc
    raise ConfigurationError(f"{label} must be an integer")


def _coerce_float(
    section: Mapping[str, Any], label: str, key: str, default: float
) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{label} must be a number")
    return float(value)


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "SessionConfig",
    "load_session_config",
]
