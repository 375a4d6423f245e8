"""Exception taxonomy shared by the Horizons session engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - only imported for type checking
    from .session_script import ResultRecord


class OrbitlinkError(RuntimeError):
    """Base class for failures that abort a session run."""

    def __init__(
        self,
        message: str,
        *,
        step: int | None = None,
        step_description: str | None = None,
        record: "ResultRecord | None" = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.step_description = step_description
        self.record = record

    def __str__(self) -> str:
        message = super().__str__()
        if self.step is None:
            return message
        if self.step_description:
            return f"{message} (step {self.step}: {self.step_description})"
        return f"{message} (step {self.step})"


class TransportError(OrbitlinkError):
    """Raised when the connection cannot be opened or is reset by the peer."""


class SessionTimeoutError(OrbitlinkError, TimeoutError):
    """Raised when the remote service stays silent past the inactivity window."""


class ProtocolError(OrbitlinkError):
    """Raised when the remote closes early or leaves a telnet sequence open."""


class ConfigurationError(OrbitlinkError, ValueError):
    """Raised for unknown bodies or invalid configuration before connecting."""


class PendingReadError(RuntimeError):
    """Raised when a second read is registered while one is still pending."""


__all__ = [
    "ConfigurationError",
    "OrbitlinkError",
    "PendingReadError",
    "ProtocolError",
    "SessionTimeoutError",
    "TransportError",
]
