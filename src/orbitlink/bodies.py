"""Horizons identifiers for the bodies that can be queried."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping

from .errors import ConfigurationError


@dataclass(frozen=True)
class Body:
    """A queryable body and the Horizons record number that selects it."""

    name: str
    horizons_id: int
    has_orbit: bool = True


DEFAULT_BODIES: tuple[Body, ...] = (
    Body("sun", 10, has_orbit=False),
    Body("mercury", 199),
    Body("venus", 299),
    Body("earth", 399),
    Body("moon", 301),
    Body("mars", 499),
    Body("jupiter", 599),
    Body("saturn", 699),
    Body("uranus", 799),
    Body("neptune", 899),
    Body("pluto", 999),
)


class BodyTable:
    """Bidirectional name <-> identifier lookup built once."""

    def __init__(self, bodies: Iterable[Body] = DEFAULT_BODIES) -> None:
        by_name: Dict[str, Body] = {}
        by_id: Dict[int, Body] = {}
        for body in bodies:
            key = _normalise_name(body.name)
            by_name[key] = body
            by_id[body.horizons_id] = body
        self._by_name: Mapping[str, Body] = MappingProxyType(by_name)
        self._by_id: Mapping[int, Body] = MappingProxyType(by_id)

    @classmethod
    def with_overrides(cls, overrides: Mapping[str, int]) -> "BodyTable":
        """Return the default table extended or patched by ``overrides``."""

        merged = {_normalise_name(body.name): body for body in DEFAULT_BODIES}
        for name, horizons_id in overrides.items():
            key = _normalise_name(name)
            previous = merged.get(key)
            has_orbit = previous.has_orbit if previous is not None else True
            merged[key] = Body(key, int(horizons_id), has_orbit=has_orbit)
        return cls(merged.values())

    def resolve(self, name: str) -> Body:
        """Return the body registered as ``name`` or raise ``ConfigurationError``."""

        body = self._by_name.get(_normalise_name(name))
        if body is None:
            known = ", ".join(sorted(self._by_name))
            raise ConfigurationError(f"unknown body {name!r} (known: {known})")
        return body

    def name_for(self, horizons_id: int) -> str | None:
        body = self._by_id.get(horizons_id)
        return body.name if body is not None else None

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _normalise_name(name) in self._by_name


def _normalise_name(name: str) -> str:
    return name.strip().lower()


DEFAULT_BODY_TABLE = BodyTable()


__all__ = ["Body", "BodyTable", "DEFAULT_BODIES", "DEFAULT_BODY_TABLE"]
