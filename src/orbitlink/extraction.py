"""Ordered regex rule chains that normalise Horizons free-text fields.

Horizons formats the same physical quantity differently depending on the body
being queried (``Mean radius, km = 6371.01+-0.02`` for Earth,
``Mean radius (km) = 2440(+-1)`` for Mercury, and so on).  Each logical field
therefore owns a :class:`RuleChain`: an ordered tuple of
:class:`ExtractionRule` entries where the first rule whose pattern matches
decides the value.  Transforms are pure functions of the captured groups.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Mapping, Match, Pattern

LOGGER = logging.getLogger(__name__)

SECONDS_PER_UNIT: Mapping[str, float] = {
    "d": 86400.0,
    "hr": 3600.0,
    "h": 3600.0,
}

_NUMBER = r"([0-9]+(?:\.[0-9]*)?|\.[0-9]+)"
_SIGNED_NUMBER = r"([-+]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+))"
_SCIENTIFIC = r"([-+]?[0-9]*\.?[0-9]+(?:[Ee][-+]?[0-9]+)?)"

Transform = Callable[..., float]


# Transforms -----------------------------------------------------------------


def plain_float(value: str) -> float:
    return float(value)


def km_to_meters(value: str) -> float:
    return float(value) * 1000.0


def power_of_ten(exponent: str, mantissa: str) -> float:
    """Combine ``mantissa`` x 10^``exponent`` textually before parsing."""

    return float(f"{mantissa}E{exponent}")


def period_to_rate(value: str, unit: str) -> float:
    """Convert a rotation period in days or hours into radians per second."""

    try:
        scale = SECONDS_PER_UNIT[unit.lower()]
    except KeyError as exc:
        raise ValueError(f"unsupported period unit {unit!r}") from exc
    seconds = float(value) * scale
    return 2.0 * math.pi / seconds


def _sidereal_day_rate(unit: str, value: str) -> float:
    return period_to_rate(value, unit)


# Rule containers ------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionRule:
    """A compiled pattern plus the transform applied to its groups."""

    pattern: Pattern[str]
    transform: Transform
    label: str = ""

    def match(self, text: str) -> Match[str] | None:
        return self.pattern.search(text)

    def apply(self, text: str) -> float | None:
        match = self.match(text)
        if match is None:
            return None
        return self.transform(*match.groups())


def rule(pattern: str, transform: Transform, label: str = "") -> ExtractionRule:
    return ExtractionRule(re.compile(pattern), transform, label or pattern)


@dataclass(frozen=True)
class RuleChain:
    """Ordered rules for one field; declaration order is precedence."""

    field: str
    rules: tuple[ExtractionRule, ...]

    def extract(self, text: str) -> float | None:
        """Return the value produced by the first rule that matches and converts.

        A rule whose transform rejects the captured text (a zero period, an
        unknown unit) is logged and skipped so later rules still get a chance.
        """

        for candidate in self.rules:
            match = candidate.match(text)
            if match is None:
                continue
            try:
                value = candidate.transform(*match.groups())
            except (ArithmeticError, ValueError) as exc:
                LOGGER.warning(
                    "%s: rule %r rejected %r: %s",
                    self.field,
                    candidate.label,
                    match.group(0),
                    exc,
                )
                continue
            LOGGER.debug("%s matched rule %r", self.field, candidate.label)
            return value
        return None

    def __iter__(self) -> Iterator[ExtractionRule]:
        return iter(self.rules)


def _element_chain(name: str) -> RuleChain:
    # Horizons pads one-letter labels to two columns: ``W =``, ``N =``, ``A =``.
    label = re.escape(name.ljust(2))
    return RuleChain(
        name,
        (rule(rf"(?<![A-Za-z]){label}=\s*{_SCIENTIFIC}", plain_float, f"{name}="),),
    )


RADIUS_CHAIN = RuleChain(
    "radius",
    (
        rule(rf"Mean radius, km\s*=\s*{_NUMBER}", km_to_meters, "mean radius, km"),
        rule(rf"Radius, km\s*=\s*{_NUMBER}", km_to_meters, "radius, km"),
        rule(rf"Mean radius \(km\)\s*=\s*{_NUMBER}", km_to_meters, "mean radius (km)"),
        rule(
            rf"Equat\. radius \(1 bar\)\s*=\s*{_NUMBER}",
            km_to_meters,
            "equatorial radius (1 bar)",
        ),
        rule(
            rf"Vol\. [Mm]ean [Rr]adius,?\s*\(?km\)?\s*=\s*{_NUMBER}",
            km_to_meters,
            "volumetric mean radius",
        ),
    ),
)

MASS_CHAIN = RuleChain(
    "mass",
    (
        rule(rf"Mass,\s*10\^(-?[0-9]+)\s*kg\s*=\s*{_NUMBER}", power_of_ten, "mass, 10^e kg"),
        rule(
            rf"Mass\s*\(10\^(-?[0-9]+)\s*kg\s*\)\s*=\s*{_NUMBER}",
            power_of_ten,
            "mass (10^e kg)",
        ),
        rule(
            rf"Mass\s*x\s*10\^(-?[0-9]+)\s*\(kg\)\s*=\s*{_NUMBER}",
            power_of_ten,
            "mass x10^e (kg)",
        ),
    ),
)

ROTATION_CHAIN = RuleChain(
    "rotation",
    (
        rule(
            rf"Sidereal rot\. rate,?\s*\(?rad/s\)?\s*=\s*{_SCIENTIFIC}",
            plain_float,
            "sidereal rotation rate",
        ),
        rule(
            rf"Sidereal rot\. period\s*=\s*{_SIGNED_NUMBER}\s*(d|hr|h)\b",
            period_to_rate,
            "sidereal rotation period",
        ),
        rule(
            rf"Mean sidereal day,\s*(d|hr|h)\s*=\s*{_NUMBER}",
            _sidereal_day_rate,
            "mean sidereal day",
        ),
    ),
)

OBJECT_DATA_FIELDS: tuple[str, ...] = ("radius", "mass", "rotation")
ELEMENT_FIELDS: tuple[str, ...] = (
    "EC",
    "QR",
    "IN",
    "OM",
    "W",
    "Tp",
    "N",
    "MA",
    "TA",
    "A",
    "AD",
    "PR",
)

DEFAULT_CHAINS: tuple[RuleChain, ...] = (
    RADIUS_CHAIN,
    MASS_CHAIN,
    ROTATION_CHAIN,
) + tuple(_element_chain(name) for name in ELEMENT_FIELDS)


class FieldExtractor:
    """Registry of rule chains keyed by field name."""

    def __init__(self, chains: Iterable[RuleChain] = DEFAULT_CHAINS) -> None:
        self._chains: Dict[str, RuleChain] = {}
        for chain in chains:
            self.register(chain)

    def register(self, chain: RuleChain) -> None:
        """Install ``chain``, replacing any chain already bound to its field."""

        self._chains[chain.field] = chain

    def chain(self, field: str) -> RuleChain:
        try:
            return self._chains[field]
        except KeyError:
            raise KeyError(f"no rule chain registered for field {field!r}") from None

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self._chains)

    def extract(self, field: str, text: str) -> float | None:
        """Return the value of ``field`` in ``text`` or ``None`` when absent."""

        value = self.chain(field).extract(text)
        if value is None:
            LOGGER.debug("no rule matched field %s", field)
        return value

    def extract_fields(self, fields: Iterable[str], text: str) -> Dict[str, float]:
        """Return the present subset of ``fields`` found in ``text``."""

        found: Dict[str, float] = {}
        for field in fields:
            value = self.extract(field, text)
            if value is not None:
                found[field] = value
        return found


DEFAULT_EXTRACTOR = FieldExtractor()


__all__ = [
    "DEFAULT_CHAINS",
    "DEFAULT_EXTRACTOR",
    "ELEMENT_FIELDS",
    "ExtractionRule",
    "FieldExtractor",
    "MASS_CHAIN",
    "OBJECT_DATA_FIELDS",
    "RADIUS_CHAIN",
    "ROTATION_CHAIN",
    "RuleChain",
    "SECONDS_PER_UNIT",
    "km_to_meters",
    "period_to_rate",
    "plain_float",
    "power_of_ten",
    "rule",
]
