"""Project osculating elements onto the ecliptic plane as a 2D state vector."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping

REQUIRED_ELEMENTS: tuple[str, ...] = ("EC", "W", "N", "TA", "A", "OM")


class ConversionError(ValueError):
    """Raised when the record lacks an element needed for the conversion."""


@dataclass(frozen=True)
class StateVector:
    """Planar position (m) and velocity (m/s)."""

    position: tuple[float, float]
    velocity: tuple[float, float]


def elements_to_state(elements: Mapping[str, float]) -> StateVector:
    """Convert Horizons elements to a position/velocity pair.

    ``A`` arrives in kilometres and ``N`` in degrees per second; both are
    rescaled to SI here. Angles (``TA``, ``W``, ``OM``) are degrees.
    """

    missing = [name for name in REQUIRED_ELEMENTS if name not in elements]
    if missing:
        raise ConversionError(f"missing orbital elements: {', '.join(missing)}")

    eccentricity = elements["EC"]
    if not 0.0 <= eccentricity < 1.0:
        raise ConversionError(f"eccentricity {eccentricity} is not elliptic")
    semi_major = elements["A"] * 1000.0
    mean_motion = math.radians(elements["N"])
    true_anomaly = math.radians(elements["TA"])
    longitude = math.radians(elements["TA"] + elements["W"] + elements["OM"])

    radius = semi_major * (1.0 - eccentricity**2) / (
        1.0 + eccentricity * math.cos(true_anomaly)
    )
    position = (radius * math.cos(longitude), radius * math.sin(longitude))

    radial = (
        mean_motion
        * eccentricity
        * math.sin(true_anomaly)
        * radius
        / math.sqrt(1.0 - eccentricity**2)
    )
    tangential = mean_motion * semi_major
    velocity = (
        radial * math.cos(longitude) - tangential * math.sin(longitude),
        radial * math.sin(longitude) + tangential * math.cos(longitude),
    )
    return StateVector(position=position, velocity=velocity)


__all__ = ["ConversionError", "REQUIRED_ELEMENTS", "StateVector", "elements_to_state"]
