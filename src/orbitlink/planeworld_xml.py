"""Render queried bodies as PlaneworldML object documents."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Mapping

from .orbit_conversion import ConversionError, StateVector

LOGGER = logging.getLogger(__name__)

DOCTYPE = "<!DOCTYPE PlaneworldML>"


@dataclass(frozen=True)
class PlaneworldBody:
    """Rigid body description; SI units, rotation in rad/s."""

    name: str
    mass: float
    radius: float
    position: tuple[float, float] = (0.0, 0.0)
    velocity: tuple[float, float] = (0.0, 0.0)
    rotation: float = 0.0


def body_from_record(
    name: str, values: Mapping[str, float], state: StateVector | None = None
) -> PlaneworldBody:
    """Combine extracted physical data with an optional state vector."""

    missing = [field for field in ("mass", "radius") if field not in values]
    if missing:
        raise ConversionError(f"{name}: missing physical data: {', '.join(missing)}")
    rotation = values.get("rotation")
    if rotation is None:
        LOGGER.warning("%s: no rotation rate found, writing 0.0", name)
        rotation = 0.0
    if state is None:
        return PlaneworldBody(
            name=name, mass=values["mass"], radius=values["radius"], rotation=rotation
        )
    return PlaneworldBody(
        name=name,
        mass=values["mass"],
        radius=values["radius"],
        position=state.position,
        velocity=state.velocity,
        rotation=rotation,
    )


def _number(value: float) -> str:
    return repr(float(value))


def build_element(body: PlaneworldBody) -> ET.Element:
    root = ET.Element("object", {"type": "RigidBody"})
    ET.SubElement(
        root,
        "core",
        {
            "name": body.name,
            "mass": _number(body.mass),
            "origin_x": _number(body.position[0]),
            "origin_y": _number(body.position[1]),
            "velocity_x": _number(body.velocity[0]),
            "velocity_y": _number(body.velocity[1]),
            "angle_velocity": _number(body.rotation),
            "dynamics": "true",
            "gravity": "true",
        },
    )
    shape = ET.SubElement(
        root,
        "shape",
        {
            "type": "Circle",
            "radius": _number(body.radius),
            "center_x": "0.0",
            "center_y": "0.0",
        },
    )
    ET.SubElement(shape, "visuals", {"type": "Circle"})
    return root


def render_body(body: PlaneworldBody) -> str:
    """Return the PlaneworldML document for ``body``."""

    root = build_element(body)
    ET.indent(root, space="    ")
    return f"{DOCTYPE}\n{ET.tostring(root, encoding='unicode')}\n"


__all__ = ["DOCTYPE", "PlaneworldBody", "body_from_record", "build_element", "render_body"]
