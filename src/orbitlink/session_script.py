"""Linear Horizons command scripts and the record they produce."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Sequence, Union

from .extraction import ELEMENT_FIELDS, OBJECT_DATA_FIELDS
from .pattern_buffer import PatternLike

MAIN_PROMPT = re.escape("Horizons> ")
OBJECT_DATA_PROMPT = re.escape("<cr>: ")
SETTING_PROMPT = re.escape("] : ")
FINAL_PROMPT = re.escape("? : ")

DEFAULT_CENTER = "10"


@dataclass(frozen=True)
class WriteStep:
    """Send ``data`` to the remote service."""

    data: str

    def describe(self) -> str:
        return f"write {self.data!r}"


@dataclass(frozen=True)
class AwaitStep:
    """Wait for ``pattern`` and extract ``fields`` from the captured text.

    ``final`` marks the step that collects the last block of data; a clean
    remote close while it is pending still counts as success.
    """

    pattern: PatternLike
    fields: tuple[str, ...] = ()
    final: bool = False

    def describe(self) -> str:
        pattern = self.pattern if isinstance(self.pattern, str) else self.pattern.pattern
        return f"await {pattern!r}"


Step = Union[WriteStep, AwaitStep]


@dataclass(frozen=True)
class SessionScript:
    """Immutable ordered sequence of steps."""

    name: str
    steps: tuple[Step, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps or not isinstance(self.steps[-1], AwaitStep):
            raise ValueError("a session script must end with an await step")
        finals = [step for step in self.steps if isinstance(step, AwaitStep) and step.final]
        if finals and finals[-1] is not self.steps[-1]:
            raise ValueError("only the last step may be marked final")

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def expected_fields(self) -> tuple[str, ...]:
        names: list[str] = []
        for step in self.steps:
            if isinstance(step, AwaitStep):
                names.extend(name for name in step.fields if name not in names)
        return tuple(names)

    @property
    def final_index(self) -> int:
        return len(self.steps) - 1


@dataclass(frozen=True)
class EphemerisWindow:
    """Time span and output step of the requested osculating elements."""

    start: str = "2014-05-13"
    stop: str = "2014-05-14"
    step: str = "2d"


@dataclass(frozen=True)
class ResultRecord:
    """Read-only values collected by one completed (or aborted) run."""

    body: str | None
    values: Mapping[str, float]
    missing: tuple[str, ...] = ()
    complete: bool = True

    def __getitem__(self, name: str) -> float:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def get(self, name: str, default: float | None = None) -> float | None:
        return self.values.get(name, default)

    def as_dict(self) -> Dict[str, object]:
        return {
            "body": self.body,
            "values": dict(self.values),
            "missing": list(self.missing),
            "complete": self.complete,
        }


@dataclass
class ResultRecordBuilder:
    """Accumulates extracted values; each field may be set only once."""

    body: str | None = None
    expected: tuple[str, ...] = ()
    _values: Dict[str, float] = field(default_factory=dict, repr=False)

    def set(self, name: str, value: float) -> None:
        if name in self._values:
            raise ValueError(f"field {name!r} already set")
        self._values[name] = value

    def update(self, values: Mapping[str, float]) -> None:
        for name, value in values.items():
            self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def freeze(self, *, complete: bool = True) -> ResultRecord:
        missing = tuple(name for name in self.expected if name not in self._values)
        return ResultRecord(
            body=self.body,
            values=MappingProxyType(dict(self._values)),
            missing=missing,
            complete=complete,
        )


def _settings(answers: Sequence[str]) -> list[Step]:
    steps: list[Step] = []
    for answer in answers:
        steps.append(WriteStep(f"{answer}\n"))
        steps.append(AwaitStep(SETTING_PROMPT))
    return steps


def build_elements_script(
    horizons_id: int,
    *,
    window: EphemerisWindow | None = None,
    center: str = DEFAULT_CENTER,
) -> SessionScript:
    """Script that reads physical data and then osculating orbital elements."""

    window = window or EphemerisWindow()
    steps: list[Step] = [
        AwaitStep(MAIN_PROMPT),
        WriteStep(f"{horizons_id}\n"),
        AwaitStep(OBJECT_DATA_PROMPT, fields=OBJECT_DATA_FIELDS),
        WriteStep("E\n"),
        AwaitStep(SETTING_PROMPT),
    ]
    # Answers, in order: elements table, coordinate center, reference plane,
    # start, stop, interval, custom output, frame, KM-S units, CSV, labels.
    steps.extend(
        _settings(
            (
                "e",
                center,
                "eclip",
                window.start,
                window.stop,
                window.step,
                "n",
                "J2000",
                "1",
                "NO",
                "YES",
            )
        )
    )
    steps.append(WriteStep("ABS\n"))
    steps.append(AwaitStep(FINAL_PROMPT, fields=ELEMENT_FIELDS, final=True))
    return SessionScript(f"elements:{horizons_id}", tuple(steps))


def build_physical_script(horizons_id: int) -> SessionScript:
    """Script for bodies without an orbit: only the physical data page."""

    return SessionScript(
        f"physical:{horizons_id}",
        (
            AwaitStep(MAIN_PROMPT),
            WriteStep(f"{horizons_id}\n"),
            AwaitStep(OBJECT_DATA_PROMPT, fields=OBJECT_DATA_FIELDS, final=True),
        ),
    )


__all__ = [
    "AwaitStep",
    "DEFAULT_CENTER",
    "EphemerisWindow",
    "FINAL_PROMPT",
    "MAIN_PROMPT",
    "OBJECT_DATA_PROMPT",
    "ResultRecord",
    "ResultRecordBuilder",
    "SETTING_PROMPT",
    "SessionScript",
    "Step",
    "WriteStep",
    "build_elements_script",
    "build_physical_script",
]
