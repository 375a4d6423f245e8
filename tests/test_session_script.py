"""Tests for session scripts and result records."""

from __future__ import annotations

import pytest

from orbitlink.extraction import ELEMENT_FIELDS, OBJECT_DATA_FIELDS
from orbitlink.session_script import (
    FINAL_PROMPT,
    MAIN_PROMPT,
    OBJECT_DATA_PROMPT,
    AwaitStep,
    EphemerisWindow,
    ResultRecordBuilder,
    SessionScript,
    WriteStep,
    build_elements_script,
    build_physical_script,
)


def _writes(script: SessionScript) -> list[str]:
    return [step.data for step in script if isinstance(step, WriteStep)]


def test_elements_script_sends_the_horizons_answers_in_order() -> None:
    # Why: Horizons asks its questions in a fixed order; the answers must match it.
    script = build_elements_script(399)
    assert _writes(script) == [
        "399\n",
        "E\n",
        "e\n",
        "10\n",
        "eclip\n",
        "2014-05-13\n",
        "2014-05-14\n",
        "2d\n",
        "n\n",
        "J2000\n",
        "1\n",
        "NO\n",
        "YES\n",
        "ABS\n",
    ]


def test_elements_script_alternates_writes_and_awaits() -> None:
    # Why: every answer waits for the next prompt, and only the last await is final.
    steps = build_elements_script(301).steps
    assert steps[0] == AwaitStep(MAIN_PROMPT)
    assert steps[2] == AwaitStep(OBJECT_DATA_PROMPT, fields=OBJECT_DATA_FIELDS)
    for previous, current in zip(steps, steps[1:]):
        assert type(previous) is not type(current)
    final = steps[-1]
    assert isinstance(final, AwaitStep)
    assert final.final
    assert final.pattern == FINAL_PROMPT
    assert final.fields == ELEMENT_FIELDS


def test_elements_script_uses_window_and_center() -> None:
    # Why: ephemeris dates and center come from the caller, not the defaults.
    window = EphemerisWindow(start="2020-01-01", stop="2020-01-02", step="1d")
    writes = _writes(build_elements_script(499, window=window, center="399"))
    assert writes[3:8] == ["399\n", "eclip\n", "2020-01-01\n", "2020-01-02\n", "1d\n"]


def test_physical_script_stops_after_object_data() -> None:
    # Why: bodies without an orbit end on the object page.
    script = build_physical_script(10)
    assert _writes(script) == ["10\n"]
    assert script.expected_fields == OBJECT_DATA_FIELDS
    assert script.final_index == 2


def test_expected_fields_cover_both_pages() -> None:
    # Why: missing-field reporting needs every field any step extracts.
    assert build_elements_script(399).expected_fields == OBJECT_DATA_FIELDS + ELEMENT_FIELDS


def test_script_must_end_with_an_await() -> None:
    # Why: a script that ends on a write has no reply to collect.
    with pytest.raises(ValueError, match="must end"):
        SessionScript("broken", (AwaitStep("x"), WriteStep("y\n")))
    with pytest.raises(ValueError, match="only the last step"):
        SessionScript("broken", (AwaitStep("x", final=True), WriteStep("y\n"), AwaitStep("z")))


def test_record_builder_sets_each_field_once() -> None:
    # Why: a field extracted twice would hide a rule overlap.
    builder = ResultRecordBuilder(body="earth", expected=("mass", "radius"))
    builder.set("mass", 1.0)
    with pytest.raises(ValueError, match="already set"):
        builder.set("mass", 2.0)

    record = builder.freeze()
    assert record["mass"] == 1.0
    assert record.missing == ("radius",)
    assert record.get("radius") is None
    assert "mass" in record
    with pytest.raises(TypeError):
        record.values["radius"] = 3.0  # type: ignore[index]


def test_frozen_record_does_not_follow_later_builder_changes() -> None:
    # Why: frozen records are snapshots handed to callers.
    builder = ResultRecordBuilder()
    record = builder.freeze(complete=False)
    builder.set("mass", 1.0)
    assert "mass" not in record
    assert record.as_dict() == {"body": None, "values": {}, "missing": [], "complete": False}
