"""Tests for deepcode.learning.interpreter."""

from __future__ import annotations

import json

from deepcode.learning.interpreter import ResponseInterpreter, fallback_analysis
from deepcode.prompting.constants import FALLBACK_SUMMARY

VALID_DOCUMENT = {
    "summary": "A CLI that syncs dotfiles.",
    "keyComponents": [
        {"name": "Syncer", "path": "src/sync.ts", "description": "Copies files"},
    ],
    "coreFunctionality": [
        {"name": "Diffing", "path": "src/diff.ts", "description": "Computes changes"},
    ],
}


def test_interpret_valid_json_round_trips_unchanged() -> None:
    analysis = ResponseInterpreter().interpret(json.dumps(VALID_DOCUMENT))

    assert analysis.to_payload() == VALID_DOCUMENT


def test_interpret_non_json_returns_fallback() -> None:
    analysis = ResponseInterpreter().interpret("I couldn't analyze this.")

    assert analysis.summary == FALLBACK_SUMMARY
    assert analysis.key_components == []
    assert analysis.core_functionality == []


def test_interpret_json_fence_with_trailing_prose() -> None:
    raw = (
        "Here is the analysis you asked for:\n"
        "```json\n"
        f"{json.dumps(VALID_DOCUMENT, indent=2)}\n"
        "```\n"
        "Let me know if you want more detail on {anything}."
    )

    analysis = ResponseInterpreter().interpret(raw)

    assert analysis.to_payload() == VALID_DOCUMENT


def test_interpret_unlabelled_fence() -> None:
    raw = f"```\n{json.dumps(VALID_DOCUMENT)}\n```"

    assert ResponseInterpreter().interpret(raw).summary == VALID_DOCUMENT["summary"]


def test_interpret_braces_inside_prose() -> None:
    raw = f"Sure! {json.dumps(VALID_DOCUMENT)} Hope that helps."

    analysis = ResponseInterpreter().interpret(raw)

    assert analysis.key_components[0].name == "Syncer"


def test_interpret_falls_through_invalid_fence_to_later_candidate() -> None:
    raw = "```python\nprint('not json')\n```\n" + json.dumps(VALID_DOCUMENT)

    analysis = ResponseInterpreter().interpret(raw)

    assert analysis.summary == VALID_DOCUMENT["summary"]


def test_interpret_rejects_wrong_shape() -> None:
    interpreter = ResponseInterpreter()
    missing_arrays = {"summary": "ok", "keyComponents": {}}
    empty_summary = {"summary": "", "keyComponents": [], "coreFunctionality": []}
    numeric_summary = {"summary": 42, "keyComponents": [], "coreFunctionality": []}
    bad_component = {
        "summary": "ok",
        "keyComponents": [{"name": "x"}],
        "coreFunctionality": [],
    }

    for payload in (missing_arrays, empty_summary, numeric_summary, bad_component, [1, 2]):
        assert interpreter.interpret(json.dumps(payload)) == fallback_analysis()


def test_interpret_empty_reply() -> None:
    assert ResponseInterpreter().interpret("").summary == FALLBACK_SUMMARY


def test_candidates_follow_priority_order() -> None:
    raw = 'intro ```json\n{"a": 1}\n``` and {"b": 2}'

    labels = [label for label, _ in ResponseInterpreter.candidates(raw)]

    assert labels == ["json-fence", "braces", "raw"]
