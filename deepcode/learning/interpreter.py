"""Extraction and validation of the model's codebase analysis reply."""

from __future__ import annotations

import json
import re
from typing import Iterator, Optional

from pydantic import ValidationError

from ..logging import get_logger
from ..models import CodebaseAnalysis
from ..prompting.constants import FALLBACK_SUMMARY

_JSON_FENCE = re.compile(r"```json[ \t]*\r?\n?([\s\S]*?)```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[\w+-]*[ \t]*\r?\n?([\s\S]*?)```")
_BRACED = re.compile(r"\{[\s\S]*\}")

logger = get_logger("learning.interpreter")


class ParseError(ValueError):
    """A candidate could not be decoded or did not match the analysis shape."""


def fallback_analysis() -> CodebaseAnalysis:
    return CodebaseAnalysis(summary=FALLBACK_SUMMARY, key_components=[], core_functionality=[])


class ResponseInterpreter:
    """Turns free-form model output into a validated ``CodebaseAnalysis``."""

    def interpret(self, raw_text: str) -> CodebaseAnalysis:
        """Return the first candidate that parses and validates, else the fallback.

        Candidates are tried in order: a ```json fenced block, any fenced
        block, the widest brace-delimited span, then the raw text.
        """
        errors: list[str] = []
        for label, candidate in self.candidates(raw_text or ""):
            try:
                return self.parse_candidate(candidate)
            except ParseError as exc:
                errors.append(f"{label}: {exc}")

        logger.warning(
            "Error parsing AI response; using fallback analysis (%s)",
            "; ".join(errors) or "empty response",
        )
        logger.debug("Raw AI response: %s", raw_text)
        return fallback_analysis()

    @staticmethod
    def candidates(raw_text: str) -> Iterator[tuple[str, str]]:
        seen: set[str] = set()

        def _emit(label: str, value: Optional[str]) -> Iterator[tuple[str, str]]:
            if value is None:
                return
            value = value.strip()
            if value and value not in seen:
                seen.add(value)
                yield label, value

        match = _JSON_FENCE.search(raw_text)
        yield from _emit("json-fence", match.group(1) if match else None)
        match = _ANY_FENCE.search(raw_text)
        yield from _emit("fence", match.group(1) if match else None)
        match = _BRACED.search(raw_text)
        yield from _emit("braces", match.group(0) if match else None)
        yield from _emit("raw", raw_text)

    @staticmethod
    def parse_candidate(candidate: str) -> CodebaseAnalysis:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ParseError(f"invalid JSON at line {exc.lineno} column {exc.colno}") from exc
        if not isinstance(payload, dict):
            raise ParseError(f"expected an object, got {type(payload).__name__}")
        for key in ("keyComponents", "coreFunctionality"):
            if not isinstance(payload.get(key), list):
                raise ParseError(f"{key} must be an array")
        try:
            return CodebaseAnalysis.model_validate(payload)
        except ValidationError as exc:
            details = ", ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ParseError(details) from exc


__all__ = ["ParseError", "ResponseInterpreter", "fallback_analysis"]
