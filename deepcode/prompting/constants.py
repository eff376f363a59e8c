"""Shared constants for codebase prompting."""

from __future__ import annotations

ANALYSIS_SYSTEM_PROMPT = (
    "You are analyzing a codebase. Provide a JSON response with summary, "
    "key components, and core functionality."
)

FALLBACK_SUMMARY = (
    "Analysis could not be completed. The AI provided an invalid response format."
)

CODE_ACTIONS: dict[str, str] = {
    "comment": "Add clear, concise comments to this code",
    "detect_bugs": "Find bugs and risky constructs in this code",
    "optimize": "Optimize this code for readability and performance",
    "generate_tests": "Write unit tests for this code",
    "explain": "Explain this code for a product manager",
}


__all__ = ["ANALYSIS_SYSTEM_PROMPT", "CODE_ACTIONS", "FALLBACK_SUMMARY"]
