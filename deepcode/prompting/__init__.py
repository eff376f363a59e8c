"""Prompt construction for codebase analysis, chat and code actions."""

from .builder import AnalysisRequest, PromptBuilder

__all__ = ["AnalysisRequest", "PromptBuilder"]
