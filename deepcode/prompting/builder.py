"""Builds prompts for codebase analysis, chat and code actions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..models import CodebaseAnalysis, FilePreview
from .constants import ANALYSIS_SYSTEM_PROMPT, CODE_ACTIONS


@dataclass(frozen=True)
class AnalysisRequest:
    """The outbound analysis message plus its role framing."""

    message: str
    system: str = ANALYSIS_SYSTEM_PROMPT


class PromptBuilder:
    """Assembles prompt strings from Jinja templates. Performs no I/O beyond template loading."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

    def build_request(self, root: str | Path, previews: Sequence[FilePreview]) -> AnalysisRequest:
        """Compose the analysis request for one learning run."""
        template = self._env.get_template("codebase_analysis.j2")
        message = template.render(root=str(root), previews=list(previews))
        return AnalysisRequest(message=message)

    def build_chat_system_prompt(
        self, project_path: str | None, analysis: CodebaseAnalysis | None
    ) -> str:
        template = self._env.get_template("chat_system.j2")
        return template.render(project_path=project_path, analysis=analysis).strip()

    def build_code_action_prompt(
        self, action: str, file_path: str, content: str, language: str
    ) -> str:
        instruction = CODE_ACTIONS.get(action)
        if instruction is None:
            raise ValueError(f"Unsupported code action: {action}")
        template = self._env.get_template("code_action.j2")
        return template.render(
            action=action,
            instruction=instruction,
            file_path=file_path,
            content=content,
            language=language or "text",
        ).strip()


__all__ = ["AnalysisRequest", "PromptBuilder"]
