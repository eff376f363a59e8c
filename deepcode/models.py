"""Core data models shared across deepcode components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

StatusName = Literal["idle", "learning", "complete", "error"]
ChatRole = Literal["user", "assistant", "system"]


@dataclass(frozen=True)
class FileNode:
    """One entry of a scanned project directory."""

    name: str
    path: str
    is_directory: bool
    children: Optional[tuple["FileNode", ...]] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "name": self.name,
            "path": self.path,
            "isDirectory": self.is_directory,
        }
        if self.is_directory:
            payload["children"] = [child.to_dict() for child in self.children or ()]
        return payload


@dataclass(frozen=True)
class FilePreview:
    """Bounded excerpt of a source file used as model input."""

    relative_path: str
    preview_text: str


@dataclass(frozen=True)
class LearningStatus:
    """Snapshot of the learning pipeline state."""

    status: StatusName = "idle"
    message: Optional[str] = None
    progress: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"status": self.status}
        if self.message is not None:
            payload["message"] = self.message
        if self.progress is not None:
            payload["progress"] = self.progress
        return payload


@dataclass
class ChatMessage:
    """A single chat turn exchanged with the assistant."""

    role: ChatRole
    content: str
    timestamp: str = ""


@dataclass
class CodeFile:
    """File content returned to the editor view."""

    path: str
    content: str
    language: str = "text"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Component(_CamelModel):
    """A named part of the codebase with its location and role."""

    name: str
    path: str
    description: str


class DependencyAnalysis(_CamelModel):
    """Dependencies declared by the project's manifest files."""

    python: List[str] = Field(default_factory=list)
    node: List[str] = Field(default_factory=list)
    node_dev: List[str] = Field(default_factory=list)
    java: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    manifests: List[str] = Field(default_factory=list)


class CodeExplanation(_CamelModel):
    """An explanation of one file kept alongside the analysis."""

    file_path: str
    explanation: str


class CodebaseAnalysis(_CamelModel):
    """AI-produced summary of a scanned project."""

    summary: str = Field(min_length=1)
    key_components: List[Component] = Field(default_factory=list)
    core_functionality: List[Component] = Field(default_factory=list)
    code_explanations: Optional[List[CodeExplanation]] = None

    @field_validator("summary")
    @classmethod
    def _summary_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("summary must not be blank")
        return value


class ApiKeys(_CamelModel):
    """Provider credentials held by the user."""

    openai: Optional[str] = None
    gemini: Optional[str] = None

    def merged(self, other: "ApiKeys") -> "ApiKeys":
        """Return keys from ``self`` with gaps filled from ``other``."""
        return ApiKeys(
            openai=self.openai or other.openai,
            gemini=self.gemini or other.gemini,
        )

    def is_empty(self) -> bool:
        return not (self.openai or self.gemini)


class ProjectState(_CamelModel):
    """The persisted application document."""

    project_path: Optional[str] = None
    api_keys: ApiKeys = Field(default_factory=ApiKeys)
    codebase_index: Optional[CodebaseAnalysis] = None
    dependency_analytics: Optional[DependencyAnalysis] = None
    last_updated: Optional[str] = None


@dataclass
class CodeActionResult:
    """Result of an AI code action applied to one file."""

    action: str
    file_path: str
    result: str
    metadata: Dict[str, object] = field(default_factory=dict)


__all__ = [
    "ApiKeys",
    "ChatMessage",
    "CodeActionResult",
    "CodeExplanation",
    "CodeFile",
    "CodebaseAnalysis",
    "Component",
    "DependencyAnalysis",
    "FileNode",
    "FilePreview",
    "LearningStatus",
    "ProjectState",
    "StatusName",
]
