"""Project directory scanning and file access utilities."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Iterable, List, Optional

from .config import DEFAULT_IGNORE_NAMES
from .logging import get_logger
from .models import CodeFile, FileNode

_HIDDEN_PREFIX = "."

_LANGUAGE_BY_SUFFIX = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".html": "html",
    ".css": "css",
    ".json": "json",
    ".md": "markdown",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".sh": "shell",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
}

logger = get_logger("file_tree")


def detect_language(path: str | Path) -> str:
    """Return the editor language id for a file path, or ``text``."""
    return _LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower(), "text")


def read_code_file(path: str | Path) -> CodeFile:
    """Read a file for the editor view."""
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    content = file_path.read_text(encoding="utf-8", errors="replace")
    return CodeFile(path=str(file_path), content=content, language=detect_language(file_path))


class FileTreeScanner:
    """Builds a tree of file/directory descriptors for a project folder."""

    def __init__(self, ignore_names: Iterable[str] | None = None) -> None:
        names = DEFAULT_IGNORE_NAMES if ignore_names is None else ignore_names
        self.ignore_names = frozenset(names)

    def scan(self, root: str | Path) -> FileNode:
        """Return the tree rooted at ``root``.

        Raises ``OSError`` when the root itself is missing or unreadable. Entries
        below the root that cannot be read are left out of the tree.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        return self._scan_entry(root_path)

    def is_ignored(self, name: str) -> bool:
        return name.startswith(_HIDDEN_PREFIX) or name in self.ignore_names

    def _scan_entry(self, path: Path) -> FileNode:
        # stat follows symlinks, so broken links raise here.
        mode = path.stat().st_mode
        name = path.name or str(path)
        if not stat.S_ISDIR(mode):
            return FileNode(name=name, path=str(path), is_directory=False)

        names = sorted(os.listdir(path))
        children: List[FileNode] = []
        for child_name in names:
            if self.is_ignored(child_name):
                continue
            child = self._scan_child(path / child_name)
            if child is not None:
                children.append(child)
        return FileNode(name=name, path=str(path), is_directory=True, children=tuple(children))

    def _scan_child(self, path: Path) -> Optional[FileNode]:
        try:
            return self._scan_entry(path)
        except OSError as exc:
            logger.debug("Skipping %s: %s", path, exc)
            return None


__all__ = ["FileTreeScanner", "detect_language", "read_code_file"]
