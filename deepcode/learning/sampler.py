"""Selection of bounded source previews from a scanned project tree."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from ..config import DEFAULT_SOURCE_EXTENSIONS
from ..logging import get_logger
from ..models import FileNode, FilePreview

logger = get_logger("learning.sampler")


class SampleSelector:
    """Picks source-looking files depth-first and extracts their previews."""

    def __init__(
        self,
        *,
        max_files: int = 20,
        preview_chars: int = 1000,
        max_depth: int = 3,
        source_extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS,
    ) -> None:
        self.max_files = max_files
        self.preview_chars = preview_chars
        self.max_depth = max_depth
        self.source_extensions = frozenset(ext.lower() for ext in source_extensions)

    def select(self, tree: FileNode, root: str | Path) -> List[FilePreview]:
        """Return at most ``max_files`` previews in depth-first order.

        The root's direct children sit at depth 0; directories deeper than
        ``max_depth`` are never opened. Traversal stops as soon as the cap is hit.
        """
        root_path = Path(root).expanduser().resolve()
        previews: List[FilePreview] = []
        for child in tree.children or ():
            if len(previews) >= self.max_files:
                break
            self._collect(child, root_path, 0, previews)
        logger.debug("Selected %d preview(s) under %s", len(previews), root_path)
        return previews

    def qualifies(self, node: FileNode) -> bool:
        return not node.is_directory and Path(node.name).suffix.lower() in self.source_extensions

    def _collect(
        self, node: FileNode, root: Path, depth: int, previews: List[FilePreview]
    ) -> None:
        if len(previews) >= self.max_files:
            return
        if not node.is_directory:
            if self.qualifies(node):
                preview = self._read_preview(node, root)
                if preview is not None:
                    previews.append(preview)
            return
        if depth >= self.max_depth:
            return
        for child in node.children or ():
            self._collect(child, root, depth + 1, previews)
            if len(previews) >= self.max_files:
                return

    def _read_preview(self, node: FileNode, root: Path) -> FilePreview | None:
        try:
            with open(node.path, "r", encoding="utf-8", errors="replace") as handle:
                text = handle.read(self.preview_chars)
        except OSError as exc:
            logger.warning("Error reading file %s: %s", node.path, exc)
            return None
        return FilePreview(relative_path=_relative_to(node.path, root), preview_text=text)


def _relative_to(path: str, root: Path) -> str:
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return Path(os.path.relpath(path, root)).as_posix()


__all__ = ["SampleSelector"]
