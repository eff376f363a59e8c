"""Flat-file JSON persistence for the project state document."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..logging import get_logger
from ..models import CodebaseAnalysis, DependencyAnalysis, ProjectState

logger = get_logger("stores.project")


class PersistenceError(RuntimeError):
    """Raised when the project state cannot be written."""


class ProjectStore:
    """Reads and rewrites the whole ``ProjectState`` document on every save."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def load_state(self) -> Optional[ProjectState]:
        """Return the stored state, or None when missing or unreadable."""
        with self._lock:
            try:
                raw = self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as exc:
                logger.error("Error reading project state %s: %s", self._path, exc)
                return None
            try:
                return ProjectState.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.error("Ignoring malformed project state %s: %s", self._path, exc)
                return None

    def load_or_default(self) -> ProjectState:
        return self.load_state() or ProjectState()

    def save_state(self, state: ProjectState) -> ProjectState:
        """Stamp ``lastUpdated`` and write the document atomically."""
        stamped = state.model_copy(
            update={"last_updated": datetime.now(UTC).isoformat().replace("+00:00", "Z")}
        )
        payload = json.dumps(stamped.to_payload(), indent=2)
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        handle.write(payload)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                logger.error("Error saving project state: %s", exc)
                raise PersistenceError(f"Failed to save project state: {exc}") from exc
        return stamped

    def update_analysis(self, analysis: CodebaseAnalysis) -> ProjectState:
        """Replace the stored analysis wholesale."""
        with self._lock:
            state = self.load_or_default()
            try:
                return self.save_state(state.model_copy(update={"codebase_index": analysis}))
            except PersistenceError as exc:
                raise PersistenceError(f"Failed to store codebase index: {exc}") from exc

    def update_dependencies(self, dependencies: DependencyAnalysis) -> ProjectState:
        """Store dependency analytics next to the analysis; ``codebaseIndex`` is left alone."""
        with self._lock:
            state = self.load_or_default()
            return self.save_state(state.model_copy(update={"dependency_analytics": dependencies}))


__all__ = ["PersistenceError", "ProjectStore"]
