"""Persistent stores for deepcode state."""

from .project_store import PersistenceError, ProjectStore

__all__ = ["PersistenceError", "ProjectStore"]
