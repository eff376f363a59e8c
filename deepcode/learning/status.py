"""Learning status holder and the message channel that feeds it."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Union

from ..logging import get_logger
from ..models import CodebaseAnalysis, LearningStatus, StatusName

StatusListener = Callable[[LearningStatus], None]

logger = get_logger("learning.status")


@dataclass(frozen=True)
class ChannelMessage:
    """A message posted by the background run to its controller."""

    kind: Literal["status", "complete"]
    payload: Union[LearningStatus, CodebaseAnalysis]


StatusChannel = Callable[[ChannelMessage], None]


class StatusBoard:
    """Thread-safe owner of the current ``LearningStatus``.

    Progress never decreases within a run; a new ``learning`` transition out
    of a terminal state starts a fresh run.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status = LearningStatus(status="idle")
        self._terminal = threading.Event()
        self._terminal.set()
        self._listeners: List[StatusListener] = []

    @property
    def current(self) -> LearningStatus:
        with self._lock:
            return self._status

    def try_begin(self, message: str) -> bool:
        """Atomically move into ``learning`` unless a run is already in flight."""
        with self._lock:
            if self._status.status == "learning":
                return False
            self._status = LearningStatus(status="learning", message=message, progress=0)
            self._terminal.clear()
            status = self._status
        self._announce(status)
        return True

    def publish(
        self, status: StatusName, message: Optional[str] = None, progress: Optional[int] = None
    ) -> LearningStatus:
        with self._lock:
            previous = self._status
            if status == "learning" and previous.status == "learning":
                if progress is None:
                    progress = previous.progress
                elif previous.progress is not None:
                    progress = max(progress, previous.progress)
            if progress is not None:
                progress = min(max(progress, 0), 100)
            self._status = LearningStatus(status=status, message=message, progress=progress)
            if status == "learning":
                self._terminal.clear()
            else:
                self._terminal.set()
            current = self._status
        self._announce(current)
        return current

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` for every transition; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is in flight. Returns False on timeout."""
        return self._terminal.wait(timeout)

    def _announce(self, status: LearningStatus) -> None:
        suffix = f" - {status.message}" if status.message else ""
        logger.info("Codebase status: %s%s", status.status, suffix)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(status)
            except Exception as exc:
                logger.warning("Status listener %r failed: %s", listener, exc)


__all__ = ["ChannelMessage", "StatusBoard", "StatusChannel", "StatusListener"]
