"""Background codebase-learning pipeline and its controller."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, List, Optional

from ..config import LearningConfig
from ..file_tree import FileTreeScanner
from ..llm.gateway import GenerationContext, ModelGateway, select_provider
from ..logging import get_logger
from ..models import ApiKeys, CodebaseAnalysis, LearningStatus
from ..prompting.builder import PromptBuilder
from ..stores.project_store import ProjectStore
from .interpreter import ResponseInterpreter
from .sampler import SampleSelector
from .status import ChannelMessage, StatusBoard, StatusChannel


class LearningInProgressError(RuntimeError):
    """Raised when a run is triggered while another is still learning."""


class DaemonThreadExecutor(Executor):
    """Runs each submission on its own daemon thread.

    The interpreter does not join these threads at exit, so a caller that stops
    waiting on a run can exit while a model call is still pending.
    """

    def __init__(self, thread_name_prefix: str = "deepcode-learn") -> None:
        self._prefix = thread_name_prefix
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._shutdown = False

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("cannot schedule new futures after shutdown")
            future: Future = Future()
            thread = threading.Thread(
                target=self._run,
                args=(future, fn, args, kwargs),
                name=f"{self._prefix}_{len(self._threads)}",
                daemon=True,
            )
            self._threads.append(thread)
        thread.start()
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        with self._lock:
            self._shutdown = True
            threads = list(self._threads)
        if wait:
            for thread in threads:
                thread.join()

    @staticmethod
    def _run(future: Future, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)


class LearningOrchestrator:
    """Owns the learning status and runs scan → sample → prompt → call → interpret → persist off-thread."""

    def __init__(
        self,
        store: ProjectStore,
        *,
        gateway: ModelGateway | None = None,
        config: LearningConfig | None = None,
        scanner: FileTreeScanner | None = None,
        selector: SampleSelector | None = None,
        prompt_builder: PromptBuilder | None = None,
        interpreter: ResponseInterpreter | None = None,
        status_board: StatusBoard | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.config = config or LearningConfig()
        self.store = store
        self.gateway = gateway or ModelGateway()
        self.scanner = scanner or FileTreeScanner(self.config.ignore_names)
        self.selector = selector or SampleSelector(
            max_files=self.config.max_files,
            preview_chars=self.config.preview_chars,
            max_depth=self.config.max_depth,
            source_extensions=self.config.source_extensions,
        )
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.interpreter = interpreter or ResponseInterpreter()
        self.status_board = status_board or StatusBoard()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="deepcode-learn"
        )
        self._owns_executor = executor is None
        self.logger = get_logger("learning.orchestrator")

    def trigger(self, project_path: str | Path, api_keys: ApiKeys) -> None:
        """Start a run in the background; observe the outcome through ``status()``.

        Raises ``ConfigurationError`` when no credential is set and
        ``LearningInProgressError`` when a run is already learning. Neither
        changes the current status.
        """
        provider, credential = select_provider(api_keys)
        root = Path(project_path).expanduser().resolve()
        if not self.status_board.try_begin("Starting codebase analysis"):
            raise LearningInProgressError("Codebase analysis is already in progress")

        self.logger.info("Starting codebase analysis of %s with %s", root, provider)
        try:
            future = self._executor.submit(
                self._analyze, root, provider, credential, self._handle_message
            )
        except RuntimeError as exc:
            self.status_board.publish("error", f"Unable to start analysis: {exc}")
            raise
        future.add_done_callback(self._on_finished)

    def status(self) -> LearningStatus:
        return self.status_board.current

    def wait(self, timeout: Optional[float] = None) -> LearningStatus:
        """Block until the current run settles (or ``timeout`` elapses) and return the status."""
        self.status_board.wait(timeout)
        return self.status_board.current

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Background execution

    def _analyze(
        self, root: Path, provider: str, credential: str, post: StatusChannel
    ) -> None:
        # Only exceptions outside Exception (interpreter shutdown, etc.) reach _on_finished.
        try:
            self._run_pipeline(root, provider, credential, post)
        except Exception as exc:
            self._log_exception("Error in codebase analysis", exc)
            post(
                ChannelMessage(
                    kind="status",
                    payload=LearningStatus(status="error", message=str(exc) or exc.__class__.__name__),
                )
            )

    def _run_pipeline(
        self, root: Path, provider: str, credential: str, post: StatusChannel
    ) -> None:
        def report(message: str, progress: int) -> None:
            post(
                ChannelMessage(
                    kind="status",
                    payload=LearningStatus(status="learning", message=message, progress=progress),
                )
            )

        report("Gathering file information", 10)
        tree = self.scanner.scan(root)

        report("Analyzing project structure", 30)
        previews = self.selector.select(tree, root)
        self.logger.debug("Collected %d file preview(s)", len(previews))

        report("Generating codebase summary", 60)
        request = self.prompt_builder.build_request(root, previews)

        report("Querying AI for codebase analysis", 80)
        reply = self.gateway.generate(
            request.message,
            [],
            provider,
            credential,
            GenerationContext(system=request.system, project_path=str(root)),
        )
        analysis = self.interpreter.interpret(reply)

        report("Completing codebase analysis", 95)
        post(ChannelMessage(kind="complete", payload=analysis))

    def _handle_message(self, message: ChannelMessage) -> None:
        payload = message.payload
        if message.kind == "status" and isinstance(payload, LearningStatus):
            self.status_board.publish(payload.status, payload.message, payload.progress)
        elif message.kind == "complete" and isinstance(payload, CodebaseAnalysis):
            # PersistenceError propagates to _analyze and ends the run in error.
            self.store.update_analysis(payload)
            self.status_board.publish("complete", "Codebase analysis complete", 100)
        else:
            raise TypeError(
                f"Unexpected {message.kind} message payload: {type(payload).__name__}"
            )

    def _on_finished(self, future: Future) -> None:
        if future.cancelled():
            self.status_board.publish("error", "Codebase analysis was cancelled")
            return
        exc = future.exception()
        if exc is not None:
            self._log_exception("Learning worker terminated abnormally", exc)
            self.status_board.publish("error", str(exc) or exc.__class__.__name__)

    def _log_exception(self, message: str, exc: BaseException) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.error("%s: %s", message, exc, exc_info=exc)
        else:
            self.logger.error("%s: %s", message, exc)


__all__ = ["DaemonThreadExecutor", "LearningInProgressError", "LearningOrchestrator"]
