"""CLI entrypoints for deepcode commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from .config import ConfigError, ConfigurationError, DeepCodeConfig, load_config, resolve_api_keys
from .learning.orchestrator import DaemonThreadExecutor, LearningOrchestrator
from .llm.gateway import ModelGateway
from .logging import configure_logging
from .models import Component
from .stores.project_store import PersistenceError, ProjectStore


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deepcode",
        description="Learn a codebase with an AI model and serve the DeepCode assistant.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .deepcode.yml (defaults to $DEEPCODE_HOME/.deepcode.yml).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    learn_parser = subparsers.add_parser(
        "learn",
        help="Analyze a project folder and store the codebase summary.",
    )
    _add_verbose_option(learn_parser, suppress_default=True)
    learn_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    learn_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the run before giving up.",
    )

    status_parser = subparsers.add_parser(
        "status",
        help="Show the stored project and codebase summary.",
    )
    _add_verbose_option(status_parser, suppress_default=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service used by the desktop shell.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for deepcode commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "learn":
        _run_learn(parser, config, args.path, timeout=args.timeout)
    elif args.command == "status":
        _run_status(config)
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port, config=config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_learn(
    parser: argparse.ArgumentParser,
    config: DeepCodeConfig,
    path: str,
    *,
    timeout: float | None,
) -> None:
    project_path = Path(path).expanduser().resolve()
    if not project_path.is_dir():
        parser.exit(1, f"Project path not found: {path}\n")

    store = ProjectStore(config.state_path)
    state = store.load_or_default()
    try:
        store.save_state(state.model_copy(update={"project_path": str(project_path)}))
    except PersistenceError as exc:
        parser.exit(1, f"{exc}\n")

    # Daemon worker: a timed-out run must not keep the process alive at exit.
    executor = DaemonThreadExecutor()
    orchestrator = LearningOrchestrator(
        store, gateway=ModelGateway(config.llm), config=config.learning, executor=executor
    )
    try:
        orchestrator.trigger(project_path, resolve_api_keys(state.api_keys))
    except ConfigurationError as exc:
        executor.shutdown()
        parser.exit(1, f"{exc}. Set OPENAI_API_KEY or GEMINI_API_KEY.\n")

    status = orchestrator.wait(timeout)
    executor.shutdown(wait=status.status != "learning")
    if status.status == "learning":
        parser.exit(
            1, f"deepcode learn timed out after {timeout}s; the analysis was abandoned.\n"
        )
    if status.status == "error":
        parser.exit(1, f"deepcode learn failed: {status.message}\nRun with --verbose for more details.\n")

    stored = store.load_state()
    if stored is not None and stored.codebase_index is not None:
        _print_analysis(stored.codebase_index.summary, stored.codebase_index.key_components)


def _run_status(config: DeepCodeConfig) -> None:
    state = ProjectStore(config.state_path).load_state()
    if state is None or not state.project_path:
        print("No project folder selected")
        return
    print(f"Project: {state.project_path}")
    if state.last_updated:
        print(f"Last updated: {state.last_updated}")
    if state.codebase_index is None:
        print("Codebase has not been analyzed yet")
        return
    _print_analysis(state.codebase_index.summary, state.codebase_index.key_components)


def _print_analysis(summary: str, components: Sequence[Component]) -> None:
    print(summary)
    if components:
        print("")
        print("Key components:")
        for component in components:
            print(f"- {component.name} ({component.path}): {component.description}")


if __name__ == "__main__":
    main(sys.argv[1:])
