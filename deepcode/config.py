"""Configuration loading for deepcode (.deepcode.yml and environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .models import ApiKeys

CONFIG_FILENAME = ".deepcode.yml"
HOME_ENV_KEY = "DEEPCODE_HOME"

ENV_OPENAI_KEYS = ("DEEPCODE_OPENAI_API_KEY", "OPENAI_API_KEY")
ENV_GEMINI_KEYS = ("DEEPCODE_GEMINI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")

DEFAULT_SOURCE_EXTENSIONS: tuple[str, ...] = (
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".py",
    ".java",
    ".c",
    ".cpp",
    ".h",
    ".go",
    ".rs",
    ".rb",
    ".php",
)

DEFAULT_IGNORE_NAMES: tuple[str, ...] = ("node_modules", ".git")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


class ConfigurationError(RuntimeError):
    """Raised when no usable provider credential is configured."""


@dataclass
class LearningConfig:
    """Bounds applied to one codebase-learning run."""

    max_files: int = 20
    preview_chars: int = 1000
    max_depth: int = 3
    source_extensions: tuple[str, ...] = DEFAULT_SOURCE_EXTENSIONS
    ignore_names: tuple[str, ...] = DEFAULT_IGNORE_NAMES


@dataclass
class LLMConfig:
    """Provider runtime settings."""

    openai_model: str = "gpt-4o"
    gemini_model: str = "gemini-1.5-flash"
    temperature: Optional[float] = 0.7
    max_tokens: Optional[int] = 2000
    request_timeout: Optional[float] = None
    openai_base_url: Optional[str] = None
    gemini_base_url: Optional[str] = None


@dataclass
class DeepCodeConfig:
    """Represents the settings defined in .deepcode.yml."""

    home: Path
    learning: LearningConfig = field(default_factory=LearningConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    state_file: Optional[Path] = None

    @property
    def state_path(self) -> Path:
        return self.state_file or self.home / "project.json"


def default_home() -> Path:
    """Return the application data directory."""
    override = os.getenv(HOME_ENV_KEY)
    if override:
        return Path(override).expanduser().resolve()
    return (Path.home() / ".deepcode").resolve()


def load_config(config_path: Path | None = None) -> DeepCodeConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    home = config_file.parent

    if not config_file.exists():
        return DeepCodeConfig(home=home)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    learning = LearningConfig()
    learning_data = _as_dict(data.get("learning"))
    if learning_data:
        learning.max_files = _positive_int(learning_data, "max_files", learning.max_files)
        learning.preview_chars = _positive_int(
            learning_data, "preview_chars", learning.preview_chars
        )
        learning.max_depth = _positive_int(learning_data, "max_depth", learning.max_depth)
        extensions = _as_str_list(learning_data.get("source_extensions"))
        if extensions:
            learning.source_extensions = tuple(_normalise_extension(ext) for ext in extensions)
        ignore_names = _as_str_list(learning_data.get("ignore_names"))
        if ignore_names:
            learning.ignore_names = tuple(ignore_names)

    llm = LLMConfig()
    llm_data = _as_dict(data.get("llm"))
    if llm_data:
        llm.openai_model = _as_str(llm_data.get("openai_model")) or llm.openai_model
        llm.gemini_model = _as_str(llm_data.get("gemini_model")) or llm.gemini_model
        if "temperature" in llm_data:
            llm.temperature = _as_float(llm_data.get("temperature"))
        if "max_tokens" in llm_data:
            llm.max_tokens = _as_int(llm_data.get("max_tokens"))
        llm.request_timeout = _as_float(llm_data.get("request_timeout"))
        llm.openai_base_url = _as_str(llm_data.get("openai_base_url"))
        llm.gemini_base_url = _as_str(llm_data.get("gemini_base_url"))

    state_file = None
    storage_data = _as_dict(data.get("storage"))
    state_file_str = _as_str(storage_data.get("state_file")) if storage_data else None
    if state_file_str:
        state_file = (home / state_file_str).expanduser().resolve()

    return DeepCodeConfig(home=home, learning=learning, llm=llm, state_file=state_file)


def resolve_api_keys(
    stored: ApiKeys | None = None, environ: Mapping[str, str] | None = None
) -> ApiKeys:
    """Merge stored credentials with environment fallbacks; stored keys win."""
    env = os.environ if environ is None else environ
    from_env = ApiKeys(
        openai=_first_env_value(env, ENV_OPENAI_KEYS),
        gemini=_first_env_value(env, ENV_GEMINI_KEYS),
    )
    if stored is None:
        return from_env
    return stored.merged(from_env)


def _resolve_config_path(config_path: Path | None) -> Path:
    if config_path is None:
        return default_home() / CONFIG_FILENAME
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _first_env_value(env: Mapping[str, str], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _positive_int(data: Mapping[str, Any], key: str, default: int) -> int:
    if key not in data:
        return default
    value = _as_int(data.get(key))
    if value is None or value <= 0:
        raise ConfigError(f"learning.{key} must be a positive integer")
    return value


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "ConfigError",
    "ConfigurationError",
    "DeepCodeConfig",
    "LLMConfig",
    "LearningConfig",
    "default_home",
    "load_config",
    "resolve_api_keys",
]
