"""Configuration loading for repolens (.repolens.yml)."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .scoring import ScoringPolicy

CONFIG_FILENAME = ".repolens.yml"

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class WorkspaceConfig:
    """Where job workspaces are created and how large a scanned file may be."""

    root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "repolens-workspaces")
    max_file_size: int = DEFAULT_MAX_FILE_SIZE


@dataclass
class CloneConfig:
    depth: Optional[int] = 10
    branch: Optional[str] = None


@dataclass
class ScanConfig:
    """Ignore patterns layered on top of the built-in defaults."""

    extra_ignores: List[str] = field(default_factory=list)
    default_ignores: Optional[List[str]] = None


@dataclass
class ExtractionConfig:
    """Caps applied when the result document is assembled."""

    include_tests: bool = True
    max_api_calls: int = 200
    max_dependencies: int = 500
    max_directories: int = 100
    max_listed_files: int = 50


@dataclass
class QueueConfig:
    """Celery broker settings and the retry policy for queued jobs."""

    broker_url: str = "redis://localhost:6379/0"
    result_backend: Optional[str] = None
    eager: bool = False
    concurrency: int = 2
    attempts: int = 3
    backoff_seconds: float = 5.0
    max_backoff_seconds: float = 300.0
    # Must outlast the slowest job: unacknowledged messages are redelivered after it.
    visibility_timeout: float = 3600.0


@dataclass
class RepolensConfig:
    """Represents the settings defined in .repolens.yml."""

    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    clone: CloneConfig = field(default_factory=CloneConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> RepolensConfig:
    """Load configuration from disk, then apply environment overrides."""
    env = os.environ if environ is None else environ
    config = RepolensConfig()
    if config_path is not None:
        config_file = _resolve_config_path(config_path)
        if config_file.exists():
            data = _read_config(config_file)
            if not isinstance(data, dict):
                raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
            _apply(config, data, config_file.parent.resolve())
    _apply_env(config, env)
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _apply(config: RepolensConfig, data: Dict[str, Any], base: Path) -> None:
    workspace = _as_dict(data.get("workspace"))
    root = _as_str(workspace.get("root"))
    if root:
        root_path = Path(root).expanduser()
        config.workspace.root = root_path if root_path.is_absolute() else base / root_path
    max_size = _as_int(workspace.get("max_file_size"))
    if max_size is not None and max_size > 0:
        config.workspace.max_file_size = max_size

    clone = _as_dict(data.get("clone"))
    if "depth" in clone:
        depth = _as_int(clone.get("depth"))
        config.clone.depth = depth if depth and depth > 0 else None
    config.clone.branch = _as_str(clone.get("branch")) or config.clone.branch

    scan = _as_dict(data.get("scan"))
    config.scan.extra_ignores = _as_str_list(scan.get("ignore"))
    if isinstance(scan.get("default_ignores"), list):
        config.scan.default_ignores = _as_str_list(scan.get("default_ignores"))

    extraction = _as_dict(data.get("extraction"))
    include_tests = _as_bool(extraction.get("include_tests"))
    if include_tests is not None:
        config.extraction.include_tests = include_tests
    for key in ("max_api_calls", "max_dependencies", "max_directories", "max_listed_files"):
        value = _as_int(extraction.get(key))
        if value is not None and value >= 0:
            setattr(config.extraction, key, value)

    queue = _as_dict(data.get("queue"))
    for key in ("concurrency", "attempts"):
        value = _as_int(queue.get(key))
        if value is not None and value > 0:
            setattr(config.queue, key, value)
    for key in ("backoff_seconds", "max_backoff_seconds"):
        number = _as_float(queue.get(key))
        if number is not None and number >= 0:
            setattr(config.queue, key, number)
    visibility_timeout = _as_float(queue.get("visibility_timeout"))
    if visibility_timeout is not None and visibility_timeout > 0:
        config.queue.visibility_timeout = visibility_timeout
    config.queue.broker_url = _as_str(queue.get("broker_url")) or config.queue.broker_url
    config.queue.result_backend = _as_str(queue.get("result_backend")) or config.queue.result_backend
    eager = _as_bool(queue.get("eager"))
    if eager is not None:
        config.queue.eager = eager

    scoring = _as_dict(data.get("scoring"))
    for key in (
        "file_thresholds",
        "framework_thresholds",
        "api_call_thresholds",
        "dependency_thresholds",
        "language_thresholds",
    ):
        thresholds = _as_int_tuple(scoring.get(key))
        if thresholds:
            setattr(config.scoring, key, thresholds)
    for key in ("points_scale", "complexity_weight", "long_file_penalty_cap", "test_bonus"):
        number = _as_float(scoring.get(key))
        if number is not None:
            setattr(config.scoring, key, number)
    long_file_lines = _as_int(scoring.get("long_file_lines"))
    if long_file_lines is not None:
        config.scoring.long_file_lines = long_file_lines


def _apply_env(config: RepolensConfig, env: Mapping[str, str]) -> None:
    workspace_dir = env.get("REPOLENS_WORKSPACE_DIR")
    if workspace_dir:
        config.workspace.root = Path(workspace_dir).expanduser()
    max_size = _as_int(env.get("REPOLENS_MAX_FILE_SIZE"))
    if max_size is not None and max_size > 0:
        config.workspace.max_file_size = max_size
    depth = _as_int(env.get("REPOLENS_CLONE_DEPTH"))
    if depth is not None:
        config.clone.depth = depth if depth > 0 else None
    broker_url = env.get("REPOLENS_BROKER_URL")
    if broker_url:
        config.queue.broker_url = broker_url


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


def _as_int_tuple(value: Any) -> Tuple[int, ...]:
    if not isinstance(value, list):
        return ()
    numbers = [_as_int(item) for item in value]
    if any(number is None for number in numbers):
        return ()
    return tuple(number for number in numbers if number is not None)


__all__ = [
    "CONFIG_FILENAME",
    "CloneConfig",
    "ConfigError",
    "ExtractionConfig",
    "QueueConfig",
    "RepolensConfig",
    "ScanConfig",
    "WorkspaceConfig",
    "load_config",
]
