"""Tests for repolens.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from repolens.config import ConfigError, RepolensConfig, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, RepolensConfig)
    assert config.clone.depth == 10
    assert config.clone.branch is None
    assert config.workspace.max_file_size == 100 * 1024 * 1024
    assert config.scan.extra_ignores == []
    assert config.scan.default_ignores is None
    assert config.extraction.include_tests is True
    assert config.extraction.max_api_calls == 200
    assert config.queue.concurrency == 2
    assert config.queue.attempts == 3
    assert config.queue.broker_url == "redis://localhost:6379/0"
    assert config.queue.eager is False
    assert config.queue.visibility_timeout == 3600.0
    assert config.scoring.file_thresholds == (100, 500, 1000)


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text(
        """
workspace:
  root: "clones"
  max_file_size: 2048
clone:
  depth: 0
  branch: "main"
scan:
  ignore:
    - "fixtures/"
    - "*.snap"
extraction:
  include_tests: false
  max_api_calls: 25
queue:
  concurrency: 4
  backoff_seconds: 0.5
  broker_url: "redis://broker:6379/1"
  visibility_timeout: 900
  eager: "yes"
scoring:
  file_thresholds: [10, 20, 30]
  test_bonus: 2
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path, environ={})

    assert config.workspace.root == tmp_path.resolve() / "clones"
    assert config.workspace.max_file_size == 2048
    assert config.clone.depth is None
    assert config.clone.branch == "main"
    assert config.scan.extra_ignores == ["fixtures/", "*.snap"]
    assert config.extraction.include_tests is False
    assert config.extraction.max_api_calls == 25
    assert config.extraction.max_dependencies == 500
    assert config.queue.concurrency == 4
    assert config.queue.backoff_seconds == 0.5
    assert config.queue.broker_url == "redis://broker:6379/1"
    assert config.queue.visibility_timeout == 900.0
    assert config.queue.eager is True
    assert config.scoring.file_thresholds == (10, 20, 30)
    assert config.scoring.test_bonus == 2.0


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yml"
    config_file.write_text(
        """
queue:
  concurrency: 0
  attempts: "lots"
scoring:
  file_thresholds: [10, "many"]
""",
        encoding="utf-8",
    )

    config = load_config(config_file, environ={})

    assert config.queue.concurrency == 2
    assert config.queue.attempts == 3
    assert config.scoring.file_thresholds == (100, 500, 1000)


def test_environment_overrides_file_settings(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text("clone:\n  depth: 5\n", encoding="utf-8")

    config = load_config(
        tmp_path,
        environ={
            "REPOLENS_WORKSPACE_DIR": str(tmp_path / "ws"),
            "REPOLENS_MAX_FILE_SIZE": "1024",
            "REPOLENS_CLONE_DEPTH": "0",
            "REPOLENS_BROKER_URL": "redis://queue:6379/0",
        },
    )

    assert config.workspace.root == tmp_path / "ws"
    assert config.workspace.max_file_size == 1024
    assert config.clone.depth is None
    assert config.queue.broker_url == "redis://queue:6379/0"


def test_load_config_raises_on_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text("clone: [\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, environ={})


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path, environ={}) == RepolensConfig()
