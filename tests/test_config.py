"""Tests for workflow settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from agentflow.config import WorkflowSettings, load_settings


def test_defaults() -> None:
    settings = WorkflowSettings()
    assert settings.confidence_threshold == 0.3
    assert settings.low_confidence_floor == 0.5
    assert settings.base_blend == 0.3
    assert settings.cycle_window == 10
    assert settings.max_recent_visits == 2
    assert settings.snapshot_length == 100


@pytest.mark.parametrize(
    "overrides",
    [
        {"confidence_threshold": 1.5},
        {"base_blend": -0.1},
        {"cycle_window": 0},
        {"max_contexts": 0},
        {"context_ttl": 0},
    ],
)
def test_validation(overrides: dict) -> None:
    with pytest.raises(ValueError):
        WorkflowSettings(**overrides)


def test_with_overrides() -> None:
    settings = WorkflowSettings().with_overrides(max_recent_visits=3)
    assert settings.max_recent_visits == 3
    assert settings.cycle_window == 10


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "absent.toml") == WorkflowSettings()


def test_load_from_toml(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text(
        "[workflow]\n"
        "confidence_threshold = 0.4\n"
        "cycle_window = 6\n"
        "context_ttl = 0\n"
        "unknown_key = true\n"
    )
    settings = load_settings(config)

    assert settings.confidence_threshold == 0.4
    assert settings.cycle_window == 6
    assert settings.context_ttl is None
    assert settings.low_confidence_floor == 0.5


def test_malformed_toml_falls_back(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text("[workflow\nconfidence_threshold = ")

    with capture_logs() as logs:
        settings = load_settings(config)

    assert settings == WorkflowSettings()
    assert any(log["event"] == "settings_load_failed" for log in logs)


def test_invalid_value_falls_back(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text("[workflow]\nbase_blend = 2.0\n")
    assert load_settings(config) == WorkflowSettings()
