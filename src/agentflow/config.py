"""Workflow settings with file-based overrides.

Settings are loaded from ``~/.agentflow/config.toml`` (``[workflow]`` table)
when present, otherwise the hardcoded defaults apply.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Final

import structlog

logger = structlog.get_logger()

# ═══════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

DEFAULT_CONFIG_PATH: Final[Path] = Path.home() / ".agentflow" / "config.toml"

# Minimum dynamic weight for a confident transition
DEFAULT_CONFIDENCE_THRESHOLD: Final[float] = 0.3
# Reported confidence for a low-weight transition that still wins
DEFAULT_LOW_CONFIDENCE_FLOOR: Final[float] = 0.5
# Share of the static weight an edge keeps with zero rule confidence
DEFAULT_BASE_BLEND: Final[float] = 0.3
DEFAULT_EDGE_WEIGHT: Final[float] = 0.5

DEFAULT_CYCLE_WINDOW: Final[int] = 10
DEFAULT_MAX_RECENT_VISITS: Final[int] = 2
DEFAULT_SNAPSHOT_LENGTH: Final[int] = 100

DEFAULT_MAX_CONTEXTS: Final[int] = 1024
DEFAULT_CONTEXT_TTL: Final[float] = 3600.0  # seconds idle before eviction


@dataclass(frozen=True)
class WorkflowSettings:
    """Tunable routing and retention parameters."""

    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    low_confidence_floor: float = DEFAULT_LOW_CONFIDENCE_FLOOR
    base_blend: float = DEFAULT_BASE_BLEND
    default_edge_weight: float = DEFAULT_EDGE_WEIGHT
    cycle_window: int = DEFAULT_CYCLE_WINDOW
    max_recent_visits: int = DEFAULT_MAX_RECENT_VISITS
    snapshot_length: int = DEFAULT_SNAPSHOT_LENGTH
    max_contexts: int = DEFAULT_MAX_CONTEXTS
    context_ttl: float | None = DEFAULT_CONTEXT_TTL

    def __post_init__(self) -> None:
        for field_name in [
            "confidence_threshold",
            "low_confidence_floor",
            "base_blend",
            "default_edge_weight",
        ]:
            value = getattr(self, field_name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{field_name} must be in [0.0, 1.0], got {value}")
        for field_name in ["cycle_window", "max_recent_visits", "snapshot_length", "max_contexts"]:
            value = getattr(self, field_name)
            if value < 1:
                raise ValueError(f"{field_name} must be >= 1, got {value}")
        if self.context_ttl is not None and self.context_ttl <= 0:
            raise ValueError(f"context_ttl must be > 0, got {self.context_ttl}")

    def with_overrides(self, **overrides: Any) -> WorkflowSettings:
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)


def load_settings(config_path: Path | None = None) -> WorkflowSettings:
    """Load workflow settings from a TOML file or use defaults.

    Args:
        config_path: Path to a config.toml file. If None, uses
            ``~/.agentflow/config.toml``.

    Returns:
        WorkflowSettings. Unknown keys are ignored; a missing or malformed
        file yields the defaults.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return WorkflowSettings()

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)

        section = data.get("workflow", {})
        known = {f.name for f in fields(WorkflowSettings)}
        overrides = {key: value for key, value in section.items() if key in known}
        # TOML has no null; a non-positive ttl disables expiry
        if "context_ttl" in overrides and overrides["context_ttl"] <= 0:
            overrides["context_ttl"] = None
        return WorkflowSettings(**overrides)
    except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        logger.warning("settings_load_failed", path=str(path), error=str(e))
        return WorkflowSettings()
