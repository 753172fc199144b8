"""
Configuration management for the Steward routing core.

All tables are immutable: sequences are stored as tuples and lookup tables
as read-only mappings, so one config object can be shared across threads
and tests can substitute alternate tables without process-wide effects.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from dotenv import load_dotenv

from .types import FallbackBehavior, Level, TaskType

logger = logging.getLogger(__name__)

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

DEFAULT_CONFIG_PATH = Path.home() / ".steward" / "routing-config.json"


def _frozen(mapping: Mapping[Any, Any]) -> Mapping[Any, Any]:
    return MappingProxyType(dict(mapping))


def _task_table_key(raw: TaskType | str, table: str) -> TaskType | None:
    """Task type for a table key, or None (with a warning) for unknown names."""
    if isinstance(raw, TaskType):
        return raw
    task_type = TaskType.coerce(raw)
    if task_type is TaskType.GENERAL and (raw or "").strip().lower() != TaskType.GENERAL.value:
        logger.warning(f"Ignoring unknown task type {raw!r} in {table}")
        return None
    return task_type


@dataclass(frozen=True)
class PrivacyConfig:
    """Signals that force or suggest local-only processing."""

    keywords: tuple[str, ...] = (
        "private",
        "confidential",
        "personal",
        "secret",
        "password",
        "api key",
        "token",
        "credentials",
        "sensitive",
    )
    strict_task_types: tuple[TaskType, ...] = (
        TaskType.SENSITIVE,
        TaskType.PRIVATE,
        TaskType.CONFIDENTIAL,
        TaskType.PERSONAL,
    )
    medium_task_types: tuple[TaskType, ...] = (TaskType.DEBUG, TaskType.CODE, TaskType.WORK)
    # Late hours are [late_hour_start, 24) and [0, late_hour_end]
    late_hour_start: int = 22
    late_hour_end: int = 5
    local_only_behavior: FallbackBehavior = FallbackBehavior.USE_LOCAL_ONLY

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "local_only_behavior", FallbackBehavior.coerce(self.local_only_behavior)
        )
        object.__setattr__(self, "keywords", tuple(k.lower() for k in self.keywords))
        object.__setattr__(
            self, "strict_task_types", tuple(TaskType.coerce(t) for t in self.strict_task_types)
        )
        object.__setattr__(
            self, "medium_task_types", tuple(TaskType.coerce(t) for t in self.medium_task_types)
        )


_DEFAULT_PREFERENCE_GROUPS: dict[str, tuple[str, ...]] = {
    "fast_response": ("smollm3-1.7b", "smollm3"),
    "quality_local": ("smollm3-8b", "smollm3"),
    "code_analysis": ("smollm3", "codellama"),
    "general_local": ("smollm3", "llama", "mistral"),
}

_DEFAULT_TASK_CAPABILITY: dict[TaskType, tuple[float, str]] = {
    TaskType.ROUTE: (0.9, "fast_response"),
    TaskType.SUMMARIZE: (0.8, "quality_local"),
    TaskType.DEBUG: (0.7, "code_analysis"),
    TaskType.CODE: (0.7, "code_analysis"),
    TaskType.QUICK_QUERY: (0.9, "fast_response"),
    TaskType.SENSITIVE: (0.9, "quality_local"),
    TaskType.EXPLAIN: (0.6, "quality_local"),
    TaskType.WRITE: (0.5, "quality_local"),
    TaskType.RESEARCH: (0.3, "general_local"),
    TaskType.ANALYZE: (0.6, "quality_local"),
}


@dataclass(frozen=True)
class LocalModelConfig:
    """
    Local model preferences and per-task base capability.

    The task table is made total on construction: every TaskType without an
    explicit entry gets (default_capability, default_group).
    """

    preference_groups: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: _frozen(_DEFAULT_PREFERENCE_GROUPS)
    )
    task_capability: Mapping[TaskType, tuple[float, str]] = field(
        default_factory=lambda: _frozen(_DEFAULT_TASK_CAPABILITY)
    )
    default_capability: float = 0.5
    default_group: str = "general_local"
    secondary_models: tuple[str, ...] = ("smollm3", "smollm3-1.7b", "smollm3-8b")
    small_marker: str = "1.7b"
    large_marker: str = "8b"
    flagship_model: str = "smollm3"
    default_model: str = "smollm3"

    def __post_init__(self) -> None:
        groups = {name: tuple(models) for name, models in self.preference_groups.items()}
        if self.default_group not in groups:
            raise ValueError(f"default_group {self.default_group!r} has no preference list")

        table: dict[TaskType, tuple[float, str]] = {}
        for raw_type, (score, group) in self.task_capability.items():
            if group not in groups:
                raise ValueError(f"Unknown preference group {group!r} for task {raw_type}")
            task_type = _task_table_key(raw_type, "task_capability")
            if task_type is not None:
                table[task_type] = (float(score), group)
        for task_type in TaskType:
            table.setdefault(task_type, (self.default_capability, self.default_group))

        object.__setattr__(self, "preference_groups", _frozen(groups))
        object.__setattr__(self, "task_capability", _frozen(table))
        object.__setattr__(self, "secondary_models", tuple(self.secondary_models))

    def capability_for(self, task_type: TaskType) -> tuple[float, tuple[str, ...]]:
        """Base capability score and preferred local models for a task type."""
        score, group = self.task_capability[task_type]
        return score, self.preference_groups[group]


_DEFAULT_CLOUD_TASK_MODELS: dict[TaskType, str] = {
    TaskType.RESEARCH: "perplexity",
    TaskType.WRITE: "gpt-4",
    TaskType.ANALYZE: "claude-3.5-sonnet",
    TaskType.EXPLAIN: "claude-3.5-sonnet",
    TaskType.DEBUG: "gpt-4",
    TaskType.CODE: "gpt-4",
}


@dataclass(frozen=True)
class CloudModelConfig:
    """Cloud model preferences. The task table is made total on construction."""

    task_models: Mapping[TaskType, str] = field(
        default_factory=lambda: _frozen(_DEFAULT_CLOUD_TASK_MODELS)
    )
    default_model: str = "claude-3.5-sonnet"
    flagship_generative: str = "gpt-4"
    flagship_reasoning: str = "claude-3.5-sonnet"
    generative_task_types: tuple[TaskType, ...] = (TaskType.WRITE, TaskType.CREATIVE)
    reasoning_task_types: tuple[TaskType, ...] = (TaskType.ANALYZE, TaskType.EXPLAIN)
    fallback_models: tuple[str, ...] = ("claude-3.5-sonnet", "gpt-4", "perplexity")

    def __post_init__(self) -> None:
        table: dict[TaskType, str] = {}
        for raw_type, model in self.task_models.items():
            task_type = _task_table_key(raw_type, "task_models")
            if task_type is not None:
                table[task_type] = model
        for task_type in TaskType:
            table.setdefault(task_type, self.default_model)
        object.__setattr__(self, "task_models", _frozen(table))
        object.__setattr__(
            self,
            "generative_task_types",
            tuple(TaskType.coerce(t) for t in self.generative_task_types),
        )
        object.__setattr__(
            self,
            "reasoning_task_types",
            tuple(TaskType.coerce(t) for t in self.reasoning_task_types),
        )
        object.__setattr__(self, "fallback_models", tuple(self.fallback_models))

    def model_for(self, task_type: TaskType, complexity: Level) -> str:
        """Cloud model for a task, refined by complexity."""
        if complexity is Level.HIGH:
            if task_type in self.generative_task_types:
                return self.flagship_generative
            if task_type in self.reasoning_task_types:
                return self.flagship_reasoning
        return self.task_models[task_type]


@dataclass(frozen=True)
class ScoringConfig:
    """
    Hand-tuned scoring constants.

    These are calibration parameters: the performance recorder collects the
    data needed to learn them, but nothing feeds learned values back yet.
    """

    # Local capability
    complexity_high_factor: float = 0.7
    complexity_low_factor: float = 1.2
    uncertainty_factor: float = 0.8
    hyperfocus_factor: float = 1.1
    hyperfocus_task_types: tuple[TaskType, ...] = (TaskType.DEBUG, TaskType.CODE)
    privacy_capability_floor: float = 0.8
    high_capability: float = 0.8
    medium_capability: float = 0.5

    # Cloud override
    complexity_override: float = 0.3
    creative_override: float = 0.2
    research_override: float = 0.4
    uncertainty_override: float = 0.2
    cognitive_override: float = 0.1
    explicit_cloud_override: float = 0.5
    night_penalty: float = 0.5
    override_threshold: float = 0.5

    # Decision composition
    privacy_confidence_floor: float = 0.8
    cloud_confidence_boost: float = 0.1
    capable_confidence_boost: float = 0.05
    capable_score_threshold: float = 0.7
    fallback_confidence_penalty: float = 0.1
    fallback_confidence_floor: float = 0.3

    # Privacy analysis confidence
    strict_privacy_confidence: float = 0.9
    default_privacy_confidence: float = 0.6

    max_fallbacks: int = 5
    low_confidence_warning: float = 0.3

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "hyperfocus_task_types",
            tuple(TaskType.coerce(t) for t in self.hyperfocus_task_types),
        )


@dataclass(frozen=True)
class CalibrationConfig:
    """Performance recording and insight settings."""

    insight_ttl_seconds: float = 600.0
    default_window_hours: float = 24.0
    db_path: str = "~/.steward/performance.db"
    latency_baseline_ms: float = 10_000.0
    rating_scale: float = 5.0
    prompt_snippet_chars: int = 100
    peak_hour_min_usage: int = 3
    peak_hour_min_success: float = 0.8


@dataclass(frozen=True)
class RoutingConfig:
    """Complete routing configuration."""

    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    local_models: LocalModelConfig = field(default_factory=LocalModelConfig)
    cloud_models: CloudModelConfig = field(default_factory=CloudModelConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    local_endpoint: str = "http://localhost:12434/engines/v1"
    history_limit: int = 1000

    @classmethod
    def load(cls, path: Path | None = None) -> RoutingConfig:
        """Load configuration from file, then apply environment overrides."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if not path.exists():
            return cls().with_env_overrides()

        with open(path) as f:
            data = json.load(f)

        config = cls(
            privacy=PrivacyConfig(**_section(PrivacyConfig, data.get("privacy", {}))),
            local_models=LocalModelConfig(
                **_section(LocalModelConfig, data.get("local_models", {}))
            ),
            cloud_models=CloudModelConfig(
                **_section(CloudModelConfig, data.get("cloud_models", {}))
            ),
            scoring=ScoringConfig(**_section(ScoringConfig, data.get("scoring", {}))),
            calibration=CalibrationConfig(
                **_section(CalibrationConfig, data.get("calibration", {}))
            ),
            local_endpoint=data.get("local_endpoint", cls.local_endpoint),
            history_limit=int(data.get("history_limit", cls.history_limit)),
        )
        logger.info(f"Loaded routing config from {path}")
        return config.with_env_overrides()

    def with_env_overrides(self) -> RoutingConfig:
        """Apply STEWARD_* environment variables."""
        calibration = self.calibration
        if os.environ.get("STEWARD_DB_PATH"):
            calibration = replace(calibration, db_path=os.environ["STEWARD_DB_PATH"])
        if os.environ.get("STEWARD_INSIGHT_TTL_SECONDS"):
            calibration = replace(
                calibration,
                insight_ttl_seconds=float(os.environ["STEWARD_INSIGHT_TTL_SECONDS"]),
            )
        endpoint = os.environ.get("STEWARD_LOCAL_ENDPOINT") or self.local_endpoint
        return replace(self, calibration=calibration, local_endpoint=endpoint)

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "privacy": _to_json(self.privacy),
                    "local_models": _to_json(self.local_models),
                    "cloud_models": _to_json(self.cloud_models),
                    "scoring": _to_json(self.scoring),
                    "calibration": _to_json(self.calibration),
                    "local_endpoint": self.local_endpoint,
                    "history_limit": self.history_limit,
                },
                f,
                indent=2,
            )


def _section(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only known fields; JSON lists become tuples."""
    known = {f.name for f in fields(cls)}
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.debug(f"Ignoring unknown {cls.__name__} field: {key}")
            continue
        if isinstance(value, list):
            value = tuple(value)
        elif isinstance(value, dict):
            value = {
                k: tuple(v) if isinstance(v, list) else v for k, v in value.items()
            }
        result[key] = value
    return result


def _to_json(section: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in fields(section):
        result[f.name] = _json_value(getattr(section, f.name))
    return result


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {
            (k.value if isinstance(k, Enum) else k): _json_value(v) for k, v in value.items()
        }
    if isinstance(value, (tuple, list)):
        return [_json_value(v) for v in value]
    return value


# Default configuration instance
default_config = RoutingConfig()
