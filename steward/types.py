"""
Shared type definitions for the Steward routing core.

Inputs (classification, cognitive state, time, user profile) are produced
upstream and treated as immutable. Pipeline results are frozen so a decision
can never be mutated after construction.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TaskType(str, Enum):
    """Task types produced by the upstream classifier."""

    ROUTE = "route"
    SUMMARIZE = "summarize"
    DEBUG = "debug"
    CODE = "code"
    QUICK_QUERY = "quick_query"
    SENSITIVE = "sensitive"
    EXPLAIN = "explain"
    WRITE = "write"
    RESEARCH = "research"
    ANALYZE = "analyze"
    CREATIVE = "creative"
    DESIGN = "design"
    PRIVATE = "private"
    CONFIDENTIAL = "confidential"
    PERSONAL = "personal"
    WORK = "work"
    GENERAL = "general"

    @classmethod
    def coerce(cls, value: TaskType | str | None) -> TaskType:
        """Map a raw value onto a task type, falling back to GENERAL."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.GENERAL
        if not isinstance(value, str):
            raise InvalidInputError(f"task type must be a string, got {type(value).__name__}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.GENERAL


class Level(str, Enum):
    """Three-step level used for complexity, capacity and alignment."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def coerce(cls, value: Level | str | None) -> Level:
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.MEDIUM
        if not isinstance(value, str):
            raise InvalidInputError(f"level must be a string, got {type(value).__name__}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.MEDIUM


class UncertaintyLevel(str, Enum):
    """Classifier uncertainty about its own result."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @classmethod
    def coerce(cls, value: UncertaintyLevel | str | None) -> UncertaintyLevel:
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.MEDIUM
        if not isinstance(value, str):
            raise InvalidInputError(
                f"uncertainty must be a string, got {type(value).__name__}"
            )
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.MEDIUM


class PrivacyLevel(str, Enum):
    STRICT = "strict"
    MEDIUM = "medium"
    RELAXED = "relaxed"


class FallbackBehavior(str, Enum):
    """What the user wants when cloud processing is unavailable."""

    FALLBACK_TO_LOCAL = "fallback_to_local"
    USE_LOCAL_ONLY = "use_local_only"

    @classmethod
    def coerce(cls, value: FallbackBehavior | str | None) -> FallbackBehavior:
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.FALLBACK_TO_LOCAL
        if not isinstance(value, str):
            raise InvalidInputError(
                f"fallback behavior must be a string, got {type(value).__name__}"
            )
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.FALLBACK_TO_LOCAL


class RoutingStrategy(str, Enum):
    """Named decision branch that produced a routing decision."""

    PRIVACY_LOCAL_ONLY = "privacy_local_only"
    CLOUD_OVERRIDE = "cloud_override"
    LOCAL_FIRST_CAPABLE = "local_first_capable"
    LOCAL_FIRST_FALLBACK = "local_first_fallback"


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class Classification:
    """
    Upstream task classification.

    String values are coerced onto the enums; unknown values degrade to the
    table defaults (GENERAL task type, medium complexity and uncertainty).
    """

    type: TaskType = TaskType.GENERAL
    complexity: Level = Level.MEDIUM
    uncertainty: UncertaintyLevel = UncertaintyLevel.MEDIUM
    keywords: frozenset[str] = frozenset()
    requires_creativity: bool | None = None  # None: derive from task type

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TaskType.coerce(self.type))
        object.__setattr__(self, "complexity", Level.coerce(self.complexity))
        object.__setattr__(self, "uncertainty", UncertaintyLevel.coerce(self.uncertainty))
        object.__setattr__(self, "keywords", _coerce_keywords(self.keywords))

    @property
    def needs_creativity(self) -> bool:
        if self.requires_creativity is not None:
            return self.requires_creativity
        return self.type in (TaskType.WRITE, TaskType.CREATIVE, TaskType.DESIGN)


@dataclass(frozen=True)
class CognitiveState:
    """Attention and capacity signals for the current user."""

    capacity_level: Level = Level.MEDIUM
    task_alignment_level: Level = Level.MEDIUM
    hyperfocus_potential: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "capacity_level", Level.coerce(self.capacity_level))
        object.__setattr__(
            self, "task_alignment_level", Level.coerce(self.task_alignment_level)
        )
        object.__setattr__(self, "hyperfocus_potential", bool(self.hyperfocus_potential))


@dataclass(frozen=True)
class TimeContext:
    """Hour of day at decision time. Recomputed per call, never persisted."""

    hour: int

    def __post_init__(self) -> None:
        if isinstance(self.hour, bool) or not isinstance(self.hour, int):
            raise InvalidInputError(f"hour must be an int, got {type(self.hour).__name__}")
        if not 0 <= self.hour <= 23:
            raise InvalidInputError(f"hour must be within 0..23, got {self.hour}")

    @classmethod
    def from_datetime(cls, moment: datetime) -> TimeContext:
        return cls(hour=moment.hour)

    @classmethod
    def now(cls) -> TimeContext:
        return cls.from_datetime(datetime.now())

    def is_late_hours(self, start: int = 22, end: int = 5) -> bool:
        """True for hours in [start, 24) or [0, end]."""
        return self.hour >= start or self.hour <= end

    @property
    def time_period(self) -> str:
        if 12 <= self.hour < 18:
            return "afternoon"
        if 18 <= self.hour < 24:
            return "evening"
        if 0 <= self.hour < 6:
            return "night"
        return "morning"


@dataclass(frozen=True)
class UserProfile:
    """Privacy and cloud preferences from the user's profile."""

    prefer_cloud_override: bool = False
    cloud_failure: FallbackBehavior = FallbackBehavior.FALLBACK_TO_LOCAL
    privacy_keywords: tuple[str, ...] = ()
    name: str = "default"

    def __post_init__(self) -> None:
        object.__setattr__(self, "cloud_failure", FallbackBehavior.coerce(self.cloud_failure))
        object.__setattr__(
            self, "privacy_keywords", tuple(sorted(_coerce_keywords(self.privacy_keywords)))
        )


@dataclass(frozen=True)
class BaselineSelection:
    """Selection made before local-first routing is applied."""

    model: str
    reason: str = "Base routing decision"
    confidence: float = 0.5


# =============================================================================
# Pipeline results
# =============================================================================


@dataclass(frozen=True)
class PrivacyAnalysis:
    level: PrivacyLevel
    requires_local: bool
    reasons: tuple[str, ...]
    confidence: float


@dataclass(frozen=True)
class CapabilityAssessment:
    score: float
    level: Level
    recommended_model: str
    preferred_local_models: tuple[str, ...]
    limitations: tuple[str, ...] = ()


@dataclass(frozen=True)
class OverrideEvaluation:
    should_override: bool
    score: float  # clamped to [0, 1]
    confidence: float
    reasons: tuple[str, ...]
    recommended_model: str | None
    raw_score: float = 0.0  # unclamped sum of signals


@dataclass(frozen=True)
class DecisionMetadata:
    original_model: str
    local_candidate: str
    cloud_candidate: str | None
    privacy_protected: bool
    local_score: float
    task_type: TaskType = TaskType.GENERAL


@dataclass(frozen=True)
class RoutingDecision:
    """
    Final routing decision.

    Created once per inbound task; a new call produces a new instance.
    """

    model: str
    reason: str
    confidence: float
    strategy: RoutingStrategy
    fallbacks: tuple[str, ...]
    metadata: DecisionMetadata

    @property
    def all_models(self) -> list[str]:
        """All models in order of preference."""
        return [self.model, *self.fallbacks]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["strategy"] = self.strategy.value
        data["fallbacks"] = list(self.fallbacks)
        data["metadata"]["task_type"] = self.metadata.task_type.value
        return data


class ValidationResult(BaseModel):
    """Result of checking a routing decision against the privacy invariant."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class RoutedTask:
    """A decision together with the analyses that produced it."""

    decision: RoutingDecision
    privacy: PrivacyAnalysis
    capability: CapabilityAssessment
    override: OverrideEvaluation
    validation: ValidationResult
    rederived: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)


def _coerce_keywords(value: Iterable[str] | None) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        raise InvalidInputError("keywords must be a collection of strings, not a string")
    try:
        items = list(value)
    except TypeError:
        raise InvalidInputError(
            f"keywords must be iterable, got {type(value).__name__}"
        ) from None
    for item in items:
        if not isinstance(item, str):
            raise InvalidInputError(f"keyword must be a string, got {type(item).__name__}")
    return frozenset(k.strip().lower() for k in items if k.strip())


# Steward Error Classes


class StewardError(Exception):
    """Base class for Steward errors."""

    pass


class InvalidInputError(StewardError, TypeError):
    """Routing input has the wrong shape or type."""

    pass


class PrivacyViolationError(StewardError):
    """A local-only decision could not be derived with a local model."""

    def __init__(self, model: str, errors: list[str]):
        self.model = model
        self.errors = errors
        super().__init__(f"Privacy requires local processing but got {model}: {'; '.join(errors)}")
