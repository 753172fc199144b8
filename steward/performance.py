"""
Performance recording and calibration insights.

Records every routing decision with its real-world outcome and derives
time-windowed insights (best model per task type, peak hours, cognitive
correlations, calibration error) from those records.

Recording is best-effort telemetry: it never raises into the caller's
request path. Insights are cached per (task type, window) with a fixed TTL;
a cache hit may omit records written since it was computed.

Usage:
    from steward.performance import Outcome, PerformanceRecorder

    recorder = PerformanceRecorder(store)
    recorder.record(decision, Outcome(success=True, response_time_ms=850))
    insight = recorder.insights(TaskType.DEBUG, window_hours=48)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import Counter
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .config import CalibrationConfig
from .model_registry import adapter_type
from .storage import DecisionRecord, InMemoryRecordStore, PerformanceRecord, RecordStore
from .types import CognitiveState, RoutingDecision, TaskType, TimeContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """What happened when a routed model was invoked."""

    success: bool = True
    response_time_ms: float = 0.0
    error_kind: str | None = None
    tokens: int | None = None
    user_rating: float | None = None  # 1-5 scale
    model_used: str | None = None  # Set when a fallback served the request
    session_id: str | None = None


# =============================================================================
# Insight models
# =============================================================================


class ModelStats(BaseModel):
    usage_count: int
    success_rate: float
    avg_response_time: float
    avg_rating: float | None = None
    common_errors: list[str] = Field(default_factory=list)
    performance_score: float


class RankedModel(BaseModel):
    model: str
    score: float
    success_rate: float


class ModelPerformance(BaseModel):
    model_stats: dict[str, ModelStats] = Field(default_factory=dict)
    best_performing: str | None = None
    ranked_models: list[RankedModel] = Field(default_factory=list)


class BucketStats(BaseModel):
    """Usage, success and rating for one hour / capacity / alignment bucket."""

    usage_count: int
    success_rate: float
    avg_rating: float | None = None


class TimePatterns(BaseModel):
    hourly_patterns: dict[int, BucketStats] = Field(default_factory=dict)
    peak_performance_hours: list[int] = Field(default_factory=list)


class CognitiveCorrelations(BaseModel):
    capacity_impact: dict[str, BucketStats] = Field(default_factory=dict)
    alignment_impact: dict[str, BucketStats] = Field(default_factory=dict)
    insights: list[str] = Field(default_factory=list)


class Recommendation(BaseModel):
    type: str  # model_preference, timing, error_prevention, data_collection
    priority: str  # high, medium, low
    message: str
    confidence: float


class Insight(BaseModel):
    """Time-windowed aggregate over performance records for one task type."""

    task_type: str
    analysis_period: str
    sample_size: int
    model_performance: ModelPerformance = Field(default_factory=ModelPerformance)
    time_patterns: TimePatterns = Field(default_factory=TimePatterns)
    cognitive_correlations: CognitiveCorrelations = Field(default_factory=CognitiveCorrelations)
    error_patterns: list[str] = Field(default_factory=list)
    calibration_error: float | None = None
    recommendations: list[Recommendation] = Field(default_factory=list)
    confidence: float = 0.0
    generated_at: float = 0.0


@dataclass(frozen=True)
class ScoringHints:
    """Calibration signals for a task type; not yet consumed by the composer."""

    task_type: TaskType
    best_model: str | None
    best_score: float | None
    calibration_error: float | None
    sample_size: int
    confidence: float


# =============================================================================
# Insight cache
# =============================================================================


class InsightCache:
    """
    Key -> (value, expiry) cache with lazy eviction on read.

    Entries are never invalidated by writes, only by TTL expiry.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# =============================================================================
# Recorder
# =============================================================================


class PerformanceRecorder:
    """
    Persist routing outcomes and derive calibration insights.

    Args:
        store: Record store (defaults to an in-memory store)
        config: Calibration settings (TTL, latency baseline, rating scale)
        clock: Wall-clock source in epoch seconds
        session_id: Session identifier attached to records without one
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        config: CalibrationConfig | None = None,
        clock: Callable[[], float] = time.time,
        session_id: str | None = None,
    ):
        self.store = store if store is not None else InMemoryRecordStore()
        self.config = config or CalibrationConfig()
        self._clock = clock
        self.session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
        self._cache = InsightCache(self.config.insight_ttl_seconds, clock=clock)

    def record(
        self,
        decision: RoutingDecision,
        outcome: Outcome,
        task_text: str = "",
        cognitive_state: CognitiveState | None = None,
        include_decision: bool = True,
        now: datetime | None = None,
    ) -> int | None:
        """
        Record a decision and its outcome.

        Never raises: persistence errors are logged and None is returned.

        Returns:
            Performance record ID, or None if recording failed
        """
        try:
            moment = now or datetime.fromtimestamp(self._clock())
            timestamp = moment.timestamp()
            task_type = decision.metadata.task_type.value
            model = outcome.model_used or decision.model

            if include_decision:
                self.store.insert_routing_decision(
                    DecisionRecord(
                        task_type=task_type,
                        prompt_snippet=task_text[: self.config.prompt_snippet_chars],
                        chosen_model=decision.model,
                        routing_reason=decision.reason,
                        strategy=decision.strategy.value,
                        alternatives=list(decision.fallbacks),
                        hour_of_day=moment.hour,
                        confidence=decision.confidence,
                        privacy_protected=decision.metadata.privacy_protected,
                        timestamp=timestamp,
                    )
                )

            record = PerformanceRecord(
                model=model,
                task_type=task_type,
                response_time_ms=outcome.response_time_ms,
                success=outcome.success,
                error_kind=None if outcome.success else outcome.error_kind,
                tokens=outcome.tokens,
                user_rating=outcome.user_rating,
                hour_of_day=moment.hour,
                day_of_week=moment.weekday(),
                session_id=outcome.session_id or self.session_id,
                adapter_type=adapter_type(model),
                decision_confidence=decision.confidence,
                context_snapshot=self._snapshot(decision, cognitive_state, moment),
                timestamp=timestamp,
            )
            return self.store.insert_performance_record(record)

        except Exception as e:
            logger.warning(f"Failed to record routing performance: {e}")
            return None

    def _snapshot(
        self,
        decision: RoutingDecision,
        cognitive_state: CognitiveState | None,
        moment: datetime,
    ) -> dict[str, Any]:
        snapshot: dict[str, Any] = {
            "strategy": decision.strategy.value,
            "privacy_protected": decision.metadata.privacy_protected,
            "local_score": decision.metadata.local_score,
            "time_period": TimeContext.from_datetime(moment).time_period,
        }
        if cognitive_state is not None:
            snapshot["capacity_level"] = cognitive_state.capacity_level.value
            snapshot["task_alignment_level"] = cognitive_state.task_alignment_level.value
            snapshot["hyperfocus_potential"] = cognitive_state.hyperfocus_potential
        return snapshot

    def insights(self, task_type: TaskType | str, window_hours: float | None = None) -> Insight:
        """
        Get performance insights for a task type.

        Args:
            task_type: Task type to analyze
            window_hours: Hours to look back (default from config)

        Returns:
            Insight; the default insight when there is no data or the store fails
        """
        task_type = TaskType.coerce(task_type)
        hours = window_hours if window_hours is not None else self.config.default_window_hours
        cache_key = (task_type, hours)

        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached.model_copy(deep=True)

        try:
            since = self._clock() - hours * 3600
            records = self.store.query_aggregates(task_type.value, since)

            if not records:
                return self.default_insight(task_type)

            insight = self.analyze(records, task_type, hours)
            self._cache.set(cache_key, insight)
            return insight.model_copy(deep=True)

        except Exception as e:
            logger.warning(f"Failed to get performance insights: {e}")
            return self.default_insight(task_type)

    def scoring_hints(
        self, task_type: TaskType | str, window_hours: float | None = None
    ) -> ScoringHints:
        """Best model and calibration error for a task type."""
        insight = self.insights(task_type, window_hours)
        best = insight.model_performance.best_performing
        best_score = (
            insight.model_performance.model_stats[best].performance_score if best else None
        )
        return ScoringHints(
            task_type=TaskType.coerce(task_type),
            best_model=best,
            best_score=best_score,
            calibration_error=insight.calibration_error,
            sample_size=insight.sample_size,
            confidence=insight.confidence,
        )

    def default_insight(self, task_type: TaskType | str) -> Insight:
        """Insight returned when no performance data is available."""
        return Insight(
            task_type=TaskType.coerce(task_type).value,
            analysis_period="No data available",
            sample_size=0,
            recommendations=[
                Recommendation(
                    type="data_collection",
                    priority="low",
                    message="Insufficient data for performance insights",
                    confidence=0.1,
                )
            ],
            confidence=0.0,
            generated_at=self._clock(),
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(
        self, records: list[PerformanceRecord], task_type: TaskType, window_hours: float
    ) -> Insight:
        """Aggregate records into an insight. Pure over its inputs."""
        model_performance = self.analyze_model_performance(records)
        time_patterns = self.analyze_time_patterns(records)
        error_patterns = top_errors(r.error_kind for r in records if not r.success)

        return Insight(
            task_type=task_type.value,
            analysis_period=f"{window_hours:g} hours",
            sample_size=len(records),
            model_performance=model_performance,
            time_patterns=time_patterns,
            cognitive_correlations=self.analyze_cognitive_correlations(records),
            error_patterns=error_patterns,
            calibration_error=calibration_error(records),
            recommendations=self._recommendations(model_performance, time_patterns, error_patterns),
            confidence=min(len(records) / 10, 1.0),
            generated_at=self._clock(),
        )

    def analyze_model_performance(self, records: list[PerformanceRecord]) -> ModelPerformance:
        grouped: dict[str, list[PerformanceRecord]] = {}
        for record in records:
            grouped.setdefault(record.model, []).append(record)

        stats: dict[str, ModelStats] = {}
        for model, model_records in grouped.items():
            count = len(model_records)
            successes = sum(1 for r in model_records if r.success)
            total_time = sum(r.response_time_ms for r in model_records if r.response_time_ms)
            ratings = [r.user_rating for r in model_records if r.user_rating is not None]

            avg_time = total_time / count
            avg_rating = sum(ratings) / len(ratings) if ratings else None
            stats[model] = ModelStats(
                usage_count=count,
                success_rate=successes / count,
                avg_response_time=avg_time,
                avg_rating=avg_rating,
                common_errors=top_errors(r.error_kind for r in model_records if not r.success),
                performance_score=self.performance_score(successes / count, avg_time, avg_rating),
            )

        ranked = sorted(stats.items(), key=lambda item: (-item[1].performance_score, item[0]))
        return ModelPerformance(
            model_stats=stats,
            best_performing=ranked[0][0] if ranked else None,
            ranked_models=[
                RankedModel(model=m, score=s.performance_score, success_rate=s.success_rate)
                for m, s in ranked
            ],
        )

    def performance_score(
        self, success_rate: float, avg_latency_ms: float, avg_rating: float | None
    ) -> float:
        """0.5 success + 0.25 speed + 0.25 rating, clamped to [0, 1]."""
        speed = max(0.0, 1 - avg_latency_ms / self.config.latency_baseline_ms)
        rating = avg_rating / self.config.rating_scale if avg_rating is not None else 0.5
        score = 0.5 * success_rate + 0.25 * speed + 0.25 * rating
        return max(0.0, min(1.0, score))

    def analyze_time_patterns(self, records: list[PerformanceRecord]) -> TimePatterns:
        hourly = bucket_stats(records, lambda r: r.hour_of_day)

        candidates = [
            (hour, stats)
            for hour, stats in hourly.items()
            if stats.success_rate > self.config.peak_hour_min_success
            and stats.usage_count >= self.config.peak_hour_min_usage
        ]
        # Ranked by success rate plus the raw mean rating
        candidates.sort(
            key=lambda item: (-(item[1].success_rate + (item[1].avg_rating or 0)), item[0])
        )
        return TimePatterns(
            hourly_patterns=hourly,
            peak_performance_hours=[hour for hour, _ in candidates[:3]],
        )

    def analyze_cognitive_correlations(
        self, records: list[PerformanceRecord]
    ) -> CognitiveCorrelations:
        capacity = bucket_stats(records, lambda r: r.context_snapshot.get("capacity_level"))
        alignment = bucket_stats(records, lambda r: r.context_snapshot.get("task_alignment_level"))

        insights: list[str] = []
        if capacity:
            level, stats = max(capacity.items(), key=lambda item: (item[1].success_rate, item[0]))
            if stats.success_rate > 0.8:
                insights.append(f"Best performance with {level} cognitive capacity")

        return CognitiveCorrelations(
            capacity_impact=capacity, alignment_impact=alignment, insights=insights
        )

    def _recommendations(
        self,
        model_performance: ModelPerformance,
        time_patterns: TimePatterns,
        error_patterns: list[str],
    ) -> list[Recommendation]:
        recommendations: list[Recommendation] = []

        best = model_performance.best_performing
        if best:
            recommendations.append(
                Recommendation(
                    type="model_preference",
                    priority="high",
                    message=f"{best} shows best performance for this task type",
                    confidence=model_performance.model_stats[best].performance_score,
                )
            )

        if time_patterns.peak_performance_hours:
            hours = ", ".join(str(h) for h in time_patterns.peak_performance_hours)
            recommendations.append(
                Recommendation(
                    type="timing",
                    priority="medium",
                    message=f"Peak performance hours: {hours}",
                    confidence=0.7,
                )
            )

        if error_patterns:
            recommendations.append(
                Recommendation(
                    type="error_prevention",
                    priority="medium",
                    message=f"Common issues: {', '.join(error_patterns)}",
                    confidence=0.6,
                )
            )

        return recommendations


def top_errors(errors: Iterable[str | None], limit: int = 3) -> list[str]:
    """Most frequent error kinds, ties broken by first appearance."""
    counts = Counter(e for e in errors if e)
    return [error for error, _ in counts.most_common(limit)]


def bucket_stats(
    records: list[PerformanceRecord], key: Callable[[PerformanceRecord], Any]
) -> dict[Any, BucketStats]:
    buckets: dict[Any, list[PerformanceRecord]] = {}
    for record in records:
        value = key(record)
        if value is not None:
            buckets.setdefault(value, []).append(record)

    result = {}
    for value, bucket in buckets.items():
        ratings = [r.user_rating for r in bucket if r.user_rating is not None]
        result[value] = BucketStats(
            usage_count=len(bucket),
            success_rate=sum(1 for r in bucket if r.success) / len(bucket),
            avg_rating=sum(ratings) / len(ratings) if ratings else None,
        )
    return result


def calibration_error(records: list[PerformanceRecord]) -> float | None:
    """Mean |decision confidence - outcome| over records that carry a confidence."""
    pairs = [
        (r.decision_confidence, 1.0 if r.success else 0.0)
        for r in records
        if r.decision_confidence is not None
    ]
    if not pairs:
        return None
    return sum(abs(conf - hit) for conf, hit in pairs) / len(pairs)
