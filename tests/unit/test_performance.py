"""
Unit tests for performance recording and calibration insights.
"""

import sqlite3

import pytest

from steward.config import CalibrationConfig
from steward.performance import (
    InsightCache,
    Outcome,
    PerformanceRecorder,
    calibration_error,
    top_errors,
)
from steward.storage import InMemoryRecordStore, PerformanceRecord
from steward.types import (
    CognitiveState,
    DecisionMetadata,
    Level,
    RoutingDecision,
    RoutingStrategy,
    TaskType,
)


def make_decision(model="smollm3", task_type=TaskType.DEBUG, confidence=0.8):
    return RoutingDecision(
        model=model,
        reason="Base routing decision → Privacy: Local-only processing required",
        confidence=confidence,
        strategy=RoutingStrategy.PRIVACY_LOCAL_ONLY,
        fallbacks=("codellama", "smollm3-1.7b"),
        metadata=DecisionMetadata(
            original_model=model,
            local_candidate=model,
            cloud_candidate=None,
            privacy_protected=True,
            local_score=0.8,
            task_type=task_type,
        ),
    )


def make_record(model="smollm3", success=True, hour=10, rating=None, latency=1000.0, **kwargs):
    return PerformanceRecord(
        model=model,
        task_type="debug",
        response_time_ms=latency,
        success=success,
        hour_of_day=hour,
        day_of_week=2,
        session_id="session_test",
        timestamp=1_760_000_000.0,
        user_rating=rating,
        **kwargs,
    )


class FailingStore:
    """Store whose every operation fails."""

    def insert_performance_record(self, record):
        raise sqlite3.OperationalError("database is locked")

    def insert_routing_decision(self, record):
        raise sqlite3.OperationalError("database is locked")

    def query_aggregates(self, task_type, since):
        raise sqlite3.OperationalError("database is locked")


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def recorder(store, clock):
    return PerformanceRecorder(store, clock=clock, session_id="session_test")


class TestRecord:
    """Tests for recording outcomes."""

    def test_record_persists_decision_and_outcome(self, recorder, store):
        record_id = recorder.record(
            make_decision(),
            Outcome(success=True, response_time_ms=850, tokens=120, user_rating=4),
            task_text="Why does my login fail?",
            cognitive_state=CognitiveState(capacity_level=Level.HIGH),
        )

        assert record_id == 1
        assert len(store) == 1
        decision = store.decisions[0]
        assert decision.chosen_model == "smollm3"
        assert decision.strategy == "privacy_local_only"
        assert decision.alternatives == ["codellama", "smollm3-1.7b"]
        assert decision.privacy_protected is True

        record = store.query_aggregates("debug", 0)[0]
        assert record.model == "smollm3"
        assert record.adapter_type == "local"
        assert record.session_id == "session_test"
        assert record.decision_confidence == 0.8
        assert record.context_snapshot["capacity_level"] == "high"
        assert record.context_snapshot["strategy"] == "privacy_local_only"

    def test_prompt_snippet_truncated(self, recorder, store):
        recorder.record(make_decision(), Outcome(), task_text="x" * 500)
        assert len(store.decisions[0].prompt_snippet) == 100

    def test_fallback_model_is_recorded(self, recorder, store):
        recorder.record(make_decision(), Outcome(model_used="gpt-4"))
        record = store.query_aggregates("debug", 0)[0]
        assert record.model == "gpt-4"
        assert record.adapter_type == "cloud"

    def test_error_kind_only_on_failure(self, recorder, store):
        recorder.record(make_decision(), Outcome(success=True, error_kind="timeout"))
        recorder.record(make_decision(), Outcome(success=False, error_kind="timeout"))
        records = store.query_aggregates("debug", 0)
        assert sorted(r.error_kind or "" for r in records) == ["", "timeout"]

    def test_without_decision_row(self, recorder, store):
        recorder.record(make_decision(), Outcome(), include_decision=False)
        assert store.decisions == []
        assert len(store) == 1

    def test_store_failure_is_swallowed(self, clock, caplog):
        recorder = PerformanceRecorder(FailingStore(), clock=clock)
        assert recorder.record(make_decision(), Outcome()) is None
        assert "Failed to record routing performance" in caplog.text


class TestInsights:
    """Tests for insight retrieval and caching."""

    def test_default_insight_without_data(self, recorder):
        insight = recorder.insights(TaskType.DEBUG)
        assert insight.sample_size == 0
        assert insight.confidence == 0.0
        assert insight.analysis_period == "No data available"
        assert [r.type for r in insight.recommendations] == ["data_collection"]

    def test_default_insight_on_store_failure(self, clock):
        recorder = PerformanceRecorder(FailingStore(), clock=clock)
        insight = recorder.insights("debug")
        assert insight.sample_size == 0
        assert insight.recommendations[0].type == "data_collection"

    def test_default_insight_is_not_cached(self, recorder):
        assert recorder.insights(TaskType.DEBUG).sample_size == 0
        recorder.record(make_decision(), Outcome())
        assert recorder.insights(TaskType.DEBUG).sample_size == 1

    def test_cached_insight_may_be_stale(self, recorder, clock):
        recorder.record(make_decision(), Outcome())
        assert recorder.insights(TaskType.DEBUG).sample_size == 1

        recorder.record(make_decision(), Outcome())
        clock.advance(300)
        assert recorder.insights(TaskType.DEBUG).sample_size == 1

        clock.advance(301)
        assert recorder.insights(TaskType.DEBUG).sample_size == 2

    def test_callers_cannot_mutate_cached_insight(self, recorder):
        recorder.record(make_decision(task_type=TaskType.SUMMARIZE), Outcome())

        first = recorder.insights(TaskType.SUMMARIZE)
        first.recommendations.clear()
        first.model_performance.model_stats.clear()

        second = recorder.insights(TaskType.SUMMARIZE)
        assert [r.type for r in second.recommendations] == ["model_preference"]
        assert "smollm3" in second.model_performance.model_stats

        second.recommendations.clear()
        assert recorder.insights(TaskType.SUMMARIZE).recommendations

    def test_cache_keyed_by_window(self, recorder):
        recorder.record(make_decision(), Outcome())
        recorder.insights(TaskType.DEBUG, window_hours=24)
        recorder.record(make_decision(), Outcome())
        assert recorder.insights(TaskType.DEBUG, window_hours=48).sample_size == 2

    def test_clear_cache(self, recorder):
        recorder.record(make_decision(), Outcome())
        recorder.insights(TaskType.DEBUG)
        recorder.record(make_decision(), Outcome())
        recorder.clear_cache()
        assert recorder.insights(TaskType.DEBUG).sample_size == 2

    def test_window_excludes_old_records(self, recorder, clock):
        recorder.record(make_decision(), Outcome())
        clock.advance(25 * 3600)
        recorder.record(make_decision(), Outcome())
        assert recorder.insights(TaskType.DEBUG).sample_size == 1

    def test_task_types_are_separate(self, recorder):
        recorder.record(make_decision(task_type=TaskType.CODE), Outcome())
        assert recorder.insights(TaskType.DEBUG).sample_size == 0
        assert recorder.insights("code").sample_size == 1

    def test_best_model_and_recommendations(self, recorder):
        for _ in range(3):
            recorder.record(make_decision("smollm3"), Outcome(response_time_ms=500, user_rating=5))
        recorder.record(
            make_decision("codellama"),
            Outcome(success=False, response_time_ms=9000, error_kind="timeout"),
        )

        insight = recorder.insights(TaskType.DEBUG)
        assert insight.sample_size == 4
        assert insight.confidence == pytest.approx(0.4)
        assert insight.model_performance.best_performing == "smollm3"
        assert [m.model for m in insight.model_performance.ranked_models] == [
            "smollm3",
            "codellama",
        ]
        assert insight.error_patterns == ["timeout"]
        types = [r.type for r in insight.recommendations]
        assert types[0] == "model_preference"
        assert "error_prevention" in types

    def test_scoring_hints(self, recorder):
        recorder.record(make_decision(confidence=0.8), Outcome(success=True))
        hints = recorder.scoring_hints(TaskType.DEBUG)
        assert hints.task_type is TaskType.DEBUG
        assert hints.best_model == "smollm3"
        assert hints.calibration_error == pytest.approx(0.2)
        assert hints.sample_size == 1


class TestPerformanceScore:
    @pytest.fixture
    def scorer(self):
        return PerformanceRecorder(config=CalibrationConfig())

    def test_perfect(self, scorer):
        assert scorer.performance_score(1.0, 0.0, 5.0) == pytest.approx(1.0)

    def test_neutral_rating(self, scorer):
        assert scorer.performance_score(1.0, 0.0, None) == pytest.approx(0.875)

    def test_slow_model_gets_no_speed_credit(self, scorer):
        assert scorer.performance_score(0.0, 20_000.0, None) == pytest.approx(0.125)

    def test_mixed(self, scorer):
        assert scorer.performance_score(0.5, 5000.0, 4.0) == pytest.approx(
            0.25 + 0.125 + 0.2
        )

    def test_ties_broken_by_name(self, scorer):
        records = [make_record("mistral"), make_record("llama")]
        performance = scorer.analyze_model_performance(records)
        assert performance.best_performing == "llama"


class TestTimePatterns:
    @pytest.fixture
    def analyzer(self):
        return PerformanceRecorder()

    def test_peak_hours_need_usage_and_success(self, analyzer):
        records = (
            [make_record(hour=9) for _ in range(3)]
            + [make_record(hour=14) for _ in range(2)]
            + [make_record(hour=20) for _ in range(3)]
            + [make_record(hour=20, success=False)]
        )
        patterns = analyzer.analyze_time_patterns(records)
        assert patterns.peak_performance_hours == [9]
        assert patterns.hourly_patterns[20].success_rate == pytest.approx(0.75)

    def test_peak_hours_ranked_by_rating(self, analyzer):
        records = (
            [make_record(hour=9, rating=3) for _ in range(3)]
            + [make_record(hour=11, rating=5) for _ in range(3)]
            + [make_record(hour=15) for _ in range(3)]
        )
        patterns = analyzer.analyze_time_patterns(records)
        assert patterns.peak_performance_hours == [11, 9, 15]

    def test_rating_outweighs_small_success_gap(self, analyzer):
        flawless = [make_record(hour=8, rating=3) for _ in range(10)]
        well_rated = [make_record(hour=16, rating=3.4) for _ in range(9)] + [
            make_record(hour=16, rating=3.4, success=False)
        ]
        patterns = analyzer.analyze_time_patterns(flawless + well_rated)
        assert patterns.peak_performance_hours == [16, 8]

    def test_cognitive_correlations(self, analyzer):
        records = [
            make_record(context_snapshot={"capacity_level": "high"}),
            make_record(context_snapshot={"capacity_level": "high"}),
            make_record(success=False, context_snapshot={"capacity_level": "low"}),
            make_record(),
        ]
        correlations = analyzer.analyze_cognitive_correlations(records)
        assert set(correlations.capacity_impact) == {"high", "low"}
        assert correlations.capacity_impact["high"].usage_count == 2
        assert correlations.insights == ["Best performance with high cognitive capacity"]


class TestHelpers:
    def test_top_errors(self):
        errors = ["timeout", "http_status", "timeout", None, "parse_error", "http_status"]
        assert top_errors(errors, limit=2) == ["timeout", "http_status"]

    def test_calibration_error(self):
        records = [
            make_record(success=True, decision_confidence=0.8),
            make_record(success=False, decision_confidence=0.6),
            make_record(success=True),
        ]
        assert calibration_error(records) == pytest.approx(0.4)

    def test_calibration_error_without_confidence(self):
        assert calibration_error([make_record()]) is None


class TestInsightCache:
    def test_expiry(self, clock):
        cache = InsightCache(ttl_seconds=10, clock=clock)
        cache.set("debug", "value")
        clock.advance(9)
        assert cache.get("debug") == "value"
        clock.advance(1)
        assert cache.get("debug") is None
        assert len(cache) == 0

    def test_missing_key(self, clock):
        assert InsightCache(ttl_seconds=10, clock=clock).get("nope") is None
