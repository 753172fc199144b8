"""
Unit tests for decision composition.
"""

import pytest

from steward.composer import DecisionComposer
from steward.types import (
    BaselineSelection,
    CapabilityAssessment,
    Level,
    OverrideEvaluation,
    PrivacyAnalysis,
    PrivacyLevel,
    RoutingStrategy,
    TaskType,
)

RELAXED = PrivacyAnalysis(
    level=PrivacyLevel.RELAXED, requires_local=False, reasons=(), confidence=0.6
)
LOCAL_ONLY = PrivacyAnalysis(
    level=PrivacyLevel.STRICT,
    requires_local=True,
    reasons=("Privacy keywords detected",),
    confidence=0.9,
)
NO_OVERRIDE = OverrideEvaluation(
    should_override=False, score=0.2, confidence=0.0, reasons=(), recommended_model=None
)
CLOUD_OVERRIDE = OverrideEvaluation(
    should_override=True,
    score=1.0,
    confidence=1.0,
    reasons=("High complexity exceeds local capability", "User explicit cloud preference"),
    recommended_model="gpt-4",
    raw_score=1.0,
)


def capability(score, level):
    return CapabilityAssessment(
        score=score,
        level=level,
        recommended_model="smollm3",
        preferred_local_models=("smollm3", "codellama"),
    )


@pytest.fixture
def composer():
    return DecisionComposer()


@pytest.fixture
def baseline():
    return BaselineSelection(model="claude-3.5-sonnet", reason="Baseline pick", confidence=0.5)


class TestBranches:
    """The first matching branch wins."""

    def test_privacy_beats_override(self, composer, baseline):
        decision = composer.compose(
            baseline, capability(0.8, Level.HIGH), CLOUD_OVERRIDE, LOCAL_ONLY, TaskType.DEBUG
        )
        assert decision.strategy is RoutingStrategy.PRIVACY_LOCAL_ONLY
        assert decision.model == "smollm3"
        assert decision.reason == "Baseline pick → Privacy: Local-only processing required"
        assert decision.confidence == pytest.approx(0.8)
        assert "gpt-4" not in decision.fallbacks
        assert decision.metadata.privacy_protected is True
        assert decision.metadata.cloud_candidate == "gpt-4"

    def test_cloud_override(self, composer, baseline):
        decision = composer.compose(
            baseline, capability(0.35, Level.LOW), CLOUD_OVERRIDE, RELAXED, TaskType.WRITE
        )
        assert decision.strategy is RoutingStrategy.CLOUD_OVERRIDE
        assert decision.model == "gpt-4"
        assert decision.reason == (
            "Baseline pick → Cloud override: High complexity exceeds local capability"
        )
        assert decision.confidence == pytest.approx(0.6)
        assert decision.fallbacks[0] == "smollm3"

    def test_high_capability_blocks_override(self, composer, baseline):
        decision = composer.compose(
            baseline, capability(0.9, Level.HIGH), CLOUD_OVERRIDE, RELAXED
        )
        assert decision.strategy is RoutingStrategy.LOCAL_FIRST_CAPABLE
        assert decision.model == "smollm3"

    def test_local_capable(self, composer, baseline):
        decision = composer.compose(baseline, capability(0.7, Level.MEDIUM), NO_OVERRIDE, RELAXED)
        assert decision.strategy is RoutingStrategy.LOCAL_FIRST_CAPABLE
        assert decision.reason.endswith("→ Local-first: Sufficient local capability")
        assert decision.confidence == pytest.approx(0.55)

    def test_local_fallback(self, composer, baseline):
        decision = composer.compose(baseline, capability(0.49, Level.LOW), NO_OVERRIDE, RELAXED)
        assert decision.strategy is RoutingStrategy.LOCAL_FIRST_FALLBACK
        assert decision.reason.endswith("→ Local-first fallback: Privacy-first approach")
        assert decision.confidence == pytest.approx(0.4)

    def test_fallback_confidence_floor(self, composer):
        low = BaselineSelection(model="smollm3", confidence=0.2)
        decision = composer.compose(low, capability(0.3, Level.LOW), NO_OVERRIDE, RELAXED)
        assert decision.confidence == pytest.approx(0.3)

    def test_override_confidence_capped(self, composer):
        high = BaselineSelection(model="smollm3", confidence=0.95)
        decision = composer.compose(high, capability(0.3, Level.LOW), CLOUD_OVERRIDE, RELAXED)
        assert decision.confidence == 1.0


class TestMetadata:
    def test_metadata(self, composer, baseline):
        decision = composer.compose(
            baseline, capability(0.7, Level.MEDIUM), NO_OVERRIDE, RELAXED, TaskType.CODE
        )
        assert decision.metadata.original_model == "claude-3.5-sonnet"
        assert decision.metadata.local_candidate == "smollm3"
        assert decision.metadata.cloud_candidate is None
        assert decision.metadata.local_score == 0.7
        assert decision.metadata.task_type is TaskType.CODE

    def test_privacy_branch_directly(self, composer, baseline):
        decision = composer.compose_privacy_local(
            baseline, capability(0.5, Level.MEDIUM), CLOUD_OVERRIDE, RELAXED
        )
        assert decision.strategy is RoutingStrategy.PRIVACY_LOCAL_ONLY
        assert decision.metadata.task_type is TaskType.GENERAL
