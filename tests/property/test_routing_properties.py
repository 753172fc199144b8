"""
Property-based tests for local-first routing.

Property tests verify invariants:
- Privacy-protected decisions use only local models
- The late-hours penalty lowers the override score by exactly its weight
- Routing is deterministic for equal inputs
- Fallback chains are bounded, deduplicated and exclude the primary
- Scores and confidences stay within [0, 1]
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

import pytest

from steward.cloud_override import CloudOverrideEvaluator
from steward.model_registry import is_local_model
from steward.router import LocalFirstRouter
from steward.types import (
    CapabilityAssessment,
    Classification,
    CognitiveState,
    Level,
    TaskType,
    TimeContext,
    UncertaintyLevel,
    UserProfile,
)

ROUTER = LocalFirstRouter()

# Strategies
levels = st.sampled_from(list(Level))

keywords = st.frozensets(
    st.sampled_from(["password", "login", "story", "token", "docs", "refactor", "health"]),
    max_size=3,
)

classifications = st.builds(
    Classification,
    type=st.sampled_from(list(TaskType)),
    complexity=levels,
    uncertainty=st.sampled_from(list(UncertaintyLevel)),
    keywords=keywords,
    requires_creativity=st.one_of(st.none(), st.booleans()),
)

cognitive_states = st.builds(
    CognitiveState,
    capacity_level=levels,
    task_alignment_level=levels,
    hyperfocus_potential=st.booleans(),
)

profiles = st.builds(
    UserProfile,
    prefer_cloud_override=st.booleans(),
    cloud_failure=st.sampled_from(["fallback_to_local", "use_local_only"]),
    privacy_keywords=st.sampled_from([(), ("health",), ("salary", "therapy")]),
)

hours = st.integers(min_value=0, max_value=23)
day_hours = st.integers(min_value=6, max_value=21)
night_hours = st.one_of(st.integers(min_value=22, max_value=23), st.integers(min_value=0, max_value=5))

task_texts = st.sampled_from(
    [
        "Write a short story about a lighthouse",
        "Why does my login password reset fail?",
        "Summarize the quarterly report",
        "Research the history of tide tables",
        "Refactor the payment module",
        "",
    ]
)

capabilities = st.builds(
    CapabilityAssessment,
    score=st.floats(min_value=0.0, max_value=1.0),
    level=levels,
    recommended_model=st.just("smollm3"),
    preferred_local_models=st.just(("smollm3",)),
)


class TestPrivacyProperties:
    @given(
        text=task_texts,
        classification=classifications,
        state=cognitive_states,
        hour=hours,
        profile=profiles,
    )
    @settings(max_examples=200)
    def test_local_only_means_every_model_is_local(
        self, text, classification, state, hour, profile
    ):
        """Privacy supremacy: no cloud model when local processing is required."""
        routed = ROUTER.route_with_analysis(
            text, classification, state, TimeContext(hour=hour), profile
        )
        if routed.privacy.requires_local:
            assert routed.decision.metadata.privacy_protected
            assert all(is_local_model(m) for m in routed.decision.all_models)
        assert routed.validation.valid

    @given(
        text=task_texts,
        classification=classifications,
        state=cognitive_states,
        hour=night_hours,
        profile=profiles,
    )
    def test_late_hours_always_local(self, text, classification, state, hour, profile):
        decision = ROUTER.route(text, classification, state, TimeContext(hour=hour), profile)
        assert is_local_model(decision.model)


class TestOverrideProperties:
    @given(
        classification=classifications,
        state=cognitive_states,
        capability=capabilities,
        profile=profiles,
        day=day_hours,
        night=night_hours,
    )
    def test_night_penalty_is_exact(self, classification, state, capability, profile, day, night):
        evaluator = CloudOverrideEvaluator()
        at_day = evaluator.evaluate(classification, state, capability, profile, TimeContext(hour=day))
        at_night = evaluator.evaluate(
            classification, state, capability, profile, TimeContext(hour=night)
        )
        assert at_day.raw_score - at_night.raw_score == pytest.approx(0.5)

    @given(
        classification=classifications,
        state=cognitive_states,
        capability=capabilities,
        profile=profiles,
        hour=hours,
    )
    def test_override_scores_clamped(self, classification, state, capability, profile, hour):
        result = CloudOverrideEvaluator().evaluate(
            classification, state, capability, profile, TimeContext(hour=hour)
        )
        assert 0.0 <= result.score <= 1.0
        assert 0.0 <= result.confidence <= 1.0
        assert (result.recommended_model is not None) == result.should_override


class TestDecisionProperties:
    @given(
        text=task_texts,
        classification=classifications,
        state=cognitive_states,
        hour=hours,
        profile=profiles,
    )
    @settings(max_examples=200)
    def test_decision_shape(self, text, classification, state, hour, profile):
        routed = ROUTER.route_with_analysis(
            text, classification, state, TimeContext(hour=hour), profile
        )
        decision = routed.decision

        assert len(decision.fallbacks) <= 5
        assert len(set(decision.fallbacks)) == len(decision.fallbacks)
        assert decision.model not in decision.fallbacks
        assert 0.0 <= decision.confidence <= 1.0
        assert 0.0 <= routed.capability.score <= 1.0

    @given(
        text=task_texts,
        classification=classifications,
        state=cognitive_states,
        hour=hours,
        profile=profiles,
    )
    def test_deterministic(self, text, classification, state, hour, profile):
        time_context = TimeContext(hour=hour)
        first = ROUTER.route(text, classification, state, time_context, profile)
        second = ROUTER.route(text, classification, state, time_context, profile)
        assert first == second
