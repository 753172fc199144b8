"""
Cloud override evaluation.

Each rule adds a signed increment to an override score and a reason. The
late-hours penalty opposes every positive signal. Cloud is warranted when
the raw score reaches the override threshold.
"""

from __future__ import annotations

import logging

from .config import CloudModelConfig, PrivacyConfig, ScoringConfig
from .types import (
    CapabilityAssessment,
    Classification,
    CognitiveState,
    Level,
    OverrideEvaluation,
    TaskType,
    TimeContext,
    UncertaintyLevel,
    UserProfile,
)

logger = logging.getLogger(__name__)


class CloudOverrideEvaluator:
    """Decide whether a task should leave the local-first path."""

    def __init__(
        self,
        config: CloudModelConfig | None = None,
        scoring: ScoringConfig | None = None,
        privacy: PrivacyConfig | None = None,
    ):
        self.config = config or CloudModelConfig()
        self.scoring = scoring or ScoringConfig()
        self.privacy = privacy or PrivacyConfig()

    def evaluate(
        self,
        classification: Classification,
        cognitive_state: CognitiveState,
        capability: CapabilityAssessment,
        user_profile: UserProfile,
        time_context: TimeContext,
    ) -> OverrideEvaluation:
        s = self.scoring
        task_type = classification.type
        score = 0.0
        reasons: list[str] = []

        if classification.complexity is Level.HIGH and capability.level is Level.LOW:
            score += s.complexity_override
            reasons.append("High complexity exceeds local capability")

        if classification.needs_creativity and task_type is TaskType.WRITE:
            score += s.creative_override
            reasons.append("Creative writing benefits from cloud models")

        if task_type is TaskType.RESEARCH:
            score += s.research_override
            reasons.append("Research tasks benefit from cloud knowledge")

        if classification.uncertainty is UncertaintyLevel.VERY_HIGH:
            score += s.uncertainty_override
            reasons.append("High uncertainty requires advanced reasoning")

        if (
            cognitive_state.capacity_level is Level.HIGH
            and cognitive_state.task_alignment_level is Level.HIGH
        ):
            score += s.cognitive_override
            reasons.append("High cognitive state supports cloud processing")

        if user_profile.prefer_cloud_override:
            score += s.explicit_cloud_override
            reasons.append("User explicit cloud preference")

        if time_context.is_late_hours(self.privacy.late_hour_start, self.privacy.late_hour_end):
            score -= s.night_penalty
            reasons.append("Late hours - prefer local processing")

        should_override = score >= s.override_threshold
        recommended = (
            self.config.model_for(task_type, classification.complexity) if should_override else None
        )

        logger.debug(
            f"Cloud override score {score:.2f} for {task_type.value} "
            f"(override={should_override}, model={recommended})"
        )

        return OverrideEvaluation(
            should_override=should_override,
            score=max(0.0, min(1.0, score)),
            confidence=min(score, 1.0) if should_override else 0.0,
            reasons=tuple(reasons),
            recommended_model=recommended,
            raw_score=score,
        )
