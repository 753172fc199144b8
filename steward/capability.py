"""
Local capability evaluation.

Scores how well a local model can serve a task and proposes the local
candidate. Adjustments are multiplicative and applied in a fixed order;
the result is clamped to [0, 1].
"""

from __future__ import annotations

from .config import LocalModelConfig, ScoringConfig
from .types import (
    CapabilityAssessment,
    Classification,
    CognitiveState,
    Level,
    PrivacyAnalysis,
    TaskType,
    UncertaintyLevel,
)


class LocalCapabilityEvaluator:
    """Estimate local model capability for a classified task."""

    def __init__(
        self,
        config: LocalModelConfig | None = None,
        scoring: ScoringConfig | None = None,
    ):
        self.config = config or LocalModelConfig()
        self.scoring = scoring or ScoringConfig()

    def evaluate(
        self,
        classification: Classification,
        cognitive_state: CognitiveState,
        privacy: PrivacyAnalysis,
    ) -> CapabilityAssessment:
        """Assess local capability; privacy-forced tasks get a usable floor."""
        s = self.scoring
        task_type = classification.type
        base_score, preferred = self.config.capability_for(task_type)

        score = base_score
        if classification.complexity is Level.HIGH:
            score *= s.complexity_high_factor
        elif classification.complexity is Level.LOW:
            score = min(score * s.complexity_low_factor, 1.0)

        if classification.uncertainty in (UncertaintyLevel.HIGH, UncertaintyLevel.VERY_HIGH):
            score *= s.uncertainty_factor

        if cognitive_state.hyperfocus_potential and task_type in s.hyperfocus_task_types:
            score *= s.hyperfocus_factor

        if privacy.requires_local:
            score = max(score, s.privacy_capability_floor)

        score = max(0.0, min(1.0, score))

        return CapabilityAssessment(
            score=score,
            level=self._level_for(score),
            recommended_model=self.select_model(
                preferred, task_type, classification.complexity, cognitive_state
            ),
            preferred_local_models=preferred,
            limitations=self.identify_limitations(
                task_type, classification.complexity, classification.uncertainty
            ),
        )

    def _level_for(self, score: float) -> Level:
        if score >= self.scoring.high_capability:
            return Level.HIGH
        if score >= self.scoring.medium_capability:
            return Level.MEDIUM
        return Level.LOW

    def select_model(
        self,
        preferred: tuple[str, ...],
        task_type: TaskType,
        complexity: Level,
        cognitive_state: CognitiveState,
    ) -> str:
        """Pick the best local model from a preference list."""
        if not preferred:
            return self.config.default_model

        def first_with(marker: str) -> str | None:
            return next((m for m in preferred if marker in m), None)

        # Simple tasks: smallest, fastest model
        if complexity is Level.LOW or task_type is TaskType.QUICK_QUERY:
            return first_with(self.config.small_marker) or preferred[0]

        # Complex tasks: largest model available
        if complexity is Level.HIGH:
            return (
                first_with(self.config.large_marker)
                or first_with(self.config.flagship_model)
                or preferred[0]
            )

        if cognitive_state.hyperfocus_potential:
            return first_with(self.config.flagship_model) or preferred[0]

        return preferred[0]

    def identify_limitations(
        self,
        task_type: TaskType,
        complexity: Level,
        uncertainty: UncertaintyLevel,
    ) -> tuple[str, ...]:
        """Known weaknesses of local processing, for explanation only."""
        limitations: list[str] = []

        if task_type is TaskType.RESEARCH:
            limitations.append("Limited knowledge cutoff")
            limitations.append("No real-time information access")

        if complexity is Level.HIGH:
            limitations.append("May struggle with very complex reasoning")

        if uncertainty is UncertaintyLevel.VERY_HIGH:
            limitations.append("Limited disambiguation capability")

        if task_type in (TaskType.WRITE, TaskType.CREATIVE):
            limitations.append("Less creative variety than cloud models")

        return tuple(limitations)
