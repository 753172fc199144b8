"""
Decision composition.

Combines the privacy, capability and override analyses into one routing
decision. The first matching branch wins:

1. privacy requires local            -> privacy_local_only
2. cloud override and local not high -> cloud_override
3. local capability sufficient       -> local_first_capable
4. otherwise                         -> local_first_fallback
"""

from __future__ import annotations

from .config import ScoringConfig
from .fallback import FallbackChainBuilder
from .types import (
    BaselineSelection,
    CapabilityAssessment,
    DecisionMetadata,
    Level,
    OverrideEvaluation,
    PrivacyAnalysis,
    RoutingDecision,
    RoutingStrategy,
    TaskType,
)


class DecisionComposer:
    """Compose a routing decision. Total for every well-typed input."""

    def __init__(
        self,
        scoring: ScoringConfig | None = None,
        fallback_builder: FallbackChainBuilder | None = None,
    ):
        self.scoring = scoring or ScoringConfig()
        self.fallback_builder = fallback_builder or FallbackChainBuilder(
            max_fallbacks=self.scoring.max_fallbacks
        )

    def compose(
        self,
        baseline: BaselineSelection,
        capability: CapabilityAssessment,
        override: OverrideEvaluation,
        privacy: PrivacyAnalysis,
        task_type: TaskType = TaskType.GENERAL,
    ) -> RoutingDecision:
        s = self.scoring

        if privacy.requires_local:
            return self.compose_privacy_local(baseline, capability, override, privacy, task_type)

        if (
            override.should_override
            and capability.level is not Level.HIGH
            and override.recommended_model is not None
        ):
            first_reason = override.reasons[0] if override.reasons else "Quality requirements"
            return self._decision(
                model=override.recommended_model,
                reason=f"{baseline.reason} → Cloud override: {first_reason}",
                confidence=min(baseline.confidence + s.cloud_confidence_boost, 1.0),
                strategy=RoutingStrategy.CLOUD_OVERRIDE,
                baseline=baseline,
                capability=capability,
                override=override,
                privacy=privacy,
                task_type=task_type,
            )

        if capability.level is Level.HIGH or capability.score >= s.capable_score_threshold:
            return self._decision(
                model=capability.recommended_model,
                reason=f"{baseline.reason} → Local-first: Sufficient local capability",
                confidence=min(baseline.confidence + s.capable_confidence_boost, 1.0),
                strategy=RoutingStrategy.LOCAL_FIRST_CAPABLE,
                baseline=baseline,
                capability=capability,
                override=override,
                privacy=privacy,
                task_type=task_type,
            )

        return self._decision(
            model=capability.recommended_model,
            reason=f"{baseline.reason} → Local-first fallback: Privacy-first approach",
            confidence=max(
                baseline.confidence - s.fallback_confidence_penalty, s.fallback_confidence_floor
            ),
            strategy=RoutingStrategy.LOCAL_FIRST_FALLBACK,
            baseline=baseline,
            capability=capability,
            override=override,
            privacy=privacy,
            task_type=task_type,
        )

    def compose_privacy_local(
        self,
        baseline: BaselineSelection,
        capability: CapabilityAssessment,
        override: OverrideEvaluation,
        privacy: PrivacyAnalysis,
        task_type: TaskType = TaskType.GENERAL,
    ) -> RoutingDecision:
        """The local-only branch, also used to re-derive a rejected decision."""
        return self._decision(
            model=capability.recommended_model,
            reason=f"{baseline.reason} → Privacy: Local-only processing required",
            confidence=max(baseline.confidence, self.scoring.privacy_confidence_floor),
            strategy=RoutingStrategy.PRIVACY_LOCAL_ONLY,
            baseline=baseline,
            capability=capability,
            override=override,
            privacy=privacy,
            task_type=task_type,
        )

    def _decision(
        self,
        *,
        model: str,
        reason: str,
        confidence: float,
        strategy: RoutingStrategy,
        baseline: BaselineSelection,
        capability: CapabilityAssessment,
        override: OverrideEvaluation,
        privacy: PrivacyAnalysis,
        task_type: TaskType,
    ) -> RoutingDecision:
        return RoutingDecision(
            model=model,
            reason=reason,
            confidence=confidence,
            strategy=strategy,
            fallbacks=self.fallback_builder.build(model, capability, override, privacy),
            metadata=DecisionMetadata(
                original_model=baseline.model,
                local_candidate=capability.recommended_model,
                cloud_candidate=override.recommended_model,
                privacy_protected=privacy.requires_local,
                local_score=capability.score,
                task_type=task_type,
            ),
        )
