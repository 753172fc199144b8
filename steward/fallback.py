"""
Local-first fallback chain construction.

Local alternatives always come first. Cloud entries are appended only when
privacy allows, so a local-only decision can never fall back to the cloud.
"""

from __future__ import annotations

from .config import CloudModelConfig, LocalModelConfig
from .types import CapabilityAssessment, OverrideEvaluation, PrivacyAnalysis


class FallbackChainBuilder:
    """Build an ordered, deduplicated fallback chain for a primary model."""

    def __init__(
        self,
        local_config: LocalModelConfig | None = None,
        cloud_config: CloudModelConfig | None = None,
        max_fallbacks: int = 5,
    ):
        self.local_config = local_config or LocalModelConfig()
        self.cloud_config = cloud_config or CloudModelConfig()
        self.max_fallbacks = max_fallbacks

    def build(
        self,
        primary_model: str,
        capability: CapabilityAssessment,
        override: OverrideEvaluation,
        privacy: PrivacyAnalysis,
    ) -> tuple[str, ...]:
        fallbacks: list[str] = []

        def add(model: str | None) -> bool:
            if model and model != primary_model and model not in fallbacks:
                fallbacks.append(model)
                return True
            return False

        for model in capability.preferred_local_models:
            add(model)

        for model in self.local_config.secondary_models:
            add(model)

        if not privacy.requires_local:
            add(override.recommended_model)

            # Only one general cloud fallback
            for model in self.cloud_config.fallback_models:
                if add(model):
                    break

        return tuple(fallbacks[: self.max_fallbacks])
