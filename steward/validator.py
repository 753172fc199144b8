"""
Routing decision validation.

Errors mean the decision breaks the privacy invariant and must be discarded.
Warnings are logged but do not reject the decision.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .model_registry import ModelInfo, is_local_model
from .types import RoutingDecision, RoutingStrategy, ValidationResult

logger = logging.getLogger(__name__)


class DecisionValidator:
    """
    Check a composed decision before it is returned.

    Local models are recognized by name markers unless a registry is
    supplied, in which case only registered local models count.
    """

    def __init__(
        self,
        registry: Mapping[str, ModelInfo] | None = None,
        low_confidence: float = 0.3,
    ):
        self.registry = registry
        self.low_confidence = low_confidence

    def is_local(self, model: str | None) -> bool:
        return is_local_model(model, self.registry)

    def validate(self, decision: RoutingDecision) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if decision.metadata.privacy_protected:
            if not self.is_local(decision.model):
                errors.append("Privacy requires local processing but cloud model selected")
            cloud_fallbacks = [m for m in decision.fallbacks if not self.is_local(m)]
            if cloud_fallbacks:
                errors.append(
                    f"Privacy requires local processing but fallback chain contains "
                    f"cloud models: {', '.join(cloud_fallbacks)}"
                )

        if not any(self.is_local(m) for m in decision.fallbacks):
            warnings.append("No local fallback available in chain")

        if (
            decision.confidence < self.low_confidence
            and decision.strategy is not RoutingStrategy.LOCAL_FIRST_FALLBACK
        ):
            warnings.append("Low confidence in routing decision")

        for warning in warnings:
            logger.warning(f"Routing decision for {decision.model}: {warning}")

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
