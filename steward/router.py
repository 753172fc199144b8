"""
Local-first routing with privacy-aware cloud override.

Routes a classified task to a local, containerized or cloud model:

1. Privacy analysis (may force local-only processing)
2. Local capability evaluation (proposes the local candidate)
3. Cloud override evaluation (proposes the cloud candidate)
4. Decision composition and fallback chain
5. Validation; a decision that breaks the privacy invariant is discarded
   and re-derived through the local-only branch

The routing computation touches no shared mutable state apart from the
statistics history, so routers can be used from many threads at once.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Mapping
from typing import Any

from .capability import LocalCapabilityEvaluator
from .cloud_override import CloudOverrideEvaluator
from .composer import DecisionComposer
from .config import RoutingConfig
from .fallback import FallbackChainBuilder
from .model_registry import ModelInfo
from .privacy import PrivacyAnalyzer
from .types import (
    BaselineSelection,
    Classification,
    CognitiveState,
    InvalidInputError,
    PrivacyViolationError,
    RoutedTask,
    RoutingDecision,
    TimeContext,
    UserProfile,
)
from .validator import DecisionValidator

logger = logging.getLogger(__name__)


class LocalFirstRouter:
    """
    Route tasks to model backends, local first.

    Privacy always wins: when the privacy analysis requires local
    processing, the primary model and every fallback are local regardless
    of override score or user preference.
    """

    def __init__(
        self,
        config: RoutingConfig | None = None,
        registry: Mapping[str, ModelInfo] | None = None,
    ):
        """
        Initialize router.

        Args:
            config: Routing tables and scoring constants
            registry: Optional model registry for strict local-model matching
        """
        self.config = config or RoutingConfig()
        scoring = self.config.scoring

        self.privacy_analyzer = PrivacyAnalyzer(
            self.config.privacy,
            strict_confidence=scoring.strict_privacy_confidence,
            default_confidence=scoring.default_privacy_confidence,
        )
        self.capability_evaluator = LocalCapabilityEvaluator(self.config.local_models, scoring)
        self.override_evaluator = CloudOverrideEvaluator(
            self.config.cloud_models, scoring, self.config.privacy
        )
        self.composer = DecisionComposer(
            scoring,
            FallbackChainBuilder(
                self.config.local_models,
                self.config.cloud_models,
                max_fallbacks=scoring.max_fallbacks,
            ),
        )
        self.validator = DecisionValidator(registry, low_confidence=scoring.low_confidence_warning)

        self._history: deque[dict[str, Any]] = deque(maxlen=self.config.history_limit)
        self._history_lock = threading.Lock()

    def route(
        self,
        task_text: str,
        classification: Classification,
        cognitive_state: CognitiveState,
        time_context: TimeContext,
        user_profile: UserProfile,
        baseline: BaselineSelection | None = None,
    ) -> RoutingDecision:
        """Route a task and return only the decision."""
        return self.route_with_analysis(
            task_text, classification, cognitive_state, time_context, user_profile, baseline
        ).decision

    def route_with_analysis(
        self,
        task_text: str,
        classification: Classification,
        cognitive_state: CognitiveState,
        time_context: TimeContext,
        user_profile: UserProfile,
        baseline: BaselineSelection | None = None,
    ) -> RoutedTask:
        """
        Route a task and keep the analyses behind the decision.

        Args:
            task_text: Raw task text
            classification: Upstream classification of the task
            cognitive_state: Current capacity / alignment / hyperfocus signals
            time_context: Hour of day at decision time
            user_profile: Privacy and cloud preferences
            baseline: Selection made before local-first routing (optional)

        Returns:
            RoutedTask with the decision, analyses and validation result

        Raises:
            InvalidInputError: If an input has the wrong type
            PrivacyViolationError: If no local decision can be derived when
                privacy requires one (misconfigured model tables)
        """
        self._check_inputs(task_text, classification, cognitive_state, time_context, user_profile)

        privacy = self.privacy_analyzer.analyze(
            classification, user_profile, task_text, time_context
        )
        capability = self.capability_evaluator.evaluate(classification, cognitive_state, privacy)
        override = self.override_evaluator.evaluate(
            classification, cognitive_state, capability, user_profile, time_context
        )

        if baseline is None:
            baseline = BaselineSelection(model=capability.recommended_model)

        decision = self.composer.compose(
            baseline, capability, override, privacy, task_type=classification.type
        )
        validation = self.validator.validate(decision)
        rederived = False

        if not validation.valid:
            logger.warning(
                f"Discarding decision for {decision.model}: {'; '.join(validation.errors)}"
            )
            decision = self.composer.compose_privacy_local(
                baseline, capability, override, privacy, task_type=classification.type
            )
            validation = self.validator.validate(decision)
            rederived = True
            if not validation.valid:
                raise PrivacyViolationError(decision.model, validation.errors)

        logger.debug(
            f"Routed {classification.type.value} task to {decision.model} "
            f"({decision.strategy.value}, confidence {decision.confidence:.2f})"
        )
        self._track(decision)

        return RoutedTask(
            decision=decision,
            privacy=privacy,
            capability=capability,
            override=override,
            validation=validation,
            rederived=rederived,
            warnings=tuple(validation.warnings),
        )

    def _check_inputs(
        self,
        task_text: Any,
        classification: Any,
        cognitive_state: Any,
        time_context: Any,
        user_profile: Any,
    ) -> None:
        expected = (
            ("task_text", task_text, str),
            ("classification", classification, Classification),
            ("cognitive_state", cognitive_state, CognitiveState),
            ("time_context", time_context, TimeContext),
            ("user_profile", user_profile, UserProfile),
        )
        for name, value, kind in expected:
            if not isinstance(value, kind):
                raise InvalidInputError(
                    f"{name} must be {kind.__name__}, got {type(value).__name__}"
                )

    def _track(self, decision: RoutingDecision) -> None:
        with self._history_lock:
            self._history.append(
                {
                    "type": decision.metadata.task_type.value,
                    "model": decision.model,
                    "strategy": decision.strategy.value,
                    "privacy_protected": decision.metadata.privacy_protected,
                }
            )

    def get_statistics(self) -> dict[str, Any]:
        """Get routing statistics over the recent history."""
        with self._history_lock:
            history = list(self._history)

        if not history:
            return {"total_routes": 0}

        by_type: dict[str, int] = {}
        by_model: dict[str, int] = {}
        by_strategy: dict[str, int] = {}

        for entry in history:
            by_type[entry["type"]] = by_type.get(entry["type"], 0) + 1
            by_model[entry["model"]] = by_model.get(entry["model"], 0) + 1
            by_strategy[entry["strategy"]] = by_strategy.get(entry["strategy"], 0) + 1

        return {
            "total_routes": len(history),
            "by_task_type": by_type,
            "by_model": by_model,
            "by_strategy": by_strategy,
            "privacy_protected": sum(1 for e in history if e["privacy_protected"]),
        }
