"""
Privacy analysis for inbound tasks.

Signals accumulate rather than short-circuit: keyword and task-type checks
set the privacy level, then the user's local-only preference and the
late-hours rule can only add a local requirement, never remove one.
"""

from __future__ import annotations

import logging

from .config import PrivacyConfig
from .types import (
    Classification,
    PrivacyAnalysis,
    PrivacyLevel,
    TimeContext,
    UserProfile,
)

logger = logging.getLogger(__name__)


class PrivacyAnalyzer:
    """Derive a privacy level and a hard local-only flag from context."""

    def __init__(
        self,
        config: PrivacyConfig | None = None,
        strict_confidence: float = 0.9,
        default_confidence: float = 0.6,
    ):
        self.config = config or PrivacyConfig()
        self.strict_confidence = strict_confidence
        self.default_confidence = default_confidence

    def analyze(
        self,
        classification: Classification,
        user_profile: UserProfile,
        task_text: str,
        time_context: TimeContext,
    ) -> PrivacyAnalysis:
        """
        Analyze privacy requirements for a task.

        Args:
            classification: Upstream task classification
            user_profile: User preferences (local-only behavior, extra keywords)
            task_text: Raw task text
            time_context: Hour of day at decision time

        Returns:
            PrivacyAnalysis with level, local requirement and reasons
        """
        level = PrivacyLevel.RELAXED
        requires_local = False
        reasons: list[str] = []

        matched = self._matched_keywords(classification, user_profile, task_text)
        strict_type = classification.type in self.config.strict_task_types

        if matched:
            level = PrivacyLevel.STRICT
            requires_local = True
            reasons.append("Privacy keywords detected")
        elif strict_type:
            level = PrivacyLevel.STRICT
            requires_local = True
            reasons.append("Sensitive task type")
        elif classification.type in self.config.medium_task_types:
            level = PrivacyLevel.MEDIUM
            reasons.append("Work-related task type")

        if user_profile.cloud_failure == self.config.local_only_behavior:
            requires_local = True
            reasons.append("Profile local-only preference")

        if time_context.is_late_hours(self.config.late_hour_start, self.config.late_hour_end):
            requires_local = True
            reasons.append("Late hours privacy protection")

        confidence = self.strict_confidence if matched or strict_type else self.default_confidence

        if requires_local:
            logger.debug(f"Local-only processing required: {', '.join(reasons)}")

        return PrivacyAnalysis(
            level=level,
            requires_local=requires_local,
            reasons=tuple(reasons),
            confidence=confidence,
        )

    def _matched_keywords(
        self,
        classification: Classification,
        user_profile: UserProfile,
        task_text: str,
    ) -> list[str]:
        """Privacy keywords present in the task text or classifier keywords."""
        text = (task_text or "").lower()
        keywords = (*self.config.keywords, *user_profile.privacy_keywords)
        return [k for k in keywords if k in text or k in classification.keywords]
