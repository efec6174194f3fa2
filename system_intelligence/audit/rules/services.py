"""Rules: external services unreachable."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...const import (
    COLLECTOR_AI_PROVIDER,
    COLLECTOR_VECTOR_INDEX,
    ISSUE_AI_UNAVAILABLE,
    ISSUE_VECTOR_UNAVAILABLE,
)
from ..models import Issue

if TYPE_CHECKING:
    from datetime import datetime

    from ...collectors.models import CollectorSignal
    from ...config import ScoringConfig


class ServiceUnavailableRule:
    """Raise a medium issue when a reachability probe failed."""

    rule_id: str
    collector: str
    label: str

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return an issue naming the failure reason, if any."""
        if signal.available:
            return None
        message = f"{self.label} unavailable"
        if signal.error:
            message = f"{message} ({signal.error})"
        return Issue(code=self.rule_id, severity="medium", message=message)


class VectorUnavailableRule(ServiceUnavailableRule):
    """Detect an unreachable vector index."""

    rule_id = ISSUE_VECTOR_UNAVAILABLE
    collector = COLLECTOR_VECTOR_INDEX
    label = "Vector index"


class AiProviderUnavailableRule(ServiceUnavailableRule):
    """Detect an unreachable AI provider."""

    rule_id = ISSUE_AI_UNAVAILABLE
    collector = COLLECTOR_AI_PROVIDER
    label = "AI provider"
