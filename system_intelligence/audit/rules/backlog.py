"""Rules: AI backlog and stale profiles."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...const import (
    COLLECTOR_AI_BACKLOG,
    COLLECTOR_STALE_PROFILES,
    ISSUE_AI_BACKLOG,
    ISSUE_STALE_PROFILES,
)
from ..models import Issue
from .base import threshold_severity

if TYPE_CHECKING:
    from datetime import datetime

    from ...collectors.models import CollectorSignal
    from ...config import ScoringConfig


class AiBacklogRule:
    """Detect entities piling up without an AI narrative."""

    rule_id = ISSUE_AI_BACKLOG
    collector = COLLECTOR_AI_BACKLOG

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return an issue when the backlog exceeds its threshold."""
        threshold = config.ai_backlog_threshold
        if signal.count <= threshold:
            return None
        return Issue(
            code=self.rule_id,
            severity=threshold_severity(
                signal.count, threshold, config.high_severity_multiplier
            ),
            message=f"{signal.count} politicians missing AI narrative",
        )


class StaleProfilesRule:
    """Detect profiles not refreshed within the staleness window."""

    rule_id = ISSUE_STALE_PROFILES
    collector = COLLECTOR_STALE_PROFILES

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return an issue when stale profiles exceed their threshold."""
        threshold = config.stale_threshold
        if signal.count <= threshold:
            return None
        window = signal.extra.get("window_days")
        suffix = f" in {window}+ days" if window is not None else ""
        return Issue(
            code=self.rule_id,
            severity=threshold_severity(
                signal.count, threshold, config.high_severity_multiplier
            ),
            message=f"{signal.count} profiles not updated{suffix}",
        )
