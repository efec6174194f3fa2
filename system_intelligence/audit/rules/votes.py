"""Rules: vote-ledger anomalies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...const import (
    COLLECTOR_VOTE_ANOMALIES,
    ISSUE_BEHAVIORAL_DRIFT,
    ISSUE_COORDINATED_VOTE_ACTIVITY,
    ISSUE_VOTE_SPIKE,
    ISSUE_VOTE_VELOCITY_SPIKE,
    Severity,
)
from ..models import Issue

if TYPE_CHECKING:
    from datetime import datetime

    from ...collectors.models import CollectorSignal
    from ...config import ScoringConfig


class VoteCounterRule:
    """Raise an issue whenever one vote detector's counter is positive."""

    rule_id: str
    counter: str
    severity: Severity
    template: str
    collector = COLLECTOR_VOTE_ANOMALIES

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return an issue carrying the detector's count."""
        value = signal.extra.get(self.counter)
        count = int(value) if isinstance(value, (int, float)) else 0
        if count <= 0:
            return None
        return Issue(
            code=self.rule_id,
            severity=self.severity,
            message=self.template.format(count=count),
        )


class VoteSpikeRule(VoteCounterRule):
    """Detect politicians whose vote totals exceed the spike threshold."""

    rule_id = ISSUE_VOTE_SPIKE
    counter = "threshold_spikes"
    severity = "high"
    template = "{count} abnormal vote spikes detected"


class VoteVelocityRule(VoteCounterRule):
    """Detect rapid vote surges in the last 24 hours."""

    rule_id = ISSUE_VOTE_VELOCITY_SPIKE
    counter = "velocity_spikes"
    severity = "high"
    template = "{count} rapid vote surges detected"


class CoordinatedVoteRule(VoteCounterRule):
    """Detect clustered vote events within one hour."""

    rule_id = ISSUE_COORDINATED_VOTE_ACTIVITY
    counter = "coordinated_clusters"
    severity = "high"
    template = "{count} suspicious vote clusters detected"


class BehavioralDriftRule(VoteCounterRule):
    """Detect approval ratings inconsistent with vote totals."""

    rule_id = ISSUE_BEHAVIORAL_DRIFT
    counter = "behavioral_drift"
    severity = "medium"
    template = "{count} approval/vote mismatch anomalies"
