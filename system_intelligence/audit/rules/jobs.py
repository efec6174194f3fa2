"""Rules: scheduled jobs overdue or failing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...const import (
    COLLECTOR_AI_ENRICHMENT_JOB,
    COLLECTOR_CRON_FAILURES,
    COLLECTOR_DATA_REFRESH_JOB,
    ISSUE_AI_ENRICHMENT_OVERDUE,
    ISSUE_CRON_FAILURES,
    ISSUE_DATA_REFRESH_OVERDUE,
)
from ...core.datetime_utils import DateTimeUtils
from ..models import Issue
from ..scorer import job_status

if TYPE_CHECKING:
    from datetime import datetime

    from ...collectors.models import CollectorSignal
    from ...config import ScoringConfig


class JobOverdueRule:
    """Detect a scheduled job that has not succeeded within its interval."""

    rule_id: str
    collector: str
    label: str

    def _interval_hours(self, config: ScoringConfig) -> int:
        raise NotImplementedError

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return medium when overdue, high when never run or past twice the interval."""
        interval = self._interval_hours(config)
        status = job_status(signal, now, interval)
        if status == "ok":
            return None
        if status == "never" or signal.last_run_at is None:
            return Issue(
                code=self.rule_id,
                severity="high",
                message=f"{self.label} job has never completed successfully",
            )
        return Issue(
            code=self.rule_id,
            severity="high" if status == "late" else "medium",
            message=(
                f"{self.label} job last succeeded at "
                f"{DateTimeUtils.as_iso(signal.last_run_at)} "
                f"(expected every {interval}h)"
            ),
        )


class DataRefreshOverdueRule(JobOverdueRule):
    """Detect an overdue data-refresh job."""

    rule_id = ISSUE_DATA_REFRESH_OVERDUE
    collector = COLLECTOR_DATA_REFRESH_JOB
    label = "Data refresh"

    def _interval_hours(self, config: ScoringConfig) -> int:
        return config.data_refresh_interval_hours


class AiEnrichmentOverdueRule(JobOverdueRule):
    """Detect an overdue AI-enrichment job."""

    rule_id = ISSUE_AI_ENRICHMENT_OVERDUE
    collector = COLLECTOR_AI_ENRICHMENT_JOB
    label = "AI enrichment"

    def _interval_hours(self, config: ScoringConfig) -> int:
        return config.ai_enrichment_interval_hours


class CronFailuresRule:
    """Detect repeated failures across the job log."""

    rule_id = ISSUE_CRON_FAILURES
    collector = COLLECTOR_CRON_FAILURES

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return a high issue when recent failures exceed the threshold."""
        if signal.count <= config.cron_failure_threshold:
            return None
        return Issue(
            code=self.rule_id,
            severity="high",
            message=f"Multiple cron failures detected ({signal.count} recent runs)",
        )
