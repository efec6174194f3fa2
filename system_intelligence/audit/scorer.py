"""Deterministic health scoring of collector signals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Literal, TypeAlias

from ..const import (
    COLLECTOR_AI_BACKLOG,
    COLLECTOR_AI_ENRICHMENT_JOB,
    COLLECTOR_AI_PROVIDER,
    COLLECTOR_CRON_FAILURES,
    COLLECTOR_DATA_REFRESH_JOB,
    COLLECTOR_DATABASE,
    COLLECTOR_STALE_PROFILES,
    COLLECTOR_VECTOR_INDEX,
    COLLECTOR_VOTE_ANOMALIES,
    Severity,
)
from ..core.utils import clamp_score
from .models import AuditStats, StateHealth

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from datetime import datetime

    from ..collectors.models import CollectorSignal, RegionSignals
    from ..config import ScoringConfig

BASELINE_SCORE = 100

JobStatus: TypeAlias = 'Literal["ok", "overdue", "late", "never"]'


@dataclass(frozen=True)
class ScoreBreakdown:
    """Health score with the named deductions that produced it."""

    health_score: int
    deductions: tuple[tuple[str, int], ...]


def scaled_penalty(count: int, threshold: int, step: int, per_step: int, cap: int) -> int:
    """Return `per_step` for every started `step` above `threshold`, capped."""
    over = count - threshold
    if over <= 0:
        return 0
    steps = -(-over // step)
    return min(cap, steps * per_step)


def job_status(
    signal: CollectorSignal, now: datetime, interval_hours: int
) -> JobStatus:
    """Classify a job's last successful run against its expected interval."""
    if signal.last_run_at is None:
        return "never"
    age = now - signal.last_run_at
    interval = timedelta(hours=interval_hours)
    if age > 2 * interval:
        return "late"
    if age > interval:
        return "overdue"
    return "ok"


def risk_level(health_score: int, config: ScoringConfig) -> Severity:
    """Map a score onto the fixed risk bands; lower scores never lower risk."""
    if health_score < config.risk_high_below:
        return "high"
    if health_score < config.risk_medium_below:
        return "medium"
    return "low"


def _database(signal: CollectorSignal, config: ScoringConfig, _now: datetime) -> int:
    return 0 if signal.available else config.db_penalty


def _ai_backlog(signal: CollectorSignal, config: ScoringConfig, _now: datetime) -> int:
    if not signal.available:
        return config.ai_backlog_penalty_cap
    return scaled_penalty(
        signal.count,
        config.ai_backlog_threshold,
        config.ai_backlog_step,
        config.ai_backlog_penalty_per_step,
        config.ai_backlog_penalty_cap,
    )


def _stale_profiles(
    signal: CollectorSignal, config: ScoringConfig, _now: datetime
) -> int:
    if not signal.available:
        return config.stale_penalty_cap
    return scaled_penalty(
        signal.count,
        config.stale_threshold,
        config.stale_step,
        config.stale_penalty_per_step,
        config.stale_penalty_cap,
    )


def _vote_anomalies(
    signal: CollectorSignal, config: ScoringConfig, _now: datetime
) -> int:
    if not signal.available:
        return config.vote_anomaly_penalty_cap
    return min(
        config.vote_anomaly_penalty_cap, signal.count * config.vote_anomaly_penalty
    )


def _data_refresh_job(
    signal: CollectorSignal, config: ScoringConfig, now: datetime
) -> int:
    if not signal.available:
        return config.job_overdue_penalty
    if job_status(signal, now, config.data_refresh_interval_hours) == "ok":
        return 0
    return config.job_overdue_penalty


def _ai_enrichment_job(
    signal: CollectorSignal, config: ScoringConfig, now: datetime
) -> int:
    if not signal.available:
        return config.job_overdue_penalty
    if job_status(signal, now, config.ai_enrichment_interval_hours) == "ok":
        return 0
    return config.job_overdue_penalty


def _cron_failures(
    signal: CollectorSignal, config: ScoringConfig, _now: datetime
) -> int:
    if not signal.available or signal.count > config.cron_failure_threshold:
        return config.cron_failure_penalty
    return 0


def _vector_index(signal: CollectorSignal, config: ScoringConfig, _now: datetime) -> int:
    return 0 if signal.available else config.vector_penalty


def _ai_provider(signal: CollectorSignal, config: ScoringConfig, _now: datetime) -> int:
    return 0 if signal.available else config.ai_provider_penalty


# Evaluation order is fixed so the deduction list is reproducible.
DEDUCTIONS: tuple[
    tuple[str, Callable[[CollectorSignal, ScoringConfig, datetime], int]], ...
] = (
    (COLLECTOR_DATABASE, _database),
    (COLLECTOR_DATA_REFRESH_JOB, _data_refresh_job),
    (COLLECTOR_AI_ENRICHMENT_JOB, _ai_enrichment_job),
    (COLLECTOR_CRON_FAILURES, _cron_failures),
    (COLLECTOR_AI_BACKLOG, _ai_backlog),
    (COLLECTOR_STALE_PROFILES, _stale_profiles),
    (COLLECTOR_VOTE_ANOMALIES, _vote_anomalies),
    (COLLECTOR_VECTOR_INDEX, _vector_index),
    (COLLECTOR_AI_PROVIDER, _ai_provider),
)


def score_signals(
    signals: Mapping[str, CollectorSignal], config: ScoringConfig, now: datetime
) -> ScoreBreakdown:
    """
    Reduce collector signals to a 0..100 health score.

    Every factor whose collector produced a signal is scored; an unavailable
    signal is charged the worst-case deduction for its factor. Factors with
    no signal at all (outside a region's subset) are not scored.
    """
    deductions: list[tuple[str, int]] = []
    for name, deduct in DEDUCTIONS:
        signal = signals.get(name)
        if signal is None:
            continue
        points = deduct(signal, config, now)
        if points:
            deductions.append((name, points))
    total = sum(points for _name, points in deductions)
    return ScoreBreakdown(
        health_score=clamp_score(BASELINE_SCORE - total),
        deductions=tuple(deductions),
    )


def smoothed_score(
    current: int, prior_scores: Sequence[int], config: ScoringConfig
) -> int:
    """Blend the current score with a trailing window of prior scores."""
    window = list(prior_scores[: config.smoothing_window])
    weight = config.smoothing_current_weight
    numerator = current * weight + sum(window)
    denominator = weight + len(window)
    # Round half up using integers only.
    return (2 * numerator + denominator) // (2 * denominator)


def derive_stats(
    health_score: int,
    signals: Mapping[str, CollectorSignal],
    prior_scores: Sequence[int],
    regions: Sequence[RegionSignals],
    config: ScoringConfig,
    now: datetime,
) -> AuditStats:
    """
    Compute the stats block of a report.

    `prior_scores` are earlier snapshot scores, newest first. Drift is only
    reported against a real prior snapshot, never fabricated.
    """

    def _count(name: str) -> int:
        signal = signals.get(name)
        return signal.count if signal is not None and signal.available else 0

    pending_ai = _count(COLLECTOR_AI_BACKLOG)
    vote_anomalies = _count(COLLECTOR_VOTE_ANOMALIES)
    stale_profiles = _count(COLLECTOR_STALE_PROFILES)

    window = list(prior_scores[: config.smoothing_window])
    smoothed = smoothed_score(health_score, window, config)
    trend = (health_score - window[-1]) // len(window) if window else 0

    governance = clamp_score(smoothed - vote_anomalies * config.governance_vote_weight)
    projected = clamp_score(
        smoothed
        + trend
        - vote_anomalies * config.projected_vote_weight_pct // 100
        - pending_ai * config.projected_backlog_weight_pct // 100
    )
    drift = health_score - prior_scores[0] if prior_scores else None

    state_health = tuple(
        StateHealth(
            state=region.region,
            health_score=score_signals(
                {signal.name: signal for signal in region.signals}, config, now
            ).health_score,
        )
        for region in regions
    )

    return AuditStats(
        pending_ai=pending_ai,
        vote_anomalies=vote_anomalies,
        stale_profiles=stale_profiles,
        governance_stability=governance,
        projected_stability=projected,
        health_drift=drift,
        state_health=state_health,
    )
