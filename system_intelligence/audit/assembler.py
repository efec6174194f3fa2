"""Audit report assembly from concurrently collected signals."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..collectors.models import CollectorSignal
from ..core.datetime_utils import DateTimeUtils
from ..core.error_handlers import describe_error
from ..exceptions import SystemIntelligenceError
from .detector import IssueDetector
from .models import AuditReport
from .scorer import derive_stats, risk_level, score_signals

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from ..collectors.base import SignalCollector
    from ..collectors.models import RegionSignals
    from ..collectors.regions import RegionBreakdownCollector
    from ..config import ScoringConfig
    from ..snapshot.store import SnapshotStore

LOGGER = logging.getLogger(__name__)


class AuditAssembler:
    """
    Run every collector and compose one immutable report.

    Collectors run concurrently, each within its own timeout and all within
    one overall ceiling. The assembler only reads; it never writes a
    snapshot and never raises because a subsystem is down.
    """

    def __init__(  # noqa: PLR0913
        self,
        collectors: Sequence[SignalCollector],
        scoring: ScoringConfig,
        *,
        ceiling: float,
        region_collector: RegionBreakdownCollector | None = None,
        snapshot_store: SnapshotStore | None = None,
        detector: IssueDetector | None = None,
        clock: Callable[[], datetime] = DateTimeUtils.utcnow,
    ) -> None:
        names = [collector.name for collector in collectors]
        if len(set(names)) != len(names):
            msg = f"Duplicate collector names: {names}"
            raise ValueError(msg)
        self._collectors = list(collectors)
        self._scoring = scoring
        self._ceiling = ceiling
        self._region_collector = region_collector
        self._snapshot_store = snapshot_store
        self._detector = detector or IssueDetector()
        self._clock = clock

    @property
    def collector_names(self) -> tuple[str, ...]:
        """Return the names of the collectors run on every audit."""
        return tuple(collector.name for collector in self._collectors)

    async def async_run(self, region: str | None = None) -> AuditReport:
        """
        Assemble a report, optionally restricted to one region.

        A regional report has no per-region breakdown and no history, so its
        drift is null.
        """
        extra: dict[str, Any] = {}
        if region is None:
            if self._region_collector is not None:
                extra["regions"] = self._region_collector.async_collect_regions()
            if self._snapshot_store is not None:
                extra["history"] = self._async_prior_scores()

        signals, extra_results = await self._async_gather(region, extra)
        generated_at = self._clock()

        breakdown = score_signals(signals, self._scoring, generated_at)
        issues = self._detector.detect(signals, self._scoring, generated_at)
        regions: tuple[RegionSignals, ...] = extra_results.get("regions") or ()
        prior_scores: list[int] = extra_results.get("history") or []
        stats = derive_stats(
            breakdown.health_score,
            signals,
            prior_scores,
            regions,
            self._scoring,
            generated_at,
        )

        report = AuditReport(
            health_score=breakdown.health_score,
            risk_level=risk_level(breakdown.health_score, self._scoring),
            issues=issues,
            stats=stats,
            generated_at=generated_at,
            unassessed=self._detector.unassessed(signals),
        )
        LOGGER.debug(
            "Audit assembled: score=%s risk=%s issues=%s deductions=%s",
            report.health_score,
            report.risk_level,
            len(report.issues),
            breakdown.deductions,
        )
        return report

    async def async_collect(
        self, region: str | None = None
    ) -> dict[str, CollectorSignal]:
        """Return one signal per collector, keyed by collector name."""
        signals, _extra = await self._async_gather(region, {})
        return signals

    async def _async_gather(
        self, region: str | None, extra: dict[str, Any]
    ) -> tuple[dict[str, CollectorSignal], dict[str, Any]]:
        signal_tasks = {
            collector.name: asyncio.create_task(collector.async_collect(region))
            for collector in self._collectors
        }
        extra_tasks = {key: asyncio.create_task(coro) for key, coro in extra.items()}
        tasks = [*signal_tasks.values(), *extra_tasks.values()]

        try:
            if tasks:
                _done, pending = await asyncio.wait(tasks, timeout=self._ceiling)
            else:
                pending = set()
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if pending:
            LOGGER.warning(
                "Audit ceiling of %.1fs reached with %s probe(s) outstanding.",
                self._ceiling,
                len(pending),
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        signals: dict[str, CollectorSignal] = {}
        for name, task in signal_tasks.items():
            signals[name] = _signal_from_task(name, task)

        extra_results: dict[str, Any] = {}
        for key, task in extra_tasks.items():
            if task.cancelled():
                LOGGER.warning("Audit %s lookup did not finish in time.", key)
                continue
            err = task.exception()
            if err is not None:
                LOGGER.warning("Audit %s lookup failed: %s", key, err)
                continue
            extra_results[key] = task.result()
        return signals, extra_results

    async def _async_prior_scores(self) -> list[int]:
        assert self._snapshot_store is not None  # noqa: S101
        try:
            snapshots = await self._snapshot_store.async_get_latest(
                self._scoring.smoothing_window or 1
            )
        except SystemIntelligenceError as err:
            LOGGER.warning("Snapshot history unavailable, assuming none: %s", err)
            return []
        return [snapshot.health_score for snapshot in snapshots]


def _signal_from_task(name: str, task: asyncio.Task[CollectorSignal]) -> CollectorSignal:
    if task.cancelled():
        return CollectorSignal.unavailable(name, "timeout")
    err = task.exception()
    if err is not None:
        LOGGER.warning("Collector %s raised %s", name, describe_error(err))
        return CollectorSignal.unavailable(name, describe_error(err))
    result = task.result()
    if result.name != name:
        # Keep the report keyed by the collector that produced the signal.
        return CollectorSignal(
            name=name,
            available=result.available,
            last_run_at=result.last_run_at,
            count=result.count,
            extra=result.extra,
        )
    return result
