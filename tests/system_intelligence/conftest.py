"""Shared fixtures for System Intelligence tests."""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

from system_intelligence.audit.models import AuditReport, AuditStats, Issue
from system_intelligence.collectors.base import SignalCollector
from system_intelligence.collectors.models import CollectorSignal
from system_intelligence.const import (
    COLLECTOR_AI_BACKLOG,
    COLLECTOR_AI_ENRICHMENT_JOB,
    COLLECTOR_AI_PROVIDER,
    COLLECTOR_CRON_FAILURES,
    COLLECTOR_DATA_REFRESH_JOB,
    COLLECTOR_DATABASE,
    COLLECTOR_STALE_PROFILES,
    COLLECTOR_VECTOR_INDEX,
    COLLECTOR_VOTE_ANOMALIES,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def healthy_signal_map(now: datetime = NOW) -> dict[str, CollectorSignal]:
    """Return one healthy signal per collector."""
    recent = now - timedelta(hours=1)
    return {
        COLLECTOR_DATABASE: CollectorSignal.ok(COLLECTOR_DATABASE, count=1200),
        COLLECTOR_DATA_REFRESH_JOB: CollectorSignal.ok(
            COLLECTOR_DATA_REFRESH_JOB, last_run_at=recent, extra={"job": "scrape"}
        ),
        COLLECTOR_AI_ENRICHMENT_JOB: CollectorSignal.ok(
            COLLECTOR_AI_ENRICHMENT_JOB, last_run_at=recent, extra={"job": "ai-refresh"}
        ),
        COLLECTOR_CRON_FAILURES: CollectorSignal.ok(COLLECTOR_CRON_FAILURES, count=0),
        COLLECTOR_AI_BACKLOG: CollectorSignal.ok(COLLECTOR_AI_BACKLOG, count=10),
        COLLECTOR_STALE_PROFILES: CollectorSignal.ok(COLLECTOR_STALE_PROFILES, count=20),
        COLLECTOR_VOTE_ANOMALIES: CollectorSignal.ok(
            COLLECTOR_VOTE_ANOMALIES,
            count=0,
            extra={
                "threshold_spikes": 0,
                "velocity_spikes": 0,
                "coordinated_clusters": 0,
                "behavioral_drift": 0,
            },
        ),
        COLLECTOR_VECTOR_INDEX: CollectorSignal.ok(
            COLLECTOR_VECTOR_INDEX, count=1, extra={"namespace": "politicians"}
        ),
        COLLECTOR_AI_PROVIDER: CollectorSignal.ok(
            COLLECTOR_AI_PROVIDER, extra={"status": 200}
        ),
    }


class StubCollector(SignalCollector):
    """Collector returning a preset signal, optionally slow or failing."""

    def __init__(
        self,
        name: str,
        signal: CollectorSignal | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(timeout)
        self.name = name  # type: ignore[misc]
        self.signal = signal
        self.delay = delay
        self.error = error
        self.regions: list[str | None] = []
        self.cancelled = False

    async def _async_probe(self, region: str | None) -> CollectorSignal:
        self.regions.append(region)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.signal or CollectorSignal.ok(self.name)


def stub_collectors(
    signals: dict[str, CollectorSignal] | None = None,
) -> dict[str, StubCollector]:
    """Return one stub collector per signal, keyed by name."""
    signals = healthy_signal_map() if signals is None else signals
    return {name: StubCollector(name, signal) for name, signal in signals.items()}


def make_report(
    health_score: int = 90,
    generated_at: datetime = NOW,
    issues: tuple[Issue, ...] = (),
) -> AuditReport:
    """Return a small, valid report."""
    return AuditReport(
        health_score=health_score,
        risk_level="low" if health_score >= 70 else "medium",  # noqa: PLR2004
        issues=issues,
        stats=AuditStats(
            pending_ai=3,
            vote_anomalies=0,
            stale_profiles=1,
            governance_stability=health_score,
            projected_stability=health_score,
            health_drift=None,
        ),
        generated_at=generated_at,
    )


class FakeCursor:
    """Async cursor answering queries from a queue of prepared rows."""

    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn

    async def __aenter__(self) -> FakeCursor:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def execute(self, query: Any, params: Any = None) -> None:
        self._conn.executed.append((query, params))

    async def fetchone(self) -> dict[str, Any] | None:
        return self._conn.rows.popleft()

    async def fetchall(self) -> list[dict[str, Any]]:
        return self._conn.rows.popleft()


class FakeConnection:
    """Connection stand-in sharing one row queue between cursors."""

    def __init__(self, rows: deque[Any], executed: list[tuple[Any, Any]]) -> None:
        self.rows = rows
        self.executed = executed

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        yield


class FakePool:
    """Minimal psycopg_pool stand-in."""

    def __init__(
        self,
        rows: list[Any] | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.rows: deque[Any] = deque(rows or [])
        self.error = error
        self.delay = delay
        self.executed: list[tuple[Any, Any]] = []

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[FakeConnection]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        yield FakeConnection(self.rows, self.executed)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant."""
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock returning the fixed evaluation instant."""
    return lambda: NOW


@pytest.fixture
def healthy_signals() -> dict[str, CollectorSignal]:
    """One healthy signal per collector."""
    return healthy_signal_map()


@pytest.fixture
def healthy_collectors() -> dict[str, StubCollector]:
    """One stub collector per healthy signal."""
    return stub_collectors()


@pytest.fixture
def make_collector() -> type[StubCollector]:
    """Factory for stub collectors."""
    return StubCollector


@pytest.fixture
def fake_pool() -> type[FakePool]:
    """Factory for fake connection pools."""
    return FakePool


@pytest.fixture
def report_factory() -> Callable[..., AuditReport]:
    """Factory for small valid reports."""
    return make_report
