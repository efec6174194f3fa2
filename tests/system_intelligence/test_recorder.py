# ruff: noqa: S101
"""Tests for the snapshot recorder and hash anchoring."""

from __future__ import annotations

import asyncio
import base64
import json
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from system_intelligence.audit.assembler import AuditAssembler
from system_intelligence.audit.hashing import hash_payload, hash_report
from system_intelligence.collectors.models import CollectorSignal
from system_intelligence.config import ScoringConfig
from system_intelligence.exceptions import SnapshotStoreError
from system_intelligence.snapshot.anchor import GitHubHashAnchor
from system_intelligence.snapshot.recorder import SnapshotRecorder
from system_intelligence.snapshot.store import JsonSnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from pathlib import Path

    from system_intelligence.audit.models import AuditReport, Snapshot


class _Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class _FlakyStore(JsonSnapshotStore):
    """File store whose first appends are rejected."""

    def __init__(self, path: Path, failures: int) -> None:
        super().__init__(path)
        self.failures = failures

    async def async_append(
        self, report: AuditReport, digest: str, created_at: datetime
    ) -> Snapshot:
        if self.failures > 0:
            self.failures -= 1
            msg = "storage offline"
            raise SnapshotStoreError(msg)
        return await super().async_append(report, digest, created_at)


def _setup(
    collectors: dict[str, Any],
    store: JsonSnapshotStore,
    clock: Callable[[], datetime],
    interval: float = 3600,
    anchor: GitHubHashAnchor | None = None,
) -> tuple[AuditAssembler, SnapshotRecorder]:
    assembler = AuditAssembler(
        list(collectors.values()),
        ScoringConfig(),
        ceiling=1.0,
        snapshot_store=store,
        clock=clock,
    )
    recorder = SnapshotRecorder(
        assembler, store, interval, anchor=anchor, clock=clock  # type: ignore[arg-type]
    )
    return assembler, recorder


@pytest.mark.asyncio
async def test_each_tick_appends_one_snapshot(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """N runs produce N snapshots, newest first on read."""
    clock = _Clock(now)
    store = JsonSnapshotStore(tmp_path / "snapshots.json")
    _assembler, recorder = _setup(healthy_collectors, store, clock)

    results = []
    for _ in range(3):
        results.append(await recorder.async_record_now())
        clock.advance(days=1)

    assert [result.status for result in results] == ["recorded"] * 3
    latest = await store.async_get_latest(10)
    assert [snapshot.id for snapshot in latest] == [3, 2, 1]
    assert latest[0].hash == results[-1].hash
    assert results[0].as_dict()["ok"] is True
    assert results[0].anchored is None


@pytest.mark.asyncio
async def test_storage_failure_skips_tick_then_recovers(
    tmp_path: Path,
    healthy_collectors: dict[str, Any],
    now: datetime,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A rejected write is logged, not raised; the next tick records."""
    store = _FlakyStore(tmp_path / "snapshots.json", failures=1)
    _assembler, recorder = _setup(healthy_collectors, store, _Clock(now))

    failed = await recorder.async_record_now()
    recorded = await recorder.async_record_now()

    assert failed.status == "failed"
    assert failed.snapshot is None
    assert failed.hash is not None
    assert "storage offline" in caplog.text
    assert recorded.ok
    assert [snapshot.id for snapshot in await store.async_get_latest(5)] == [1]


@pytest.mark.asyncio
async def test_runs_never_overlap(
    tmp_path: Path,
    healthy_collectors: dict[str, Any],
    make_collector: Any,
    now: datetime,
) -> None:
    """A tick arriving while a run is in flight is skipped."""
    healthy_collectors["database"] = make_collector(
        "database", CollectorSignal.ok("database", count=10), delay=0.2
    )
    store = JsonSnapshotStore(tmp_path / "snapshots.json")
    _assembler, recorder = _setup(healthy_collectors, store, _Clock(now))

    first, second = await asyncio.gather(
        recorder.async_record_now(), recorder.async_record_now()
    )

    assert {first.status, second.status} == {"recorded", "skipped"}
    assert len(await store.async_get_latest(5)) == 1
    assert not recorder.busy


@pytest.mark.asyncio
async def test_ad_hoc_audits_run_alongside_recording(
    tmp_path: Path,
    healthy_collectors: dict[str, Any],
    make_collector: Any,
    now: datetime,
) -> None:
    """Live audits are not blocked by a recording in flight."""
    healthy_collectors["database"] = make_collector(
        "database", CollectorSignal.ok("database", count=10), delay=0.1
    )
    store = JsonSnapshotStore(tmp_path / "snapshots.json")
    assembler, recorder = _setup(healthy_collectors, store, _Clock(now))

    result, *reports = await asyncio.gather(
        recorder.async_record_now(),
        assembler.async_run(),
        assembler.async_run(),
    )

    assert result.ok
    assert all(report.health_score == 100 for report in reports)


@pytest.mark.asyncio
async def test_drift_between_recorded_snapshots(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """A second snapshot reports drift against the first."""
    clock = _Clock(now)
    store = JsonSnapshotStore(tmp_path / "snapshots.json")
    _assembler, recorder = _setup(healthy_collectors, store, clock)

    healthy_collectors["data_refresh_job"].signal = CollectorSignal.ok(
        "data_refresh_job", last_run_at=now - timedelta(hours=30)
    )
    first = await recorder.async_record_now()

    clock.advance(days=1)
    healthy_collectors["ai_enrichment_job"].signal = CollectorSignal.ok(
        "ai_enrichment_job", last_run_at=now - timedelta(hours=30)
    )
    healthy_collectors["vector_index"].signal = CollectorSignal.unavailable(
        "vector_index", "timeout"
    )
    second = await recorder.async_record_now()

    assert first.snapshot is not None
    assert second.snapshot is not None
    assert first.snapshot.health_score == 90
    assert second.snapshot.health_score == 70
    stored = await store.async_get_latest_stored(1)
    assert stored[0].report["stats"]["healthDrift"] == -20
    assert stored[0].snapshot.hash == hash_payload(stored[0].report)


@pytest.mark.asyncio
async def test_snapshot_hash_is_anchored(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """The hash is written to a dated file in the anchor repository."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"content": {}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        anchor = GitHubHashAnchor(
            client, "org/audits", "gh-token", api_url="https://api.github.test/"
        )
        store = JsonSnapshotStore(tmp_path / "snapshots.json")
        _assembler, recorder = _setup(
            healthy_collectors, store, _Clock(now), anchor=anchor
        )
        result = await recorder.async_record_now()

    assert result.anchored is True
    assert [request.method for request in requests] == ["GET", "PUT"]
    request = requests[1]
    assert request.url.path == "/repos/org/audits/contents/audit-2025-01-01.txt"
    assert request.headers["Authorization"] == "Bearer gh-token"
    body = json.loads(request.content)
    assert body["message"] == "Daily audit anchor 2025-01-01"
    assert base64.b64decode(body["content"]).decode() == result.hash
    assert "sha" not in body


@pytest.mark.asyncio
async def test_same_day_anchor_replaces_existing_file(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """A second snapshot on one day updates that day's file by its sha."""
    puts: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            if not puts:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"sha": "abc123"})
        puts.append(json.loads(request.content))
        return httpx.Response(201 if len(puts) == 1 else 200, json={})

    clock = _Clock(now)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        anchor = GitHubHashAnchor(client, "org/audits", "gh-token")
        store = JsonSnapshotStore(tmp_path / "snapshots.json")
        _assembler, recorder = _setup(healthy_collectors, store, clock, anchor=anchor)
        first = await recorder.async_record_now()
        clock.advance(hours=2)
        second = await recorder.async_record_now()

    assert first.anchored is True
    assert second.anchored is True
    assert "sha" not in puts[0]
    assert puts[1]["sha"] == "abc123"


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", ["status", "network"])
async def test_anchor_failure_keeps_snapshot(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime, failure: str
) -> None:
    """A rejected anchor is reported but the snapshot stays recorded."""

    def handler(request: httpx.Request) -> httpx.Response:
        if failure == "network":
            msg = "github unreachable"
            raise httpx.ConnectError(msg, request=request)
        return httpx.Response(422, json={"message": "sha missing"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        anchor = GitHubHashAnchor(client, "org/audits", "gh-token")
        store = JsonSnapshotStore(tmp_path / "snapshots.json")
        _assembler, recorder = _setup(
            healthy_collectors, store, _Clock(now), anchor=anchor
        )
        result = await recorder.async_record_now()

    assert result.status == "recorded"
    assert result.anchored is False
    assert len(await store.async_get_latest(5)) == 1


@pytest.mark.asyncio
async def test_loop_records_on_schedule(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """The loop records immediately on empty history, then every interval."""
    store = JsonSnapshotStore(tmp_path / "snapshots.json")
    _assembler, recorder = _setup(
        healthy_collectors, store, _Clock(now), interval=0.05
    )

    recorder.start()
    recorder.start()
    assert recorder.running
    try:
        async with asyncio.timeout(5):
            while len(await store.async_get_latest(10)) < 2:
                await asyncio.sleep(0.01)
    finally:
        await recorder.stop()

    assert not recorder.running
    count = len(await store.async_get_latest(100))
    await asyncio.sleep(0.15)
    assert len(await store.async_get_latest(100)) == count


@pytest.mark.asyncio
async def test_initial_delay_follows_history(
    tmp_path: Path,
    healthy_collectors: dict[str, Any],
    report_factory: Callable[..., AuditReport],
    now: datetime,
) -> None:
    """A restart waits for the remainder of the interval."""
    store = JsonSnapshotStore(tmp_path / "snapshots.json")
    report = report_factory()
    await store.async_append(report, hash_report(report), now - timedelta(seconds=600))
    _assembler, recorder = _setup(healthy_collectors, store, _Clock(now))

    delay = await recorder._async_initial_delay()  # noqa: SLF001

    assert delay == pytest.approx(3000)


@pytest.mark.asyncio
async def test_initial_delay_without_history(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """Unreadable or empty history records right away."""
    path = tmp_path / "snapshots.json"
    path.write_text("broken", encoding="utf-8")
    _assembler, broken = _setup(
        healthy_collectors, JsonSnapshotStore(path), _Clock(now)
    )
    _assembler, empty = _setup(
        healthy_collectors, JsonSnapshotStore(tmp_path / "new.json"), _Clock(now)
    )

    assert await broken._async_initial_delay() == 0.0  # noqa: SLF001
    assert await empty._async_initial_delay() == 0.0  # noqa: SLF001


@pytest.mark.asyncio
async def test_history_record_without_id_fails_the_tick(
    tmp_path: Path, healthy_collectors: dict[str, Any], now: datetime
) -> None:
    """An unreadable stored record turns into a failed run, not a crash."""
    path = tmp_path / "snapshots.json"
    original = json.dumps({"version": 1, "snapshots": [{"hash": "x"}]})
    path.write_text(original, encoding="utf-8")
    _assembler, recorder = _setup(
        healthy_collectors, JsonSnapshotStore(path), _Clock(now)
    )

    result = await recorder.async_record_now()

    assert result.status == "failed"
    assert result.snapshot is None
    assert path.read_text(encoding="utf-8") == original


class _ExplodingStore(JsonSnapshotStore):
    """File store whose first append raises an unexpected error."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.exploded = False

    async def async_append(
        self, report: AuditReport, digest: str, created_at: datetime
    ) -> Snapshot:
        if not self.exploded:
            self.exploded = True
            msg = "unexpected"
            raise RuntimeError(msg)
        return await super().async_append(report, digest, created_at)


@pytest.mark.asyncio
async def test_loop_survives_unexpected_tick_error(
    tmp_path: Path,
    healthy_collectors: dict[str, Any],
    now: datetime,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """One failing tick is logged and the schedule keeps recording."""
    store = _ExplodingStore(tmp_path / "snapshots.json")
    _assembler, recorder = _setup(
        healthy_collectors, store, _Clock(now), interval=0.05
    )

    recorder.start()
    try:
        async with asyncio.timeout(5):
            while not await store.async_get_latest(1):
                await asyncio.sleep(0.01)
        assert recorder.running
    finally:
        await recorder.stop()

    assert store.exploded
    assert "Snapshot run failed" in caplog.text
