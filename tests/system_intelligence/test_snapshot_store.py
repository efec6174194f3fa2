# ruff: noqa: S101
"""Tests for snapshot storage and report hashing."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import psycopg
import pytest
import voluptuous as vol

from system_intelligence.audit.hashing import hash_report, verify_stored_snapshot
from system_intelligence.audit.models import Issue, Snapshot, StoredSnapshot
from system_intelligence.audit.schema import validate_report
from system_intelligence.exceptions import SnapshotStoreError
from system_intelligence.snapshot.store import JsonSnapshotStore, PostgresSnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from pathlib import Path

    from system_intelligence.audit.models import AuditReport


@pytest.mark.asyncio
async def test_append_and_read_newest_first(
    tmp_path: Path, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """Snapshots get increasing ids and are read newest first."""
    store = JsonSnapshotStore(tmp_path / "history" / "snapshots.json")
    for day, score in enumerate((90, 80, 70)):
        report = report_factory(health_score=score)
        await store.async_append(report, hash_report(report), now + timedelta(days=day))

    latest = await store.async_get_latest(30)

    assert [snapshot.id for snapshot in latest] == [3, 2, 1]
    assert [snapshot.health_score for snapshot in latest] == [70, 80, 90]
    assert [snapshot.id for snapshot in await store.async_get_latest(2)] == [3, 2]
    assert await store.async_get_latest(0) == []


@pytest.mark.asyncio
async def test_history_survives_reload(
    tmp_path: Path, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """A new store over the same file sees earlier snapshots."""
    path = tmp_path / "snapshots.json"
    report = report_factory()
    digest = hash_report(report)
    await JsonSnapshotStore(path).async_append(report, digest, now)

    reloaded = JsonSnapshotStore(path)
    await reloaded.async_setup()
    stored = await reloaded.async_get_latest_stored(1)

    assert stored[0].snapshot.hash == digest
    assert stored[0].snapshot.created_at == now
    assert verify_stored_snapshot(stored[0])
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


@pytest.mark.asyncio
async def test_tampered_report_fails_verification(
    tmp_path: Path, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """Editing a stored report is detectable from its hash."""
    path = tmp_path / "snapshots.json"
    report = report_factory()
    await JsonSnapshotStore(path).async_append(report, hash_report(report), now)

    data = json.loads(path.read_text(encoding="utf-8"))
    data["snapshots"][0]["report"]["healthScore"] = 100
    path.write_text(json.dumps(data), encoding="utf-8")

    stored = await JsonSnapshotStore(path).async_get_latest_stored(1)

    assert not verify_stored_snapshot(stored[0])


@pytest.mark.asyncio
async def test_failed_write_leaves_history_unchanged(
    tmp_path: Path,
    report_factory: Callable[..., AuditReport],
    now: datetime,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A rejected write raises and no partial row becomes visible."""
    path = tmp_path / "snapshots.json"
    store = JsonSnapshotStore(path)
    report = report_factory()
    await store.async_append(report, hash_report(report), now)
    before = path.read_text(encoding="utf-8")

    async def _fail(records: list[dict[str, Any]]) -> None:
        msg = "disk full"
        raise OSError(msg)

    monkeypatch.setattr(store, "_async_write", _fail)

    with pytest.raises(SnapshotStoreError, match="disk full"):
        await store.async_append(report, hash_report(report), now)

    assert len(await store.async_get_latest(30)) == 1
    assert path.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_malformed_history_file(tmp_path: Path) -> None:
    """Unreadable history is an error, not an empty history."""
    path = tmp_path / "snapshots.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SnapshotStoreError):
        await JsonSnapshotStore(path).async_get_latest(1)

    path.write_text(json.dumps({"version": 1}), encoding="utf-8")
    with pytest.raises(SnapshotStoreError, match="malformed"):
        await JsonSnapshotStore(path).async_setup()


@pytest.mark.asyncio
async def test_missing_file_is_empty_history(tmp_path: Path) -> None:
    """A store without a file has no snapshots yet."""
    store = JsonSnapshotStore(tmp_path / "absent.json")
    await store.async_setup()

    assert await store.async_get_latest(5) == []


def test_hash_is_reproducible(
    report_factory: Callable[..., AuditReport],
) -> None:
    """Equal reports hash equally; any field change alters the hash."""
    report = report_factory()

    assert hash_report(report) == hash_report(report_factory())
    assert len(hash_report(report)) == 64
    assert hash_report(report) != hash_report(report_factory(health_score=89))
    changed = report_factory(
        issues=(Issue(code="ai_backlog", severity="medium", message="60 pending"),)
    )
    assert hash_report(report) != hash_report(changed)


def test_verify_rejects_mismatched_hash(
    report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """A stamp computed from another report does not verify."""
    report = report_factory()
    stored = StoredSnapshot(
        snapshot=Snapshot(
            id=1,
            hash=hash_report(report_factory(health_score=10)),
            health_score=90,
            risk_level="low",
            created_at=now,
        ),
        report=report.as_dict(),
    )

    assert not verify_stored_snapshot(stored)


def test_report_payload_matches_schema(
    report_factory: Callable[..., AuditReport],
) -> None:
    """Serialized reports validate; out-of-range scores do not."""
    payload = report_factory().as_dict()
    assert validate_report(payload)["healthScore"] == 90

    payload["healthScore"] = 101
    with pytest.raises(vol.Invalid):
        validate_report(payload)


@pytest.mark.asyncio
async def test_invalid_report_is_not_stored(
    tmp_path: Path, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """A report outside the schema is refused before anything is written."""
    path = tmp_path / "snapshots.json"
    store = JsonSnapshotStore(path)
    report = report_factory(health_score=150)

    with pytest.raises(SnapshotStoreError, match="invalid report"):
        await store.async_append(report, hash_report(report), now)

    assert not path.exists()
    assert await store.async_get_latest(5) == []


@pytest.mark.asyncio
async def test_postgres_append_inside_transaction(
    fake_pool: Any, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """Postgres appends create the table once, then insert and return the row."""
    row = {
        "id": 7,
        "hash": "ab" * 32,
        "health_score": 90,
        "risk_level": "low",
        "created_at": now.replace(tzinfo=None),
    }
    pool = fake_pool([row])
    store = PostgresSnapshotStore(pool, "system_audit_snapshots")
    report = report_factory()

    snapshot = await store.async_append(report, "ab" * 32, now)

    assert snapshot.id == 7
    assert snapshot.created_at == now
    assert len(pool.executed) == 2
    params = pool.executed[1][1]
    assert params["hash"] == "ab" * 32
    assert params["health_score"] == 90


@pytest.mark.asyncio
async def test_postgres_reads_newest_first(
    fake_pool: Any, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """Rows come back as stored snapshots with their reports."""
    report = report_factory()
    rows = [
        {
            "id": 2,
            "hash": hash_report(report),
            "health_score": 90,
            "risk_level": "low",
            "created_at": now,
            "report": report.as_dict(),
        }
    ]
    pool = fake_pool([rows])

    stored = await PostgresSnapshotStore(pool, "snapshots").async_get_latest_stored(5)

    assert stored[0].snapshot.id == 2
    assert verify_stored_snapshot(stored[0])
    assert pool.executed[0][1] == {"limit": 5}


@pytest.mark.asyncio
async def test_postgres_errors_become_store_errors(
    fake_pool: Any, report_factory: Callable[..., AuditReport], now: datetime
) -> None:
    """Database failures surface as snapshot store errors."""
    store = PostgresSnapshotStore(
        fake_pool(error=psycopg.OperationalError("down")), "snapshots"
    )

    with pytest.raises(SnapshotStoreError):
        await store.async_get_latest(1)
    with pytest.raises(SnapshotStoreError):
        await store.async_append(report_factory(), "00" * 32, now)
