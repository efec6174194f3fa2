"""Append-only snapshot storage."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import aiofiles
import aiofiles.os
import psycopg
import voluptuous as vol
from psycopg import sql
from psycopg.types.json import Jsonb
from psycopg_pool import PoolTimeout

from ..audit.models import Snapshot, StoredSnapshot
from ..audit.schema import validate_report
from ..core.datetime_utils import DateTimeUtils
from ..exceptions import SnapshotStoreError

if TYPE_CHECKING:
    from datetime import datetime

    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

    from ..audit.models import AuditReport

LOGGER = logging.getLogger(__name__)

STORE_VERSION = 1


class SnapshotStore(Protocol):
    """Append-only history of hash-stamped audit reports."""

    async def async_setup(self) -> None:
        """Prepare the backing storage."""
        ...

    async def async_append(
        self, report: AuditReport, digest: str, created_at: datetime
    ) -> Snapshot:
        """Persist one snapshot; raise SnapshotStoreError on failure."""
        ...

    async def async_get_latest(self, limit: int) -> list[Snapshot]:
        """Return up to `limit` snapshots, newest first."""
        ...

    async def async_get_latest_stored(self, limit: int) -> list[StoredSnapshot]:
        """Return up to `limit` snapshots with their reports, newest first."""
        ...


def _validated_payload(report: AuditReport) -> dict[str, Any]:
    payload = report.as_dict()
    try:
        validate_report(payload)
    except vol.Invalid as err:
        msg = f"Refusing to store invalid report: {err}"
        raise SnapshotStoreError(msg) from err
    return payload


def _snapshot_from_record(record: dict[str, Any]) -> Snapshot:
    created_at = DateTimeUtils.parse_or_default(record.get("createdAt"))
    if created_at is None:
        msg = f"Snapshot {record.get('id')} has no valid createdAt"
        raise ValueError(msg)
    return Snapshot(
        id=int(record["id"]),
        hash=str(record["hash"]),
        health_score=int(record["healthScore"]),
        risk_level=record["riskLevel"],
        created_at=created_at,
    )


class JsonSnapshotStore:
    """
    Snapshot history kept in a single JSON file.

    Every append rewrites the file through a temporary sibling and an atomic
    rename, so a failed write leaves the previous history untouched and no
    partial row is ever visible.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._records: list[dict[str, Any]] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        """Return the backing file path."""
        return self._path

    async def async_setup(self) -> None:
        """Load existing history from disk."""
        async with self._lock:
            await self._async_load()

    async def _async_load(self) -> None:
        if self._loaded:
            return
        try:
            if not await aiofiles.os.path.exists(self._path):
                self._records = []
                self._loaded = True
                return
            async with aiofiles.open(self._path, encoding="utf-8") as handle:
                data = json.loads(await handle.read())
        except (OSError, ValueError) as err:
            msg = f"Cannot read snapshot history {self._path}: {err}"
            raise SnapshotStoreError(msg) from err

        if not isinstance(data, dict) or not isinstance(data.get("snapshots"), list):
            msg = f"Snapshot history {self._path} is malformed"
            raise SnapshotStoreError(msg)
        self._records = list(data["snapshots"])
        self._loaded = True
        LOGGER.debug("Loaded %s snapshot(s) from %s", len(self._records), self._path)

    async def _async_write(self, records: list[dict[str, Any]]) -> None:
        payload = json.dumps(
            {"version": STORE_VERSION, "snapshots": records},
            ensure_ascii=False,
            indent=1,
        )
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as handle:
            await handle.write(payload)
            await handle.flush()
        await aiofiles.os.replace(tmp_path, self._path)

    async def async_append(
        self, report: AuditReport, digest: str, created_at: datetime
    ) -> Snapshot:
        """Append a snapshot and persist the whole history atomically."""
        payload = _validated_payload(report)
        async with self._lock:
            await self._async_load()
            try:
                next_id = max((int(r["id"]) for r in self._records), default=0) + 1
            except (KeyError, ValueError, TypeError) as err:
                msg = f"Snapshot history {self._path} holds an invalid record: {err!r}"
                raise SnapshotStoreError(msg) from err
            snapshot = Snapshot(
                id=next_id,
                hash=digest,
                health_score=report.health_score,
                risk_level=report.risk_level,
                created_at=DateTimeUtils.as_utc(created_at),
            )
            record = {**snapshot.as_dict(), "report": payload}
            try:
                await self._async_write([*self._records, record])
            except (OSError, ValueError, TypeError) as err:
                msg = f"Cannot write snapshot history {self._path}: {err}"
                raise SnapshotStoreError(msg) from err
            self._records.append(record)
        return snapshot

    async def async_get_latest(self, limit: int) -> list[Snapshot]:
        """Return the latest snapshots, newest first."""
        return [item.snapshot for item in await self.async_get_latest_stored(limit)]

    async def async_get_latest_stored(self, limit: int) -> list[StoredSnapshot]:
        """Return the latest snapshots with their reports, newest first."""
        if limit <= 0:
            return []
        async with self._lock:
            await self._async_load()
            records = list(reversed(self._records[-limit:]))
        try:
            return [
                StoredSnapshot(
                    snapshot=_snapshot_from_record(record),
                    report=dict(record.get("report") or {}),
                )
                for record in records
            ]
        except (KeyError, ValueError, TypeError) as err:
            msg = f"Snapshot history {self._path} holds an invalid record: {err}"
            raise SnapshotStoreError(msg) from err


_CREATE_TABLE = sql.SQL(
    "CREATE TABLE IF NOT EXISTS {table} ("
    "id SERIAL PRIMARY KEY, "
    "hash TEXT NOT NULL, "
    "health_score INTEGER NOT NULL CHECK (health_score BETWEEN 0 AND 100), "
    "risk_level TEXT NOT NULL, "
    "report JSONB NOT NULL, "
    "created_at TIMESTAMPTZ NOT NULL DEFAULT NOW())"
)
_INSERT = sql.SQL(
    "INSERT INTO {table} (hash, health_score, risk_level, report, created_at) "
    "VALUES (%(hash)s, %(health_score)s, %(risk_level)s, %(report)s, %(created_at)s) "
    "RETURNING id, hash, health_score, risk_level, created_at"
)
_SELECT_LATEST = sql.SQL(
    "SELECT id, hash, health_score, risk_level, created_at, report FROM {table} "
    "ORDER BY created_at DESC, id DESC LIMIT %(limit)s"
)


def _snapshot_from_row(row: DictRow) -> Snapshot:
    return Snapshot(
        id=int(row["id"]),
        hash=str(row["hash"]),
        health_score=int(row["health_score"]),
        risk_level=row["risk_level"],
        created_at=DateTimeUtils.as_utc(row["created_at"]),
    )


class PostgresSnapshotStore:
    """Snapshot history kept in a PostgreSQL table; rows are insert-only."""

    def __init__(
        self, pool: AsyncConnectionPool[AsyncConnection[DictRow]], table: str
    ) -> None:
        self._pool = pool
        self._table = sql.Identifier(table)
        self._ready = False

    async def async_setup(self) -> None:
        """Create the snapshot table when missing."""
        try:
            async with self._pool.connection() as conn, conn.cursor() as cur:
                await cur.execute(_CREATE_TABLE.format(table=self._table))
        except (psycopg.Error, PoolTimeout) as err:
            msg = f"Cannot prepare snapshot table: {err}"
            raise SnapshotStoreError(msg) from err
        self._ready = True

    async def async_append(
        self, report: AuditReport, digest: str, created_at: datetime
    ) -> Snapshot:
        """Insert one snapshot row inside a transaction."""
        payload = _validated_payload(report)
        if not self._ready:
            await self.async_setup()
        try:
            async with self._pool.connection() as conn, conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        _INSERT.format(table=self._table),
                        {
                            "hash": digest,
                            "health_score": report.health_score,
                            "risk_level": report.risk_level,
                            "report": Jsonb(payload),
                            "created_at": DateTimeUtils.as_utc(created_at),
                        },
                    )
                    row = await cur.fetchone()
        except (psycopg.Error, PoolTimeout) as err:
            msg = f"Cannot insert snapshot: {err}"
            raise SnapshotStoreError(msg) from err
        if row is None:
            msg = "Snapshot insert returned no row"
            raise SnapshotStoreError(msg)
        return _snapshot_from_row(row)

    async def async_get_latest(self, limit: int) -> list[Snapshot]:
        """Return the latest snapshots, newest first."""
        return [item.snapshot for item in await self.async_get_latest_stored(limit)]

    async def async_get_latest_stored(self, limit: int) -> list[StoredSnapshot]:
        """Return the latest snapshots with their reports, newest first."""
        if limit <= 0:
            return []
        try:
            async with self._pool.connection() as conn, conn.cursor() as cur:
                await cur.execute(
                    _SELECT_LATEST.format(table=self._table), {"limit": limit}
                )
                rows = await cur.fetchall()
        except (psycopg.Error, PoolTimeout) as err:
            msg = f"Cannot read snapshots: {err}"
            raise SnapshotStoreError(msg) from err
        return [
            StoredSnapshot(snapshot=_snapshot_from_row(row), report=dict(row["report"]))
            for row in rows
        ]

