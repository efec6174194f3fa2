"""Scheduled-job recency collectors backed by the job log table."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from psycopg import sql

from ..const import (
    COLLECTOR_AI_ENRICHMENT_JOB,
    COLLECTOR_CRON_FAILURES,
    COLLECTOR_DATA_REFRESH_JOB,
)
from .base import PoolCollector, fetch_count
from .models import CollectorSignal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

_LAST_SUCCESS = sql.SQL(
    "SELECT MAX(created_at) AS last_run FROM {table} "
    "WHERE job = %(job)s AND status = 'ok'"
)
_RECENT_JOB_ERRORS = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM ("
    "SELECT status FROM {table} WHERE job = %(job)s "
    "ORDER BY created_at DESC LIMIT %(limit)s"
    ") AS recent WHERE status = 'error'"
)
_RECENT_ERRORS = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM ("
    "SELECT status FROM {table} ORDER BY created_at DESC LIMIT %(limit)s"
    ") AS recent WHERE status = 'error'"
)


class JobRecencyCollector(PoolCollector):
    """Report the last successful run of one scheduled job."""

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        job: str,
        job_log_table: str,
        error_window: int,
        timeout: float | None = None,
    ) -> None:
        """Initialize job recency collector."""
        super().__init__(pool, timeout)
        self._job = job
        self._table = sql.Identifier(job_log_table)
        self._error_window = error_window

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        async with conn.cursor() as cur:
            await cur.execute(
                _LAST_SUCCESS.format(table=self._table), {"job": self._job}
            )
            row = await cur.fetchone()
        last_run = row.get("last_run") if row else None
        if last_run is not None and not isinstance(last_run, datetime):
            msg = f"Unexpected last_run value for job {self._job}: {last_run!r}"
            raise TypeError(msg)

        recent_errors = await fetch_count(
            conn,
            _RECENT_JOB_ERRORS.format(table=self._table),
            {"job": self._job, "limit": self._error_window},
        )
        return CollectorSignal.ok(
            self.name,
            count=recent_errors,
            last_run_at=last_run,
            extra={"job": self._job, "recent_errors": recent_errors},
        )


class DataRefreshJobCollector(JobRecencyCollector):
    """Recency of the periodic data-refresh (scrape) job."""

    name = COLLECTOR_DATA_REFRESH_JOB


class AiEnrichmentJobCollector(JobRecencyCollector):
    """Recency of the AI-enrichment job."""

    name = COLLECTOR_AI_ENRICHMENT_JOB


class CronFailuresCollector(PoolCollector):
    """Count failed runs among the most recent job-log entries of any job."""

    name = COLLECTOR_CRON_FAILURES

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        job_log_table: str,
        error_window: int,
        timeout: float | None = None,
    ) -> None:
        """Initialize cron failure collector."""
        super().__init__(pool, timeout)
        self._table = sql.Identifier(job_log_table)
        self._error_window = error_window

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        errors = await fetch_count(
            conn,
            _RECENT_ERRORS.format(table=self._table),
            {"limit": self._error_window},
        )
        return CollectorSignal.ok(
            self.name, count=errors, extra={"window": self._error_window}
        )
