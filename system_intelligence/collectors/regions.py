"""Per-region (state) breakdown of the entity collectors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psycopg import sql

from ..const import (
    COLLECTOR_AI_BACKLOG,
    COLLECTOR_DATABASE,
    COLLECTOR_REGIONS,
    COLLECTOR_STALE_PROFILES,
    COLLECTOR_VOTE_ANOMALIES,
)
from ..core.error_handlers import ErrorHandler
from .models import CollectorSignal, RegionSignals

if TYPE_CHECKING:
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

LOGGER = logging.getLogger(__name__)

MAX_REGIONS = 50

_BY_REGION = sql.SQL(
    "SELECT state, COUNT(*)::int AS total, "
    "(COUNT(*) FILTER (WHERE ai_narrative IS NULL))::int AS pending_ai, "
    "(COUNT(*) FILTER ("
    "WHERE updated_at < NOW() - make_interval(days => %(days)s)))::int AS stale, "
    "(COUNT(*) FILTER (WHERE votes_up > %(spike)s))::int AS vote_spikes "
    "FROM {table} WHERE state IS NOT NULL "
    "GROUP BY state ORDER BY state LIMIT %(limit)s"
)


class RegionBreakdownCollector:
    """Group entity counts by region into per-region collector subsets."""

    name = COLLECTOR_REGIONS

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        entity_table: str,
        staleness_days: int,
        spike_threshold: int,
        timeout: float | None = None,
    ) -> None:
        """Initialize region breakdown collector."""
        self._pool = pool
        self._table = sql.Identifier(entity_table)
        self._staleness_days = staleness_days
        self._spike_threshold = spike_threshold
        self._timeout = timeout

    async def async_collect_regions(self) -> tuple[RegionSignals, ...] | None:
        """Return per-region signals, or None when the breakdown is unavailable."""
        if self._pool is None:
            return None
        result, err = await ErrorHandler.execute_with_standard_handling(
            self._async_query(),
            f"Collector {self.name}",
            timeout=self._timeout,
        )
        if err is not None:
            return None
        return result

    async def _async_query(self) -> tuple[RegionSignals, ...]:
        assert self._pool is not None  # noqa: S101
        async with self._pool.connection() as conn, conn.cursor() as cur:
            await cur.execute(
                _BY_REGION.format(table=self._table),
                {
                    "days": self._staleness_days,
                    "spike": self._spike_threshold,
                    "limit": MAX_REGIONS,
                },
            )
            rows = await cur.fetchall()

        regions: list[RegionSignals] = []
        for row in rows:
            region = str(row["state"]).strip()
            if not region:
                continue
            regions.append(
                RegionSignals(
                    region=region,
                    signals=(
                        CollectorSignal.ok(COLLECTOR_DATABASE, count=row["total"]),
                        CollectorSignal.ok(COLLECTOR_AI_BACKLOG, count=row["pending_ai"]),
                        CollectorSignal.ok(COLLECTOR_STALE_PROFILES, count=row["stale"]),
                        CollectorSignal.ok(
                            COLLECTOR_VOTE_ANOMALIES, count=row["vote_spikes"]
                        ),
                    ),
                )
            )
        LOGGER.debug("Region breakdown covers %s region(s).", len(regions))
        return tuple(sorted(regions, key=lambda item: item.region))
