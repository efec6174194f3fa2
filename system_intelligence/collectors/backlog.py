"""Entity backlog collectors: pending AI enrichment and stale profiles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from psycopg import sql

from ..const import COLLECTOR_AI_BACKLOG, COLLECTOR_STALE_PROFILES
from .base import PoolCollector, fetch_count
from .models import CollectorSignal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

_PENDING_AI = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM {table} WHERE ai_narrative IS NULL{region}"
)
_STALE = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM {table} "
    "WHERE updated_at < NOW() - make_interval(days => %(days)s){region}"
)


def region_clause(region: str | None) -> sql.Composable:
    """Return the optional region filter appended to entity queries."""
    if region is None:
        return sql.SQL("")
    return sql.SQL(" AND state = %(region)s")


class EntityCollector(PoolCollector):
    """Collector counting rows of the primary entity table."""

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        entity_table: str,
        timeout: float | None = None,
    ) -> None:
        """Initialize entity collector."""
        super().__init__(pool, timeout)
        self._table = sql.Identifier(entity_table)

    def _params(self, region: str | None, **params: Any) -> dict[str, Any] | None:
        if region is not None:
            params["region"] = region
        return params or None


class AiBacklogCollector(EntityCollector):
    """Count entities still waiting for an AI-generated narrative."""

    name = COLLECTOR_AI_BACKLOG

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        pending = await fetch_count(
            conn,
            _PENDING_AI.format(table=self._table, region=region_clause(region)),
            self._params(region),
        )
        return CollectorSignal.ok(self.name, count=pending)


class StaleProfilesCollector(EntityCollector):
    """Count entities not refreshed within the staleness window."""

    name = COLLECTOR_STALE_PROFILES

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        entity_table: str,
        staleness_days: int,
        timeout: float | None = None,
    ) -> None:
        """Initialize stale profile collector."""
        super().__init__(pool, entity_table, timeout)
        self._staleness_days = staleness_days

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        stale = await fetch_count(
            conn,
            _STALE.format(table=self._table, region=region_clause(region)),
            self._params(region, days=self._staleness_days),
        )
        return CollectorSignal.ok(
            self.name, count=stale, extra={"window_days": self._staleness_days}
        )
