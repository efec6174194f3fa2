"""Relational store connectivity and row-count collector."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psycopg import sql

from ..const import COLLECTOR_DATABASE
from .base import PoolCollector, fetch_count
from .models import CollectorSignal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

LOGGER = logging.getLogger(__name__)


class DatabaseCollector(PoolCollector):
    """Check database reachability and count rows of the core entities."""

    name = COLLECTOR_DATABASE

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        entity_table: str,
        core_tables: tuple[str, ...],
        timeout: float | None = None,
    ) -> None:
        """Initialize database collector."""
        super().__init__(pool, timeout)
        self._entity_table = entity_table
        self._core_tables = tuple(dict.fromkeys((entity_table, *core_tables)))

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        await fetch_count(conn, "SELECT 1 AS ok")

        counts: dict[str, int] = {}
        missing: list[str] = []
        for table in self._core_tables:
            exists = await fetch_count(
                conn,
                "SELECT (to_regclass(%(table)s) IS NOT NULL)::int AS present",
                {"table": f"public.{table}"},
            )
            if not exists:
                missing.append(table)
                continue
            counts[table] = await fetch_count(
                conn,
                sql.SQL("SELECT COUNT(*)::int AS count FROM {}").format(
                    sql.Identifier(table)
                ),
            )

        if missing:
            LOGGER.debug("Core tables not present: %s", ", ".join(missing))

        extra: dict[str, str | int] = {f"rows_{table}": n for table, n in counts.items()}
        if missing:
            extra["missing_tables"] = ",".join(missing)
        return CollectorSignal.ok(
            self.name,
            count=counts.get(self._entity_table, 0),
            extra=extra,
        )
