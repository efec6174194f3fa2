"""Base class for read-only signal collectors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

from ..core.error_handlers import ErrorHandler, describe_error
from .models import CollectorSignal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

LOGGER = logging.getLogger(__name__)


class SignalCollector:
    """
    Narrow read-only probe against one external subsystem.

    Subclasses implement `_async_probe`; `async_collect` wraps it so that no
    failure escapes: timeouts, connection and query errors all degrade to an
    unavailable signal.
    """

    name: ClassVar[str]

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the collector with its own time budget."""
        self._timeout = timeout

    async def async_collect(self, region: str | None = None) -> CollectorSignal:
        """Return this subsystem's signal; never raises on probe failure."""
        result, err = await ErrorHandler.execute_with_standard_handling(
            self._async_probe(region),
            f"Collector {self.name}",
            timeout=self._timeout,
        )
        if err is not None:
            return CollectorSignal.unavailable(self.name, describe_error(err))
        if not isinstance(result, CollectorSignal):
            LOGGER.warning(
                "Collector %s returned %s instead of a signal.",
                self.name,
                type(result).__name__,
            )
            return CollectorSignal.unavailable(self.name, "invalid probe result")
        return result

    async def _async_probe(self, region: str | None) -> CollectorSignal:
        raise NotImplementedError


class PoolCollector(SignalCollector):
    """Collector reading from the relational store through a psycopg pool."""

    def __init__(
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        timeout: float | None = None,
    ) -> None:
        """Initialize with a shared connection pool (None when not configured)."""
        super().__init__(timeout)
        self._pool = pool

    async def _async_probe(self, region: str | None) -> CollectorSignal:
        if self._pool is None:
            return CollectorSignal.unavailable(self.name, "database not configured")
        async with self._pool.connection() as conn:
            return await self._async_query(conn, region)

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        raise NotImplementedError


async def fetch_count(
    conn: AsyncConnection[DictRow], query: Any, params: dict[str, Any] | None = None
) -> int:
    """Run a single-row COUNT query and return the integer result."""
    async with conn.cursor() as cur:
        await cur.execute(query, params)
        row = await cur.fetchone()
    if not row:
        return 0
    return int(next(iter(row.values())) or 0)
