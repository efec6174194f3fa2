"""Vote-ledger anomaly collector."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from psycopg import sql

from ..const import COLLECTOR_VOTE_ANOMALIES
from .backlog import EntityCollector, region_clause
from .base import fetch_count
from .models import CollectorSignal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

LOGGER = logging.getLogger(__name__)

VOTE_LEDGER_TABLE = "vote_audit_trail"

_THRESHOLD_SPIKES = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM {table} WHERE votes_up > %(spike)s{region}"
)
_VELOCITY_SPIKES = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM {ledger} AS t "
    "JOIN {table} AS p ON p.id = t.politician_id "
    "WHERE t.created_at > NOW() - INTERVAL '24 hours' "
    "AND t.delta > %(delta)s{region}"
)
_COORDINATED = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM ("
    "SELECT t.politician_id FROM {ledger} AS t "
    "JOIN {table} AS p ON p.id = t.politician_id "
    "WHERE t.created_at > NOW() - INTERVAL '1 hour'{region} "
    "GROUP BY t.politician_id HAVING COUNT(*) > %(events)s"
    ") AS clusters"
)
_BEHAVIORAL_DRIFT = sql.SQL(
    "SELECT COUNT(*)::int AS count FROM {table} "
    "WHERE approval_rating < %(approval)s AND votes_up > %(votes)s{region}"
)


class VoteAnomalyCollector(EntityCollector):
    """
    Count vote records inconsistent with their historical rate.

    The signal count is the sum of absolute spikes, 24h velocity spikes and
    coordinated clusters; each detector's own count is kept in `extra`,
    together with approval/vote mismatches (behavioral drift), which is
    reported but not counted as a vote anomaly.
    """

    name = COLLECTOR_VOTE_ANOMALIES

    def __init__(  # noqa: PLR0913
        self,
        pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
        entity_table: str,
        spike_threshold: int,
        velocity_delta: int,
        coordinated_events_per_hour: int,
        drift_approval_below: int,
        drift_votes_above: int,
        timeout: float | None = None,
    ) -> None:
        """Initialize vote anomaly collector."""
        super().__init__(pool, entity_table, timeout)
        self._ledger = sql.Identifier(VOTE_LEDGER_TABLE)
        self._spike_threshold = spike_threshold
        self._velocity_delta = velocity_delta
        self._coordinated_events = coordinated_events_per_hour
        self._drift_approval_below = drift_approval_below
        self._drift_votes_above = drift_votes_above

    async def _async_query(
        self, conn: AsyncConnection[DictRow], region: str | None
    ) -> CollectorSignal:
        where = region_clause(region)
        threshold_spikes = await fetch_count(
            conn,
            _THRESHOLD_SPIKES.format(table=self._table, region=where),
            self._params(region, spike=self._spike_threshold),
        )
        velocity_spikes = await fetch_count(
            conn,
            _VELOCITY_SPIKES.format(ledger=self._ledger, table=self._table, region=where),
            self._params(region, delta=self._velocity_delta),
        )
        coordinated = await fetch_count(
            conn,
            _COORDINATED.format(ledger=self._ledger, table=self._table, region=where),
            self._params(region, events=self._coordinated_events),
        )
        drift = await fetch_count(
            conn,
            _BEHAVIORAL_DRIFT.format(table=self._table, region=where),
            self._params(
                region,
                approval=self._drift_approval_below,
                votes=self._drift_votes_above,
            ),
        )

        total = threshold_spikes + velocity_spikes + coordinated
        if total:
            LOGGER.debug(
                "Vote anomalies (region=%s): spikes=%s velocity=%s coordinated=%s",
                region,
                threshold_spikes,
                velocity_spikes,
                coordinated,
            )
        return CollectorSignal.ok(
            self.name,
            count=total,
            extra={
                "threshold_spikes": threshold_spikes,
                "velocity_spikes": velocity_spikes,
                "coordinated_clusters": coordinated,
                "behavioral_drift": drift,
            },
        )
