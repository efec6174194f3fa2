"""System Intelligence: health audit engine for the transparency platform."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from aiohttp import web
from langgraph.store.postgres import AsyncPostgresStore
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from .audit.assembler import AuditAssembler
from .collectors import (
    AiBacklogCollector,
    AiEnrichmentJobCollector,
    AiProviderCollector,
    CronFailuresCollector,
    DatabaseCollector,
    DataRefreshJobCollector,
    RegionBreakdownCollector,
    StaleProfilesCollector,
    VectorIndexCollector,
    VoteAnomalyCollector,
)
from .core.db_utils import redact_postgres_uri
from .core.runtime import RUNTIME_KEY, AuditRuntime
from .exceptions import SnapshotStoreError
from .http import async_register_views
from .snapshot.anchor import GitHubHashAnchor
from .snapshot.recorder import SnapshotRecorder
from .snapshot.store import JsonSnapshotStore, PostgresSnapshotStore

if TYPE_CHECKING:
    from langgraph.store.base import BaseStore
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow

    from .collectors.base import SignalCollector
    from .config import AuditConfig
    from .snapshot.store import SnapshotStore

LOGGER = logging.getLogger(__name__)

__all__ = ["async_setup_app", "build_collectors", "create_app"]


async def _async_open_pool(
    uri: str, min_size: int, max_size: int
) -> AsyncConnectionPool[AsyncConnection[DictRow]]:
    """Open a psycopg pool; a database that is down only degrades probes."""
    connection_kwargs = {
        "autocommit": True,
        "prepare_threshold": 0,
        "row_factory": dict_row,
    }
    pool: AsyncConnectionPool[AsyncConnection[DictRow]] = AsyncConnectionPool(
        conninfo=uri,
        min_size=min_size,
        max_size=max_size,
        kwargs=connection_kwargs,
        open=False,
    )
    try:
        await pool.open()
    except PoolTimeout:
        LOGGER.exception("Error opening postgresql db %s.", redact_postgres_uri(uri))
    return pool


def build_collectors(
    config: AuditConfig,
    pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None,
    vector_store: BaseStore | None,
    http_client: httpx.AsyncClient,
) -> tuple[list[SignalCollector], RegionBreakdownCollector]:
    """Create every collector; unconfigured sources report unavailable."""
    opts = config.collectors
    timeout = opts.timeout_seconds
    collectors: list[SignalCollector] = [
        DatabaseCollector(pool, opts.entity_table, opts.core_tables, timeout),
        DataRefreshJobCollector(
            pool,
            opts.data_refresh_job,
            opts.job_log_table,
            opts.job_error_window,
            timeout,
        ),
        AiEnrichmentJobCollector(
            pool,
            opts.ai_enrichment_job,
            opts.job_log_table,
            opts.job_error_window,
            timeout,
        ),
        CronFailuresCollector(pool, opts.job_log_table, opts.job_error_window, timeout),
        AiBacklogCollector(pool, opts.entity_table, timeout),
        StaleProfilesCollector(pool, opts.entity_table, opts.staleness_days, timeout),
        VoteAnomalyCollector(
            pool,
            opts.entity_table,
            opts.vote_spike_threshold,
            opts.vote_velocity_delta,
            opts.coordinated_events_per_hour,
            opts.drift_approval_below,
            opts.drift_votes_above,
            timeout,
        ),
        VectorIndexCollector(vector_store, config.vector_namespace, timeout),
        AiProviderCollector(
            http_client, config.ai_health_url, config.ai_api_key, timeout
        ),
    ]
    regions = RegionBreakdownCollector(
        pool,
        opts.entity_table,
        opts.staleness_days,
        opts.vote_spike_threshold,
        timeout,
    )
    return collectors, regions


def create_app(runtime: AuditRuntime) -> web.Application:
    """Create the aiohttp application around an assembled runtime."""
    app = web.Application()
    app[RUNTIME_KEY] = runtime
    async_register_views(app)
    app.on_startup.append(_async_on_startup)
    app.on_cleanup.append(_async_on_cleanup)
    return app


async def _async_on_startup(app: web.Application) -> None:
    runtime = app[RUNTIME_KEY]
    try:
        await runtime.snapshot_store.async_setup()
    except SnapshotStoreError as err:
        LOGGER.warning("Snapshot store not ready at startup: %s", err)
    if runtime.config.recorder.enabled:
        runtime.recorder.start()
    else:
        LOGGER.info("Snapshot recorder disabled by configuration.")


async def _async_on_cleanup(app: web.Application) -> None:
    runtime = app[RUNTIME_KEY]
    await runtime.recorder.stop()
    await runtime.http_client.aclose()
    if runtime.pool is not None:
        await runtime.pool.close()
    if runtime.vector_pool is not None and runtime.vector_pool is not runtime.pool:
        await runtime.vector_pool.close()


async def async_setup_app(config: AuditConfig) -> web.Application:
    """Wire pools, stores, collectors, assembler, recorder and views."""
    pool = await _async_open_pool(
        config.db_uri, config.pool_min_size, config.pool_max_size
    )

    vector_store: BaseStore | None = None
    vector_pool = None
    if config.vector_db_uri:
        vector_pool = pool
        if config.vector_db_uri != config.db_uri:
            vector_pool = await _async_open_pool(
                config.vector_db_uri, config.pool_min_size, config.pool_max_size
            )
        vector_store = AsyncPostgresStore(vector_pool)
    else:
        LOGGER.warning("No vector_db_uri configured; vector index will report down.")

    http_client = httpx.AsyncClient(follow_redirects=True)

    snapshot_store: SnapshotStore
    if config.recorder.backend == "postgres":
        snapshot_store = PostgresSnapshotStore(pool, config.recorder.table)
    else:
        snapshot_store = JsonSnapshotStore(Path(config.recorder.path).expanduser())

    collectors, region_collector = build_collectors(
        config, pool, vector_store, http_client
    )
    assembler = AuditAssembler(
        collectors,
        config.scoring,
        ceiling=config.collectors.audit_ceiling_seconds,
        region_collector=region_collector,
        snapshot_store=snapshot_store,
    )

    anchor = None
    if config.recorder.github_repo and config.recorder.github_token:
        anchor = GitHubHashAnchor(
            http_client, config.recorder.github_repo, config.recorder.github_token
        )
    recorder = SnapshotRecorder(
        assembler,
        snapshot_store,
        config.recorder.interval_seconds,
        anchor=anchor,
    )

    runtime = AuditRuntime(
        config=config,
        assembler=assembler,
        snapshot_store=snapshot_store,
        recorder=recorder,
        http_client=http_client,
        pool=pool,
        vector_store=vector_store,
        vector_pool=vector_pool,
    )
    LOGGER.info(
        "System Intelligence ready (db=%s, collectors=%s, snapshots=%s).",
        redact_postgres_uri(config.db_uri),
        len(collectors),
        config.recorder.backend,
    )
    return create_app(runtime)
