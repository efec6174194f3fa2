"""System Intelligence runtime data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    import httpx
    from langgraph.store.base import BaseStore
    from psycopg import AsyncConnection
    from psycopg.rows import DictRow
    from psycopg_pool import AsyncConnectionPool

    from ..audit.assembler import AuditAssembler
    from ..config import AuditConfig
    from ..snapshot.recorder import SnapshotRecorder
    from ..snapshot.store import SnapshotStore


@dataclass
class AuditRuntime:
    """Objects shared by the views for the lifetime of the app."""

    config: AuditConfig
    assembler: AuditAssembler
    snapshot_store: SnapshotStore
    recorder: SnapshotRecorder
    http_client: httpx.AsyncClient
    pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None = None
    vector_store: BaseStore | None = None
    vector_pool: AsyncConnectionPool[AsyncConnection[DictRow]] | None = None


RUNTIME_KEY: web.AppKey[AuditRuntime] = web.AppKey("runtime", AuditRuntime)
