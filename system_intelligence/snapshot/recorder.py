"""Scheduled snapshot recorder."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from ..audit.hashing import hash_report
from ..core.datetime_utils import DateTimeUtils
from ..exceptions import SnapshotStoreError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from ..audit.assembler import AuditAssembler
    from ..audit.models import Snapshot
    from .anchor import GitHubHashAnchor
    from .store import SnapshotStore

LOGGER = logging.getLogger(__name__)

RecordStatus: TypeAlias = 'Literal["recorded", "skipped", "failed"]'


@dataclass(frozen=True)
class RecordResult:
    """Outcome of one recorder run."""

    status: RecordStatus
    snapshot: Snapshot | None = None
    hash: str | None = None
    anchored: bool | None = None

    @property
    def ok(self) -> bool:
        """Return True when a snapshot was appended."""
        return self.status == "recorded"

    def as_dict(self) -> dict[str, Any]:
        """Serialize the outcome for the cron endpoint."""
        return {
            "ok": self.ok,
            "status": self.status,
            "snapshot": self.snapshot.as_dict() if self.snapshot else None,
            "hash": self.hash,
            "anchored": self.anchored,
        }


class SnapshotRecorder:
    """
    Periodically assemble a report and append a hash-stamped snapshot.

    Runs never overlap: a tick arriving while a run is in flight is skipped.
    """

    def __init__(  # noqa: PLR0913
        self,
        assembler: AuditAssembler,
        store: SnapshotStore,
        interval_seconds: int,
        anchor: GitHubHashAnchor | None = None,
        clock: Callable[[], datetime] = DateTimeUtils.utcnow,
    ) -> None:
        self._assembler = assembler
        self._store = store
        self._interval = interval_seconds
        self._anchor = anchor
        self._clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        """Return True while the schedule loop is active."""
        return self._task is not None

    @property
    def busy(self) -> bool:
        """Return True while a run is in flight."""
        return self._lock.locked()

    def start(self) -> None:
        """Start the recorder loop."""
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the recorder loop."""
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run_loop(self) -> None:
        LOGGER.info("Snapshot recorder started (interval=%ss).", self._interval)
        delay = await self._async_initial_delay()
        while not self._stop_event.is_set():
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except TimeoutError:
                    pass
                else:
                    break
            try:
                await self.async_record_now()
            except Exception:
                LOGGER.exception("Snapshot run failed; skipping tick.")
            delay = self._interval

    async def _async_initial_delay(self) -> float:
        """Return seconds until the next snapshot is due, based on history."""
        try:
            latest = await self._store.async_get_latest(1)
        except SnapshotStoreError as err:
            LOGGER.warning("Cannot read snapshot history on startup: %s", err)
            return 0.0
        if not latest:
            return 0.0
        elapsed = (self._clock() - latest[0].created_at).total_seconds()
        return max(0.0, self._interval - elapsed)

    async def async_record_now(self) -> RecordResult:
        """Run one audit and append its snapshot, unless a run is in flight."""
        if self._lock.locked():
            LOGGER.info("Snapshot run already in progress; skipping tick.")
            return RecordResult(status="skipped")

        async with self._lock:
            report = await self._assembler.async_run()
            digest = hash_report(report)
            try:
                snapshot = await self._store.async_append(report, digest, self._clock())
            except SnapshotStoreError as err:
                LOGGER.error("Snapshot not recorded, skipping tick: %s", err)  # noqa: TRY400
                return RecordResult(status="failed", hash=digest)

            LOGGER.info(
                "Recorded snapshot %s (score=%s, risk=%s, hash=%s)",
                snapshot.id,
                snapshot.health_score,
                snapshot.risk_level,
                digest,
            )
            anchored = None
            if self._anchor is not None:
                anchored = await self._anchor.async_anchor(snapshot)
            return RecordResult(
                status="recorded", snapshot=snapshot, hash=digest, anchored=anchored
            )
