"""Snapshot history: storage, scheduled recording and hash anchoring."""

from .anchor import GitHubHashAnchor
from .recorder import RecordResult, SnapshotRecorder
from .store import JsonSnapshotStore, PostgresSnapshotStore, SnapshotStore

__all__ = [
    "GitHubHashAnchor",
    "JsonSnapshotStore",
    "PostgresSnapshotStore",
    "RecordResult",
    "SnapshotRecorder",
    "SnapshotStore",
]
