"""Content-addressed digests of audit reports."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import AuditReport, StoredSnapshot


def canonical_json(payload: dict[str, Any]) -> str:
    """Serialize a payload with sorted keys and compact separators."""
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def hash_payload(payload: dict[str, Any]) -> str:
    """Return the sha256 hex digest of a report payload."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def hash_report(report: AuditReport) -> str:
    """Return the digest stamped on a snapshot of this report."""
    return hash_payload(report.as_dict())


def verify_stored_snapshot(stored: StoredSnapshot) -> bool:
    """Recompute the digest of a stored report and compare it to the stamp."""
    return hash_payload(stored.report) == stored.snapshot.hash
