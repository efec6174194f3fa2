"""Audit engine: scoring, issue detection and report assembly."""

from .assembler import AuditAssembler
from .detector import IssueDetector
from .hashing import hash_report, verify_stored_snapshot
from .models import AuditReport, AuditStats, Issue, Snapshot, StateHealth, StoredSnapshot
from .scorer import risk_level, score_signals

__all__ = [
    "AuditAssembler",
    "AuditReport",
    "AuditStats",
    "Issue",
    "IssueDetector",
    "Snapshot",
    "StateHealth",
    "StoredSnapshot",
    "hash_report",
    "risk_level",
    "score_signals",
    "verify_stored_snapshot",
]
