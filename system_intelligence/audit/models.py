"""Audit report and snapshot models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..const import SEVERITY_RANK, Severity
from ..core.datetime_utils import DateTimeUtils


@dataclass(frozen=True)
class Issue:
    """Discrete, severity-tagged problem statement."""

    code: str
    severity: Severity
    message: str

    def __post_init__(self) -> None:
        """Reject severities outside the risk taxonomy."""
        if self.severity not in SEVERITY_RANK:
            msg = f"Unknown severity {self.severity!r} for issue {self.code}"
            raise ValueError(msg)

    @property
    def rank(self) -> int:
        """Return the severity rank (high is largest)."""
        return SEVERITY_RANK[self.severity]

    def as_dict(self) -> dict[str, Any]:
        """Serialize the issue."""
        return {"code": self.code, "severity": self.severity, "message": self.message}


@dataclass(frozen=True)
class StateHealth:
    """Health score of one region."""

    state: str
    health_score: int

    def as_dict(self) -> dict[str, Any]:
        """Serialize the region score."""
        return {"state": self.state, "healthScore": self.health_score}


@dataclass(frozen=True)
class AuditStats:
    """Raw counts and derived stability metrics."""

    pending_ai: int
    vote_anomalies: int
    stale_profiles: int
    governance_stability: int
    projected_stability: int
    health_drift: int | None
    state_health: tuple[StateHealth, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        """Serialize the stats block."""
        return {
            "pendingAI": self.pending_ai,
            "voteAnomalies": self.vote_anomalies,
            "staleProfiles": self.stale_profiles,
            "governanceStability": self.governance_stability,
            "projectedStability": self.projected_stability,
            "healthDrift": self.health_drift,
            "stateHealth": [item.as_dict() for item in self.state_health],
        }


@dataclass(frozen=True)
class AuditReport:
    """Immutable result of one audit run."""

    health_score: int
    risk_level: Severity
    issues: tuple[Issue, ...]
    stats: AuditStats
    generated_at: datetime
    unassessed: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        """Serialize the report as the JSON payload served to the admin UI."""
        return {
            "healthScore": self.health_score,
            "riskLevel": self.risk_level,
            "issues": [issue.as_dict() for issue in self.issues],
            "stats": self.stats.as_dict(),
            "generatedAt": DateTimeUtils.as_iso(self.generated_at),
            "unassessed": list(self.unassessed),
        }


@dataclass(frozen=True)
class Snapshot:
    """Immutable, hash-stamped historical record of one audit report."""

    id: int
    hash: str
    health_score: int
    risk_level: Severity
    created_at: datetime

    def as_dict(self) -> dict[str, Any]:
        """Serialize the snapshot summary."""
        return {
            "id": self.id,
            "hash": self.hash,
            "healthScore": self.health_score,
            "riskLevel": self.risk_level,
            "createdAt": DateTimeUtils.as_iso(self.created_at),
        }


@dataclass(frozen=True)
class StoredSnapshot:
    """Snapshot row together with the report payload it was hashed from."""

    snapshot: Snapshot
    report: dict[str, Any]
