"""Rule: relational store unreachable."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...const import COLLECTOR_DATABASE, ISSUE_DB_UNAVAILABLE
from ..models import Issue

if TYPE_CHECKING:
    from datetime import datetime

    from ...collectors.models import CollectorSignal
    from ...config import ScoringConfig


class DatabaseUnavailableRule:
    """Detect an unreachable database."""

    rule_id = ISSUE_DB_UNAVAILABLE
    collector = COLLECTOR_DATABASE

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return a high issue when the database probe failed."""
        if signal.available:
            return None
        message = "Database connection unavailable"
        if signal.error:
            message = f"{message} ({signal.error})"
        return Issue(code=self.rule_id, severity="high", message=message)
