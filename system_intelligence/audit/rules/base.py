"""Shared shape of issue rules."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Protocol

from ...const import Severity

if TYPE_CHECKING:
    from datetime import datetime

    from ...collectors.models import CollectorSignal
    from ...config import ScoringConfig
    from ..models import Issue


class IssueRule(Protocol):
    """A single condition evaluated against one collector signal."""

    rule_id: ClassVar[str]
    collector: ClassVar[str]

    def evaluate(
        self, signal: CollectorSignal, config: ScoringConfig, now: datetime
    ) -> Issue | None:
        """Return the issue this rule raises, or None."""
        ...


def threshold_severity(count: int, threshold: int, multiplier: int) -> Severity:
    """Return high once a count reaches `multiplier` times its threshold."""
    # A zero threshold still scales from a count of one.
    return "high" if count >= max(threshold, 1) * multiplier else "medium"
