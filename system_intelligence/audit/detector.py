"""Issue detection over collector signals."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..const import ISSUE_UNASSESSED_SUFFIX, REACHABILITY_COLLECTORS
from .models import Issue
from .rules import default_rules

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from ..collectors.models import CollectorSignal
    from ..config import ScoringConfig
    from .rules import IssueRule

LOGGER = logging.getLogger(__name__)


def unassessed_issue(signal: CollectorSignal) -> Issue:
    """Return the issue recording that a collector could not be evaluated."""
    reason = f": {signal.error}" if signal.error else ""
    return Issue(
        code=f"{signal.name}{ISSUE_UNASSESSED_SUFFIX}",
        severity="medium",
        message=f"Cannot assess {signal.name.replace('_', ' ')}{reason}",
    )


class IssueDetector:
    """Evaluate rules against signals, independently of the score."""

    def __init__(self, rules: Sequence[IssueRule] | None = None) -> None:
        self._rules = list(rules) if rules is not None else default_rules()

    def unassessed(self, signals: Mapping[str, CollectorSignal]) -> tuple[str, ...]:
        """Return names of unavailable collectors whose rules cannot run."""
        return tuple(
            sorted(
                name
                for name, signal in signals.items()
                if not signal.available and name not in REACHABILITY_COLLECTORS
            )
        )

    def detect(
        self,
        signals: Mapping[str, CollectorSignal],
        config: ScoringConfig,
        now: datetime,
    ) -> tuple[Issue, ...]:
        """
        Return issues ordered high, medium, low.

        Reachability probes report their own unavailability through their
        rule. Any other unavailable collector yields one unassessed issue
        and its rules are skipped. Codes are unique; the first issue
        produced for a code wins.
        """
        found: list[Issue] = []
        cannot_assess = set(self.unassessed(signals))

        for name in sorted(cannot_assess):
            signal = signals[name]
            LOGGER.warning(
                "Cannot assess %s: %s", name, signal.error or "signal unavailable"
            )
            found.append(unassessed_issue(signal))

        for rule in self._rules:
            signal = signals.get(rule.collector)
            if signal is None or rule.collector in cannot_assess:
                continue
            try:
                issue = rule.evaluate(signal, config, now)
            except (KeyError, ValueError, TypeError):
                LOGGER.warning("Issue rule %s failed to evaluate.", rule.rule_id)
                continue
            if issue is None:
                continue
            LOGGER.info(
                "Issue found by %s (%s): %s",
                rule.rule_id,
                issue.severity,
                issue.message,
            )
            found.append(issue)

        unique: dict[str, Issue] = {}
        for issue in found:
            unique.setdefault(issue.code, issue)
        # sorted() is stable, so equal severities keep rule order.
        return tuple(sorted(unique.values(), key=lambda issue: -issue.rank))
