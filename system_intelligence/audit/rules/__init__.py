"""Issue rules, in evaluation order."""

from .backlog import AiBacklogRule, StaleProfilesRule
from .base import IssueRule
from .database import DatabaseUnavailableRule
from .jobs import AiEnrichmentOverdueRule, CronFailuresRule, DataRefreshOverdueRule
from .services import AiProviderUnavailableRule, VectorUnavailableRule
from .votes import (
    BehavioralDriftRule,
    CoordinatedVoteRule,
    VoteSpikeRule,
    VoteVelocityRule,
)


def default_rules() -> list[IssueRule]:
    """Return one instance of every built-in rule."""
    return [
        DatabaseUnavailableRule(),
        DataRefreshOverdueRule(),
        AiEnrichmentOverdueRule(),
        CronFailuresRule(),
        AiBacklogRule(),
        StaleProfilesRule(),
        VoteSpikeRule(),
        VoteVelocityRule(),
        CoordinatedVoteRule(),
        BehavioralDriftRule(),
        VectorUnavailableRule(),
        AiProviderUnavailableRule(),
    ]


__all__ = [
    "AiBacklogRule",
    "AiEnrichmentOverdueRule",
    "AiProviderUnavailableRule",
    "BehavioralDriftRule",
    "CoordinatedVoteRule",
    "CronFailuresRule",
    "DataRefreshOverdueRule",
    "DatabaseUnavailableRule",
    "IssueRule",
    "StaleProfilesRule",
    "VectorUnavailableRule",
    "VoteSpikeRule",
    "VoteVelocityRule",
    "default_rules",
]
