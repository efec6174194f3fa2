"""Read-only signal collectors."""

from .ai_provider import AiProviderCollector
from .backlog import AiBacklogCollector, StaleProfilesCollector
from .base import SignalCollector
from .database import DatabaseCollector
from .jobs import AiEnrichmentJobCollector, CronFailuresCollector, DataRefreshJobCollector
from .models import CollectorSignal, RegionSignals
from .regions import RegionBreakdownCollector
from .vector import VectorIndexCollector
from .votes import VoteAnomalyCollector

__all__ = [
    "AiBacklogCollector",
    "AiEnrichmentJobCollector",
    "AiProviderCollector",
    "CollectorSignal",
    "CronFailuresCollector",
    "DataRefreshJobCollector",
    "DatabaseCollector",
    "RegionBreakdownCollector",
    "RegionSignals",
    "SignalCollector",
    "StaleProfilesCollector",
    "VectorIndexCollector",
    "VoteAnomalyCollector",
]
