"""Vector-index reachability collector."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..const import COLLECTOR_VECTOR_INDEX
from .base import SignalCollector
from .models import CollectorSignal

if TYPE_CHECKING:
    from langgraph.store.base import BaseStore


class VectorIndexCollector(SignalCollector):
    """Probe the vector store with a one-item namespace search."""

    name = COLLECTOR_VECTOR_INDEX

    def __init__(
        self,
        store: BaseStore | None,
        namespace: str,
        timeout: float | None = None,
    ) -> None:
        """Initialize vector index collector."""
        super().__init__(timeout)
        self._store = store
        self._namespace = namespace

    async def _async_probe(self, region: str | None) -> CollectorSignal:
        if self._store is None:
            return CollectorSignal.unavailable(self.name, "vector index not configured")
        items = await self._store.asearch((self._namespace,), limit=1)
        return CollectorSignal.ok(
            self.name, count=len(items), extra={"namespace": self._namespace}
        )
