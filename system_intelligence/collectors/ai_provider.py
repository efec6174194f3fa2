"""AI provider reachability collector."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..const import COLLECTOR_AI_PROVIDER
from ..core.utils import validate_health_url
from .base import SignalCollector
from .models import CollectorSignal

if TYPE_CHECKING:
    import httpx


class AiProviderCollector(SignalCollector):
    """GET the AI provider's health URL; any error status means unreachable."""

    name = COLLECTOR_AI_PROVIDER

    def __init__(
        self,
        client: httpx.AsyncClient,
        health_url: str | None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize AI provider collector."""
        super().__init__(timeout)
        self._client = client
        self._health_url = health_url
        self._api_key = api_key

    async def _async_probe(self, region: str | None) -> CollectorSignal:
        if not self._health_url:
            return CollectorSignal.unavailable(self.name, "AI provider not configured")
        status = await validate_health_url(
            self._client,
            self._health_url,
            self._api_key,
            timeout_s=self._timeout or 10.0,
        )
        return CollectorSignal.ok(self.name, extra={"status": status})
