"""Utility functions for System Intelligence."""

from __future__ import annotations

import logging

import async_timeout
import httpx

from ..const import HTTP_STATUS_BAD_REQUEST, HTTP_STATUS_UNAUTHORIZED
from ..exceptions import CannotConnectError

LOGGER = logging.getLogger(__name__)


def ensure_http_url(url: str) -> str:
    """Ensure a URL has an explicit scheme."""
    if url.startswith(("http://", "https://")):
        return url
    return f"http://{url}"


def clamp_score(value: int) -> int:
    """Clamp a score into the 0..100 range."""
    return max(0, min(100, value))


async def validate_health_url(
    client: httpx.AsyncClient,
    url: str,
    api_key: str | None = None,
    timeout_s: float = 10.0,
) -> int:
    """
    Validate that an HTTP health endpoint is reachable.

    Returns the response status code. Raises CannotConnectError when the
    endpoint cannot be reached, rejects the credentials, or answers with an
    error status.
    """
    url = ensure_http_url(url)
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
    try:
        async with async_timeout.timeout(timeout_s):
            resp = await client.get(url, headers=headers)
    except (TimeoutError, httpx.RequestError) as err:
        LOGGER.debug("Health endpoint connectivity exception: %s", err)
        raise CannotConnectError(f"{url} unreachable") from err

    if resp.status_code == HTTP_STATUS_UNAUTHORIZED:
        msg = f"{url} rejected credentials"
        raise CannotConnectError(msg)
    if resp.status_code >= HTTP_STATUS_BAD_REQUEST:
        msg = f"{url} returned HTTP {resp.status_code}"
        raise CannotConnectError(msg)
    return resp.status_code
