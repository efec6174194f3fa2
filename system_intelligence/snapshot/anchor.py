"""Publish snapshot hashes to an external GitHub repository."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

import async_timeout
import httpx

from ..const import (
    ANCHOR_TIMEOUT_SECONDS,
    GITHUB_API_URL,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK,
)
from ..core.datetime_utils import DateTimeUtils

if TYPE_CHECKING:
    from ..audit.models import Snapshot

LOGGER = logging.getLogger(__name__)


class GitHubHashAnchor:
    """
    Write one `audit-YYYY-MM-DD.txt` file per snapshot into a repository.

    The file content is the snapshot hash, so anyone can compare the public
    record with the stored history.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        repo: str,
        token: str,
        api_url: str = GITHUB_API_URL,
        timeout_s: float = ANCHOR_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._repo = repo
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout_s = timeout_s

    def _content_url(self, snapshot: Snapshot) -> str:
        date = DateTimeUtils.anchor_date(snapshot.created_at)
        return f"{self._api_url}/repos/{self._repo}/contents/audit-{date}.txt"

    async def _async_existing_sha(
        self, url: str, headers: dict[str, str]
    ) -> str | None:
        """Return the blob sha of an already anchored file, if there is one."""
        resp = await self._client.get(url, headers=headers)
        if resp.status_code != HTTP_STATUS_OK:
            return None
        data = resp.json()
        sha = data.get("sha") if isinstance(data, dict) else None
        return sha if isinstance(sha, str) else None

    async def async_anchor(self, snapshot: Snapshot) -> bool:
        """Publish the snapshot hash; return whether the repository accepted it."""
        date = DateTimeUtils.anchor_date(snapshot.created_at)
        url = self._content_url(snapshot)
        body = {
            "message": f"Daily audit anchor {date}",
            "content": base64.b64encode(snapshot.hash.encode("utf-8")).decode("ascii"),
        }
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
        }
        try:
            async with async_timeout.timeout(self._timeout_s):
                # Later snapshots on the same day replace that day's file.
                sha = await self._async_existing_sha(url, headers)
                if sha is not None:
                    body["sha"] = sha
                resp = await self._client.put(url, json=body, headers=headers)
        except (TimeoutError, httpx.HTTPError, ValueError) as err:
            LOGGER.warning("Hash anchoring for snapshot %s failed: %s", snapshot.id, err)
            return False

        if resp.status_code >= HTTP_STATUS_BAD_REQUEST:
            LOGGER.warning(
                "Hash anchoring for snapshot %s rejected with HTTP %s",
                snapshot.id,
                resp.status_code,
            )
            return False
        LOGGER.info("Anchored snapshot %s hash for %s", snapshot.id, date)
        return True
