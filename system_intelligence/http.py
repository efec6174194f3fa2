"""HTTP endpoints for System Intelligence."""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING, Any, ClassVar, TypeAlias

from aiohttp import web

from .audit.hashing import hash_report, verify_stored_snapshot
from .const import (
    ADMIN_ROLES,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_OK,
    HTTP_STATUS_SERVICE_UNAVAILABLE,
    HTTP_STATUS_UNAUTHORIZED,
    INTEGRITY_VOTE_WEIGHT,
    SNAPSHOT_LIST_DEFAULT,
    SNAPSHOT_LIST_MAX,
)
from .core.runtime import RUNTIME_KEY
from .core.utils import clamp_score
from .exceptions import SnapshotStoreError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .core.runtime import AuditRuntime

LOGGER = logging.getLogger(__name__)

Handler: TypeAlias = "Callable[[web.Request], Awaitable[web.StreamResponse]]"


def _bearer_token(request: web.Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


class ApiView:
    """Base view: a URL, a route name and the roles allowed to call it."""

    url: ClassVar[str]
    name: ClassVar[str]
    requires_auth: ClassVar[bool] = True
    roles: ClassVar[tuple[str, ...]] = ADMIN_ROLES
    methods: ClassVar[tuple[str, ...]] = ("get",)

    def __init__(self, runtime: AuditRuntime) -> None:
        """Initialize view with shared runtime data."""
        self._runtime = runtime

    def register(self, app: web.Application) -> None:
        """Add this view's routes to the application router."""
        for method in self.methods:
            handler: Handler = getattr(self, method)
            app.router.add_route(
                method.upper(),
                self.url,
                self._guard(handler),
                name=f"{self.name}:{method}",
            )

    def _guard(self, handler: Handler) -> Handler:
        async def _handle(request: web.Request) -> web.StreamResponse:
            denied = self.check_auth(request)
            if denied is not None:
                return denied
            return await handler(request)

        return _handle

    def check_auth(self, request: web.Request) -> web.Response | None:
        """Return an error response when the caller may not use this view."""
        if not self.requires_auth:
            return None
        token = _bearer_token(request)
        role = None
        if token is not None:
            for known, known_role in self._runtime.config.http.api_tokens.items():
                if hmac.compare_digest(known.encode(), token.encode()):
                    role = known_role
                    break
        if role is None:
            LOGGER.debug("Rejected unauthenticated request to %s", self.url)
            return _error("unauthorized", HTTP_STATUS_UNAUTHORIZED)
        if role not in self.roles:
            LOGGER.info("Role %s denied access to %s", role, self.url)
            return _error("forbidden", HTTP_STATUS_FORBIDDEN)
        return None


class SystemAuditView(ApiView):
    """Run a fresh audit on every call."""

    url = "/api/admin/system-audit"
    name = "api:admin:system_audit"

    async def get(self, request: web.Request) -> web.Response:
        """Return the live audit report, optionally for one state."""
        region = request.query.get("state", "").strip() or None
        report = await self._runtime.assembler.async_run(region)
        return web.json_response(report.as_dict())


class SystemSnapshotsView(ApiView):
    """List stored snapshots, newest first."""

    url = "/api/admin/system-snapshots"
    name = "api:admin:system_snapshots"

    async def get(self, request: web.Request) -> web.Response:
        """Return up to `limit` snapshots."""
        raw = request.query.get("limit")
        limit = SNAPSHOT_LIST_DEFAULT
        if raw is not None:
            try:
                limit = int(raw)
            except ValueError:
                return _error("limit must be an integer", HTTP_STATUS_BAD_REQUEST)
            if limit < 1:
                return _error("limit must be positive", HTTP_STATUS_BAD_REQUEST)
            limit = min(limit, SNAPSHOT_LIST_MAX)
        try:
            snapshots = await self._runtime.snapshot_store.async_get_latest(limit)
        except SnapshotStoreError as err:
            LOGGER.warning("Snapshot listing failed: %s", err)
            return _error("snapshot history unavailable", HTTP_STATUS_SERVICE_UNAVAILABLE)
        return web.json_response({"data": [snapshot.as_dict() for snapshot in snapshots]})


class PublicSystemHealthView(ApiView):
    """Publish the live report together with its hash."""

    url = "/api/public/system-health"
    name = "api:public:system_health"
    requires_auth = False

    async def get(self, request: web.Request) -> web.Response:
        """Return the report fields plus `hash`."""
        report = await self._runtime.assembler.async_run()
        return web.json_response({**report.as_dict(), "hash": hash_report(report)})


class PublicIntegrityScoreView(ApiView):
    """Publish a single integrity number."""

    url = "/api/public/integrity-score"
    name = "api:public:integrity_score"
    requires_auth = False

    async def get(self, request: web.Request) -> web.Response:
        """Return the health score discounted by vote anomalies."""
        report = await self._runtime.assembler.async_run()
        integrity = clamp_score(
            report.health_score - report.stats.vote_anomalies * INTEGRITY_VOTE_WEIGHT
        )
        return web.json_response({"integrityScore": integrity})


class PublicVerifyAnchorView(ApiView):
    """Expose the latest snapshot hash and whether it still verifies."""

    url = "/api/public/verify-anchor"
    name = "api:public:verify_anchor"
    requires_auth = False

    async def get(self, request: web.Request) -> web.Response:
        """Return the latest hash, its timestamp and a verification flag."""
        try:
            stored = await self._runtime.snapshot_store.async_get_latest_stored(1)
        except SnapshotStoreError as err:
            LOGGER.warning("Anchor verification failed: %s", err)
            return _error("snapshot history unavailable", HTTP_STATUS_SERVICE_UNAVAILABLE)
        latest: dict[str, Any] | None = None
        if stored:
            item = stored[0]
            latest = {
                "hash": item.snapshot.hash,
                "createdAt": item.snapshot.as_dict()["createdAt"],
                "verified": verify_stored_snapshot(item),
            }
        return web.json_response({"latest": latest})


class CronDailyAuditView(ApiView):
    """Trigger one recorder run from an external scheduler."""

    url = "/api/cron/daily-audit"
    name = "api:cron:daily_audit"
    methods = ("post",)

    def check_auth(self, request: web.Request) -> web.Response | None:
        """Accept only the configured cron secret."""
        secret = self._runtime.config.http.cron_secret
        token = _bearer_token(request)
        if (
            not secret
            or token is None
            or not hmac.compare_digest(secret.encode(), token.encode())
        ):
            return web.json_response(
                {"ok": False, "error": "unauthorized"},
                status=HTTP_STATUS_UNAUTHORIZED,
            )
        return None

    async def post(self, request: web.Request) -> web.Response:
        """Record a snapshot now; a failed write answers 503."""
        result = await self._runtime.recorder.async_record_now()
        status = (
            HTTP_STATUS_SERVICE_UNAVAILABLE
            if result.status == "failed"
            else HTTP_STATUS_OK
        )
        return web.json_response(result.as_dict(), status=status)


VIEWS: tuple[type[ApiView], ...] = (
    SystemAuditView,
    SystemSnapshotsView,
    PublicSystemHealthView,
    PublicIntegrityScoreView,
    PublicVerifyAnchorView,
    CronDailyAuditView,
)


def async_register_views(app: web.Application) -> None:
    """Register every view against the runtime stored on the app."""
    runtime = app[RUNTIME_KEY]
    for view_cls in VIEWS:
        view_cls(runtime).register(app)
