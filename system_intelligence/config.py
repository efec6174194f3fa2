"""Typed configuration loaded once at startup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import voluptuous as vol
import yaml

from .const import (
    ADMIN_ROLES,
    CONF_AI_API_KEY,
    CONF_AI_BACKLOG_PENALTY_CAP,
    CONF_AI_BACKLOG_PENALTY_PER_STEP,
    CONF_AI_BACKLOG_STEP,
    CONF_AI_BACKLOG_THRESHOLD,
    CONF_AI_ENRICHMENT_INTERVAL_HOURS,
    CONF_AI_ENRICHMENT_JOB,
    CONF_AI_HEALTH_URL,
    CONF_AI_PROVIDER_PENALTY,
    CONF_API_TOKENS,
    CONF_AUDIT_CEILING,
    CONF_COLLECTOR_TIMEOUT,
    CONF_COLLECTORS,
    CONF_COORDINATED_EVENTS_PER_HOUR,
    CONF_CORE_TABLES,
    CONF_CRON_FAILURE_PENALTY,
    CONF_CRON_FAILURE_THRESHOLD,
    CONF_CRON_SECRET,
    CONF_DATA_REFRESH_INTERVAL_HOURS,
    CONF_DATA_REFRESH_JOB,
    CONF_DB,
    CONF_DB_HOST,
    CONF_DB_NAME,
    CONF_DB_PARAMS,
    CONF_DB_PASSWORD,
    CONF_DB_PENALTY,
    CONF_DB_POOL_MAX_SIZE,
    CONF_DB_POOL_MIN_SIZE,
    CONF_DB_PORT,
    CONF_DB_URI,
    CONF_DB_USERNAME,
    CONF_DRIFT_APPROVAL_BELOW,
    CONF_DRIFT_VOTES_ABOVE,
    CONF_ENTITY_TABLE,
    CONF_GITHUB_REPO,
    CONF_GITHUB_TOKEN,
    CONF_GOVERNANCE_VOTE_WEIGHT,
    CONF_HIGH_SEVERITY_MULTIPLIER,
    CONF_HTTP,
    CONF_HTTP_HOST,
    CONF_HTTP_PORT,
    CONF_JOB_ERROR_WINDOW,
    CONF_JOB_LOG_TABLE,
    CONF_JOB_OVERDUE_PENALTY,
    CONF_LOG_LEVEL,
    CONF_PROJECTED_BACKLOG_WEIGHT_PCT,
    CONF_PROJECTED_VOTE_WEIGHT_PCT,
    CONF_RECORDER,
    CONF_RECORDER_ENABLED,
    CONF_RECORDER_INTERVAL_SECONDS,
    CONF_RISK_HIGH_BELOW,
    CONF_RISK_MEDIUM_BELOW,
    CONF_ROLE,
    CONF_SCORING,
    CONF_SMOOTHING_CURRENT_WEIGHT,
    CONF_SMOOTHING_WINDOW,
    CONF_SNAPSHOT_BACKEND,
    CONF_SNAPSHOT_PATH,
    CONF_SNAPSHOT_TABLE,
    CONF_STALE_PENALTY_CAP,
    CONF_STALE_PENALTY_PER_STEP,
    CONF_STALE_STEP,
    CONF_STALE_THRESHOLD,
    CONF_STALENESS_DAYS,
    CONF_TOKEN,
    CONF_VECTOR_DB_URI,
    CONF_VECTOR_NAMESPACE,
    CONF_VECTOR_PENALTY,
    CONF_VOTE_ANOMALY_PENALTY,
    CONF_VOTE_ANOMALY_PENALTY_CAP,
    CONF_VOTE_SPIKE_THRESHOLD,
    CONF_VOTE_VELOCITY_DELTA,
    ENV_CRON_SECRET,
    ENV_DB_URI,
    ENV_GITHUB_TOKEN,
    RECOMMENDED_AI_BACKLOG_PENALTY_CAP,
    RECOMMENDED_AI_BACKLOG_PENALTY_PER_STEP,
    RECOMMENDED_AI_BACKLOG_STEP,
    RECOMMENDED_AI_BACKLOG_THRESHOLD,
    RECOMMENDED_AI_ENRICHMENT_INTERVAL_HOURS,
    RECOMMENDED_AI_ENRICHMENT_JOB,
    RECOMMENDED_AI_PROVIDER_PENALTY,
    RECOMMENDED_AUDIT_CEILING,
    RECOMMENDED_COLLECTOR_TIMEOUT,
    RECOMMENDED_COORDINATED_EVENTS_PER_HOUR,
    RECOMMENDED_CORE_TABLES,
    RECOMMENDED_CRON_FAILURE_PENALTY,
    RECOMMENDED_CRON_FAILURE_THRESHOLD,
    RECOMMENDED_DATA_REFRESH_INTERVAL_HOURS,
    RECOMMENDED_DATA_REFRESH_JOB,
    RECOMMENDED_DB_PENALTY,
    RECOMMENDED_DB_POOL_MAX_SIZE,
    RECOMMENDED_DB_POOL_MIN_SIZE,
    RECOMMENDED_DB_URI,
    RECOMMENDED_DRIFT_APPROVAL_BELOW,
    RECOMMENDED_DRIFT_VOTES_ABOVE,
    RECOMMENDED_ENTITY_TABLE,
    RECOMMENDED_GOVERNANCE_VOTE_WEIGHT,
    RECOMMENDED_HIGH_SEVERITY_MULTIPLIER,
    RECOMMENDED_HTTP_HOST,
    RECOMMENDED_HTTP_PORT,
    RECOMMENDED_JOB_ERROR_WINDOW,
    RECOMMENDED_JOB_LOG_TABLE,
    RECOMMENDED_JOB_OVERDUE_PENALTY,
    RECOMMENDED_LOG_LEVEL,
    RECOMMENDED_PROJECTED_BACKLOG_WEIGHT_PCT,
    RECOMMENDED_PROJECTED_VOTE_WEIGHT_PCT,
    RECOMMENDED_RECORDER_ENABLED,
    RECOMMENDED_RECORDER_INTERVAL_SECONDS,
    RECOMMENDED_RISK_HIGH_BELOW,
    RECOMMENDED_RISK_MEDIUM_BELOW,
    RECOMMENDED_SMOOTHING_CURRENT_WEIGHT,
    RECOMMENDED_SMOOTHING_WINDOW,
    RECOMMENDED_SNAPSHOT_BACKEND,
    RECOMMENDED_SNAPSHOT_PATH,
    RECOMMENDED_SNAPSHOT_TABLE,
    RECOMMENDED_STALE_PENALTY_CAP,
    RECOMMENDED_STALE_PENALTY_PER_STEP,
    RECOMMENDED_STALE_STEP,
    RECOMMENDED_STALE_THRESHOLD,
    RECOMMENDED_STALENESS_DAYS,
    RECOMMENDED_VECTOR_NAMESPACE,
    RECOMMENDED_VECTOR_PENALTY,
    RECOMMENDED_VOTE_ANOMALY_PENALTY,
    RECOMMENDED_VOTE_ANOMALY_PENALTY_CAP,
    RECOMMENDED_VOTE_SPIKE_THRESHOLD,
    RECOMMENDED_VOTE_VELOCITY_DELTA,
)
from .core.db_utils import build_postgres_uri
from .exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

LOGGER = logging.getLogger(__name__)

_IDENTIFIER = vol.Match(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PENALTY = vol.All(vol.Coerce(int), vol.Range(min=0, max=100))
_COUNT = vol.All(vol.Coerce(int), vol.Range(min=0))
_POSITIVE = vol.All(vol.Coerce(int), vol.Range(min=1))
_SECONDS = vol.All(vol.Coerce(float), vol.Range(min=0.1))
_BAND = vol.All(vol.Coerce(int), vol.Range(min=0, max=100))


def _validate_risk_bands(data: dict[str, Any]) -> dict[str, Any]:
    if data[CONF_RISK_HIGH_BELOW] > data[CONF_RISK_MEDIUM_BELOW]:
        msg = f"{CONF_RISK_HIGH_BELOW} must not exceed {CONF_RISK_MEDIUM_BELOW}"
        raise vol.Invalid(msg)
    return data


def _validate_ceiling(data: dict[str, Any]) -> dict[str, Any]:
    if data[CONF_AUDIT_CEILING] < data[CONF_COLLECTOR_TIMEOUT]:
        msg = f"{CONF_AUDIT_CEILING} must be at least {CONF_COLLECTOR_TIMEOUT}"
        raise vol.Invalid(msg)
    return data


DB_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_DB_USERNAME): str,
        vol.Required(CONF_DB_PASSWORD): str,
        vol.Required(CONF_DB_HOST): str,
        vol.Optional(CONF_DB_PORT): vol.All(vol.Coerce(int), vol.Range(1, 65535)),
        vol.Required(CONF_DB_NAME): str,
        vol.Optional(CONF_DB_PARAMS, default=list): [
            {vol.Required("key"): str, vol.Required("value"): vol.Coerce(str)}
        ],
    }
)

COLLECTORS_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Optional(
                CONF_COLLECTOR_TIMEOUT, default=RECOMMENDED_COLLECTOR_TIMEOUT
            ): _SECONDS,
            vol.Optional(CONF_AUDIT_CEILING, default=RECOMMENDED_AUDIT_CEILING): _SECONDS,
            vol.Optional(CONF_ENTITY_TABLE, default=RECOMMENDED_ENTITY_TABLE): _IDENTIFIER,
            vol.Optional(
                CONF_CORE_TABLES, default=list(RECOMMENDED_CORE_TABLES)
            ): [_IDENTIFIER],
            vol.Optional(
                CONF_JOB_LOG_TABLE, default=RECOMMENDED_JOB_LOG_TABLE
            ): _IDENTIFIER,
            vol.Optional(
                CONF_DATA_REFRESH_JOB, default=RECOMMENDED_DATA_REFRESH_JOB
            ): str,
            vol.Optional(
                CONF_AI_ENRICHMENT_JOB, default=RECOMMENDED_AI_ENRICHMENT_JOB
            ): str,
            vol.Optional(
                CONF_JOB_ERROR_WINDOW, default=RECOMMENDED_JOB_ERROR_WINDOW
            ): _POSITIVE,
            vol.Optional(CONF_STALENESS_DAYS, default=RECOMMENDED_STALENESS_DAYS): _POSITIVE,
            vol.Optional(
                CONF_VOTE_SPIKE_THRESHOLD, default=RECOMMENDED_VOTE_SPIKE_THRESHOLD
            ): _POSITIVE,
            vol.Optional(
                CONF_VOTE_VELOCITY_DELTA, default=RECOMMENDED_VOTE_VELOCITY_DELTA
            ): _POSITIVE,
            vol.Optional(
                CONF_COORDINATED_EVENTS_PER_HOUR,
                default=RECOMMENDED_COORDINATED_EVENTS_PER_HOUR,
            ): _POSITIVE,
            vol.Optional(
                CONF_DRIFT_APPROVAL_BELOW, default=RECOMMENDED_DRIFT_APPROVAL_BELOW
            ): _BAND,
            vol.Optional(
                CONF_DRIFT_VOTES_ABOVE, default=RECOMMENDED_DRIFT_VOTES_ABOVE
            ): _COUNT,
        }
    ),
    _validate_ceiling,
)

SCORING_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Optional(CONF_DB_PENALTY, default=RECOMMENDED_DB_PENALTY): _PENALTY,
            vol.Optional(
                CONF_AI_BACKLOG_THRESHOLD, default=RECOMMENDED_AI_BACKLOG_THRESHOLD
            ): _COUNT,
            vol.Optional(
                CONF_AI_BACKLOG_STEP, default=RECOMMENDED_AI_BACKLOG_STEP
            ): _POSITIVE,
            vol.Optional(
                CONF_AI_BACKLOG_PENALTY_PER_STEP,
                default=RECOMMENDED_AI_BACKLOG_PENALTY_PER_STEP,
            ): _PENALTY,
            vol.Optional(
                CONF_AI_BACKLOG_PENALTY_CAP, default=RECOMMENDED_AI_BACKLOG_PENALTY_CAP
            ): _PENALTY,
            vol.Optional(CONF_STALE_THRESHOLD, default=RECOMMENDED_STALE_THRESHOLD): _COUNT,
            vol.Optional(CONF_STALE_STEP, default=RECOMMENDED_STALE_STEP): _POSITIVE,
            vol.Optional(
                CONF_STALE_PENALTY_PER_STEP, default=RECOMMENDED_STALE_PENALTY_PER_STEP
            ): _PENALTY,
            vol.Optional(
                CONF_STALE_PENALTY_CAP, default=RECOMMENDED_STALE_PENALTY_CAP
            ): _PENALTY,
            vol.Optional(
                CONF_VOTE_ANOMALY_PENALTY, default=RECOMMENDED_VOTE_ANOMALY_PENALTY
            ): _PENALTY,
            vol.Optional(
                CONF_VOTE_ANOMALY_PENALTY_CAP,
                default=RECOMMENDED_VOTE_ANOMALY_PENALTY_CAP,
            ): _PENALTY,
            vol.Optional(
                CONF_JOB_OVERDUE_PENALTY, default=RECOMMENDED_JOB_OVERDUE_PENALTY
            ): _PENALTY,
            vol.Optional(
                CONF_DATA_REFRESH_INTERVAL_HOURS,
                default=RECOMMENDED_DATA_REFRESH_INTERVAL_HOURS,
            ): _POSITIVE,
            vol.Optional(
                CONF_AI_ENRICHMENT_INTERVAL_HOURS,
                default=RECOMMENDED_AI_ENRICHMENT_INTERVAL_HOURS,
            ): _POSITIVE,
            vol.Optional(
                CONF_CRON_FAILURE_THRESHOLD,
                default=RECOMMENDED_CRON_FAILURE_THRESHOLD,
            ): _COUNT,
            vol.Optional(
                CONF_CRON_FAILURE_PENALTY, default=RECOMMENDED_CRON_FAILURE_PENALTY
            ): _PENALTY,
            vol.Optional(CONF_VECTOR_PENALTY, default=RECOMMENDED_VECTOR_PENALTY): _PENALTY,
            vol.Optional(
                CONF_AI_PROVIDER_PENALTY, default=RECOMMENDED_AI_PROVIDER_PENALTY
            ): _PENALTY,
            vol.Optional(
                CONF_HIGH_SEVERITY_MULTIPLIER,
                default=RECOMMENDED_HIGH_SEVERITY_MULTIPLIER,
            ): _POSITIVE,
            vol.Optional(CONF_RISK_MEDIUM_BELOW, default=RECOMMENDED_RISK_MEDIUM_BELOW): _BAND,
            vol.Optional(CONF_RISK_HIGH_BELOW, default=RECOMMENDED_RISK_HIGH_BELOW): _BAND,
            vol.Optional(
                CONF_SMOOTHING_WINDOW, default=RECOMMENDED_SMOOTHING_WINDOW
            ): _COUNT,
            vol.Optional(
                CONF_SMOOTHING_CURRENT_WEIGHT,
                default=RECOMMENDED_SMOOTHING_CURRENT_WEIGHT,
            ): _POSITIVE,
            vol.Optional(
                CONF_GOVERNANCE_VOTE_WEIGHT, default=RECOMMENDED_GOVERNANCE_VOTE_WEIGHT
            ): _COUNT,
            vol.Optional(
                CONF_PROJECTED_VOTE_WEIGHT_PCT,
                default=RECOMMENDED_PROJECTED_VOTE_WEIGHT_PCT,
            ): _COUNT,
            vol.Optional(
                CONF_PROJECTED_BACKLOG_WEIGHT_PCT,
                default=RECOMMENDED_PROJECTED_BACKLOG_WEIGHT_PCT,
            ): _COUNT,
        }
    ),
    _validate_risk_bands,
)

RECORDER_SCHEMA = vol.Schema(
    {
        vol.Optional(
            CONF_RECORDER_ENABLED, default=RECOMMENDED_RECORDER_ENABLED
        ): bool,
        vol.Optional(
            CONF_RECORDER_INTERVAL_SECONDS,
            default=RECOMMENDED_RECORDER_INTERVAL_SECONDS,
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(
            CONF_SNAPSHOT_BACKEND, default=RECOMMENDED_SNAPSHOT_BACKEND
        ): vol.In(["file", "postgres"]),
        vol.Optional(CONF_SNAPSHOT_PATH, default=RECOMMENDED_SNAPSHOT_PATH): str,
        vol.Optional(CONF_SNAPSHOT_TABLE, default=RECOMMENDED_SNAPSHOT_TABLE): _IDENTIFIER,
        vol.Optional(CONF_GITHUB_REPO): vol.Match(r"^[\w.-]+/[\w.-]+$"),
        vol.Optional(CONF_GITHUB_TOKEN): str,
    }
)

HTTP_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_HTTP_HOST, default=RECOMMENDED_HTTP_HOST): str,
        vol.Optional(CONF_HTTP_PORT, default=RECOMMENDED_HTTP_PORT): vol.All(
            vol.Coerce(int), vol.Range(1, 65535)
        ),
        vol.Optional(CONF_API_TOKENS, default=list): [
            {
                vol.Required(CONF_TOKEN): vol.All(str, vol.Length(min=16)),
                vol.Required(CONF_ROLE): str,
            }
        ],
        vol.Optional(CONF_CRON_SECRET): vol.All(str, vol.Length(min=16)),
    }
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_LOG_LEVEL, default=RECOMMENDED_LOG_LEVEL): vol.All(
            str, vol.Upper, vol.In(["DEBUG", "INFO", "WARNING", "ERROR"])
        ),
        vol.Exclusive(CONF_DB_URI, "database"): str,
        vol.Exclusive(CONF_DB, "database"): DB_SCHEMA,
        vol.Optional(CONF_DB_POOL_MIN_SIZE, default=RECOMMENDED_DB_POOL_MIN_SIZE): _POSITIVE,
        vol.Optional(CONF_DB_POOL_MAX_SIZE, default=RECOMMENDED_DB_POOL_MAX_SIZE): _POSITIVE,
        vol.Optional(CONF_VECTOR_DB_URI): str,
        vol.Optional(CONF_VECTOR_NAMESPACE, default=RECOMMENDED_VECTOR_NAMESPACE): str,
        vol.Optional(CONF_AI_HEALTH_URL): str,
        vol.Optional(CONF_AI_API_KEY): str,
        vol.Optional(CONF_COLLECTORS, default=dict): COLLECTORS_SCHEMA,
        vol.Optional(CONF_SCORING, default=dict): SCORING_SCHEMA,
        vol.Optional(CONF_RECORDER, default=dict): RECORDER_SCHEMA,
        vol.Optional(CONF_HTTP, default=dict): HTTP_SCHEMA,
    }
)


@dataclass(frozen=True)
class ScoringConfig:
    """Penalty weights, thresholds and risk bands for the health scorer."""

    db_penalty: int = RECOMMENDED_DB_PENALTY
    ai_backlog_threshold: int = RECOMMENDED_AI_BACKLOG_THRESHOLD
    ai_backlog_step: int = RECOMMENDED_AI_BACKLOG_STEP
    ai_backlog_penalty_per_step: int = RECOMMENDED_AI_BACKLOG_PENALTY_PER_STEP
    ai_backlog_penalty_cap: int = RECOMMENDED_AI_BACKLOG_PENALTY_CAP
    stale_threshold: int = RECOMMENDED_STALE_THRESHOLD
    stale_step: int = RECOMMENDED_STALE_STEP
    stale_penalty_per_step: int = RECOMMENDED_STALE_PENALTY_PER_STEP
    stale_penalty_cap: int = RECOMMENDED_STALE_PENALTY_CAP
    vote_anomaly_penalty: int = RECOMMENDED_VOTE_ANOMALY_PENALTY
    vote_anomaly_penalty_cap: int = RECOMMENDED_VOTE_ANOMALY_PENALTY_CAP
    job_overdue_penalty: int = RECOMMENDED_JOB_OVERDUE_PENALTY
    data_refresh_interval_hours: int = RECOMMENDED_DATA_REFRESH_INTERVAL_HOURS
    ai_enrichment_interval_hours: int = RECOMMENDED_AI_ENRICHMENT_INTERVAL_HOURS
    cron_failure_threshold: int = RECOMMENDED_CRON_FAILURE_THRESHOLD
    cron_failure_penalty: int = RECOMMENDED_CRON_FAILURE_PENALTY
    vector_penalty: int = RECOMMENDED_VECTOR_PENALTY
    ai_provider_penalty: int = RECOMMENDED_AI_PROVIDER_PENALTY
    high_severity_multiplier: int = RECOMMENDED_HIGH_SEVERITY_MULTIPLIER
    risk_medium_below: int = RECOMMENDED_RISK_MEDIUM_BELOW
    risk_high_below: int = RECOMMENDED_RISK_HIGH_BELOW
    smoothing_window: int = RECOMMENDED_SMOOTHING_WINDOW
    smoothing_current_weight: int = RECOMMENDED_SMOOTHING_CURRENT_WEIGHT
    governance_vote_weight: int = RECOMMENDED_GOVERNANCE_VOTE_WEIGHT
    projected_vote_weight_pct: int = RECOMMENDED_PROJECTED_VOTE_WEIGHT_PCT
    projected_backlog_weight_pct: int = RECOMMENDED_PROJECTED_BACKLOG_WEIGHT_PCT

    def __post_init__(self) -> None:
        """Reject risk bands that would break monotonicity."""
        if not 0 <= self.risk_high_below <= self.risk_medium_below <= 100:  # noqa: PLR2004
            msg = (
                "Risk bands must satisfy 0 <= risk_high_below <= "
                "risk_medium_below <= 100"
            )
            raise ConfigError(msg)


@dataclass(frozen=True)
class CollectorConfig:
    """Sources, windows and time budgets for the signal collectors."""

    timeout_seconds: float = RECOMMENDED_COLLECTOR_TIMEOUT
    audit_ceiling_seconds: float = RECOMMENDED_AUDIT_CEILING
    entity_table: str = RECOMMENDED_ENTITY_TABLE
    core_tables: tuple[str, ...] = RECOMMENDED_CORE_TABLES
    job_log_table: str = RECOMMENDED_JOB_LOG_TABLE
    data_refresh_job: str = RECOMMENDED_DATA_REFRESH_JOB
    ai_enrichment_job: str = RECOMMENDED_AI_ENRICHMENT_JOB
    job_error_window: int = RECOMMENDED_JOB_ERROR_WINDOW
    staleness_days: int = RECOMMENDED_STALENESS_DAYS
    vote_spike_threshold: int = RECOMMENDED_VOTE_SPIKE_THRESHOLD
    vote_velocity_delta: int = RECOMMENDED_VOTE_VELOCITY_DELTA
    coordinated_events_per_hour: int = RECOMMENDED_COORDINATED_EVENTS_PER_HOUR
    drift_approval_below: int = RECOMMENDED_DRIFT_APPROVAL_BELOW
    drift_votes_above: int = RECOMMENDED_DRIFT_VOTES_ABOVE


@dataclass(frozen=True)
class RecorderConfig:
    """Snapshot recorder schedule and storage backend."""

    enabled: bool = RECOMMENDED_RECORDER_ENABLED
    interval_seconds: int = RECOMMENDED_RECORDER_INTERVAL_SECONDS
    backend: str = RECOMMENDED_SNAPSHOT_BACKEND
    path: str = RECOMMENDED_SNAPSHOT_PATH
    table: str = RECOMMENDED_SNAPSHOT_TABLE
    github_repo: str | None = None
    github_token: str | None = None


@dataclass(frozen=True)
class HttpConfig:
    """Listener address and bearer-token role map."""

    host: str = RECOMMENDED_HTTP_HOST
    port: int = RECOMMENDED_HTTP_PORT
    api_tokens: dict[str, str] = field(default_factory=dict)
    cron_secret: str | None = None


@dataclass(frozen=True)
class AuditConfig:
    """Complete service configuration."""

    db_uri: str = RECOMMENDED_DB_URI
    pool_min_size: int = RECOMMENDED_DB_POOL_MIN_SIZE
    pool_max_size: int = RECOMMENDED_DB_POOL_MAX_SIZE
    vector_db_uri: str | None = None
    vector_namespace: str = RECOMMENDED_VECTOR_NAMESPACE
    ai_health_url: str | None = None
    ai_api_key: str | None = None
    log_level: str = RECOMMENDED_LOG_LEVEL
    collectors: CollectorConfig = field(default_factory=CollectorConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    recorder: RecorderConfig = field(default_factory=RecorderConfig)
    http: HttpConfig = field(default_factory=HttpConfig)


def config_from_dict(
    raw: Mapping[str, Any] | None, environ: Mapping[str, str] | None = None
) -> AuditConfig:
    """Validate raw settings and build the typed configuration."""
    env = os.environ if environ is None else environ
    try:
        data = CONFIG_SCHEMA(dict(raw or {}))
    except vol.Invalid as err:
        msg = f"Invalid configuration: {err}"
        raise ConfigError(msg) from err

    if CONF_DB in data:
        db_uri = build_postgres_uri(data[CONF_DB])
    else:
        db_uri = data.get(CONF_DB_URI, RECOMMENDED_DB_URI)
    db_uri = env.get(ENV_DB_URI, db_uri)

    collectors = dict(data[CONF_COLLECTORS])
    collectors[CONF_CORE_TABLES] = tuple(collectors[CONF_CORE_TABLES])

    recorder = dict(data[CONF_RECORDER])
    if ENV_GITHUB_TOKEN in env:
        recorder[CONF_GITHUB_TOKEN] = env[ENV_GITHUB_TOKEN]

    http = dict(data[CONF_HTTP])
    tokens = {item[CONF_TOKEN]: item[CONF_ROLE] for item in http[CONF_API_TOKENS]}
    unknown_roles = sorted(set(tokens.values()) - set(ADMIN_ROLES))
    if unknown_roles:
        LOGGER.warning("API tokens reference unknown roles: %s", unknown_roles)
    http[CONF_API_TOKENS] = tokens
    if ENV_CRON_SECRET in env:
        http[CONF_CRON_SECRET] = env[ENV_CRON_SECRET]

    return AuditConfig(
        db_uri=db_uri,
        pool_min_size=data[CONF_DB_POOL_MIN_SIZE],
        pool_max_size=data[CONF_DB_POOL_MAX_SIZE],
        vector_db_uri=data.get(CONF_VECTOR_DB_URI),
        vector_namespace=data[CONF_VECTOR_NAMESPACE],
        ai_health_url=data.get(CONF_AI_HEALTH_URL),
        ai_api_key=data.get(CONF_AI_API_KEY),
        log_level=data[CONF_LOG_LEVEL],
        collectors=CollectorConfig(**collectors),
        scoring=ScoringConfig(**data[CONF_SCORING]),
        recorder=RecorderConfig(**recorder),
        http=HttpConfig(**http),
    )


def load_config(
    path: Path | str | None = None, environ: Mapping[str, str] | None = None
) -> AuditConfig:
    """Load configuration from a YAML file, or defaults when no path is given."""
    if path is None:
        return config_from_dict({}, environ)

    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as err:
        msg = f"Cannot read configuration {config_path}: {err}"
        raise ConfigError(msg) from err

    if raw is not None and not isinstance(raw, dict):
        msg = f"Configuration {config_path} must be a mapping"
        raise ConfigError(msg)
    LOGGER.debug("Loaded configuration from %s", config_path)
    return config_from_dict(raw, environ)
