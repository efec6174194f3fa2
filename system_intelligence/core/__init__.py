"""System Intelligence core module."""

from .datetime_utils import DateTimeUtils
from .db_utils import build_postgres_uri, parse_postgres_uri, redact_postgres_uri
from .error_handlers import ErrorHandler, describe_error
from .runtime import RUNTIME_KEY, AuditRuntime
from .utils import clamp_score, ensure_http_url, validate_health_url

__all__ = [
    "RUNTIME_KEY",
    "AuditRuntime",
    "DateTimeUtils",
    "ErrorHandler",
    "build_postgres_uri",
    "clamp_score",
    "describe_error",
    "ensure_http_url",
    "parse_postgres_uri",
    "redact_postgres_uri",
    "validate_health_url",
]
