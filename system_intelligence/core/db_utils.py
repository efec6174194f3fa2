"""PostgreSQL connection string helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, unquote, urlencode, urlparse, urlunsplit

from ..const import (
    CONF_DB_HOST,
    CONF_DB_NAME,
    CONF_DB_PARAMS,
    CONF_DB_PASSWORD,
    CONF_DB_PORT,
    CONF_DB_USERNAME,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


def parse_postgres_uri(uri: str) -> dict[str, Any]:
    """
    Parse a postgres URI into components.

    Returns keys: username, password, host, port, db_name, params (list of {"key","value"}).
    """
    parsed = urlparse(uri)
    username = unquote(parsed.username) if parsed.username else None
    password = unquote(parsed.password) if parsed.password else None
    dbname = (
        parsed.path[1:]
        if parsed.path and parsed.path.startswith("/")
        else (parsed.path or None)
    )

    params: list[dict[str, str]] = [
        {"key": key, "value": value}
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
    ]

    return {
        CONF_DB_USERNAME: username,
        CONF_DB_PASSWORD: password,
        CONF_DB_HOST: parsed.hostname,
        CONF_DB_PORT: parsed.port,
        CONF_DB_NAME: dbname,
        CONF_DB_PARAMS: params,
    }


def _build_postgres_params(
    params_list: Iterable[Mapping[str, Any]] | None,
) -> dict[str, str]:
    params: dict[str, str] = {}
    if params_list:
        for item in params_list:
            key = str(item["key"]).strip()
            value = str(item["value"]).strip()
            if key:
                params[key] = value
    return params


def build_postgres_uri(data: Mapping[str, Any]) -> str:
    """Build a PostgreSQL URI from validated database settings."""
    username = data[CONF_DB_USERNAME]
    password = data[CONF_DB_PASSWORD]
    host = data[CONF_DB_HOST]
    port = data.get(CONF_DB_PORT)
    db_name = data[CONF_DB_NAME]
    params = _build_postgres_params(data.get(CONF_DB_PARAMS))

    if port is not None:
        netloc = f"{username}:{password}@{host}:{int(port)}"
    else:
        netloc = f"{username}:{password}@{host}"

    return urlunsplit(
        (  # scheme, netloc, path, query, fragment
            "postgresql",
            netloc,
            f"/{db_name}",
            urlencode(params) if params else "",
            "",
        )
    )


def redact_postgres_uri(uri: str) -> str:
    """Return the URI with its password masked, for logging."""
    parts = parse_postgres_uri(uri)
    if not parts[CONF_DB_PASSWORD]:
        return uri
    parts[CONF_DB_PASSWORD] = "***"
    if not parts[CONF_DB_USERNAME] or not parts[CONF_DB_HOST]:
        return uri
    return build_postgres_uri(parts)
