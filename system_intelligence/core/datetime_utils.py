"""Datetime utilities for consistent timestamp handling."""

from __future__ import annotations

from datetime import UTC, datetime


class DateTimeUtils:
    """Centralized datetime operations for consistency."""

    ANCHOR_DATE_FORMAT = "%Y-%m-%d"

    @staticmethod
    def utcnow() -> datetime:
        """Return the current time as an aware UTC datetime."""
        return datetime.now(UTC)

    @staticmethod
    def as_utc(dt: datetime) -> datetime:
        """
        Convert a datetime to UTC.

        Naive datetimes are assumed to already be UTC (the job log and
        snapshot tables store timestamps without zone).
        """
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    @staticmethod
    def as_iso(dt: datetime) -> str:
        """Return the ISO-8601 representation of a datetime in UTC."""
        return DateTimeUtils.as_utc(dt).isoformat()

    @staticmethod
    def parse_or_default(
        datetime_str: str | None, default: datetime | None = None
    ) -> datetime | None:
        """
        Parse an ISO datetime string or return default.

        Args:
            datetime_str: String to parse (ISO format or None)
            default: Value returned when parsing fails

        Returns:
            Parsed datetime in UTC, or default

        """
        if not datetime_str:
            return default
        try:
            parsed = datetime.fromisoformat(datetime_str)
        except ValueError:
            return default
        return DateTimeUtils.as_utc(parsed)

    @staticmethod
    def anchor_date(dt: datetime | None = None) -> str:
        """Return the YYYY-MM-DD date used to name anchor files."""
        if dt is None:
            dt = DateTimeUtils.utcnow()
        return DateTimeUtils.as_utc(dt).strftime(DateTimeUtils.ANCHOR_DATE_FORMAT)
