"""Exceptions raised by System Intelligence."""

from __future__ import annotations


class SystemIntelligenceError(Exception):
    """Base error for the audit engine."""


class ConfigError(SystemIntelligenceError):
    """Configuration file missing or invalid."""


class CannotConnectError(SystemIntelligenceError):
    """Network/resource unreachable or bad response."""


class SnapshotStoreError(SystemIntelligenceError):
    """Snapshot storage unavailable or write rejected."""
