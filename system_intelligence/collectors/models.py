"""Collector signal models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

from ..core.datetime_utils import DateTimeUtils

if TYPE_CHECKING:
    from collections.abc import Mapping

Scalar: TypeAlias = "str | int | float | bool | None"

ERROR_KEY = "error"


def _freeze_extra(extra: Mapping[str, Any] | None) -> Mapping[str, Scalar]:
    frozen: dict[str, Scalar] = {}
    for key, value in sorted((extra or {}).items()):
        if value is None or isinstance(value, (str, int, float, bool)):
            frozen[str(key)] = value
        else:
            frozen[str(key)] = str(value)
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class CollectorSignal:
    """One subsystem's bounded status reading for a single audit."""

    name: str
    available: bool
    last_run_at: datetime | None = None
    count: int = 0
    extra: Mapping[str, Scalar] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize extra into a read-only, key-sorted mapping of scalars."""
        object.__setattr__(self, "extra", _freeze_extra(self.extra))
        if self.last_run_at is not None:
            object.__setattr__(self, "last_run_at", DateTimeUtils.as_utc(self.last_run_at))

    @classmethod
    def ok(
        cls,
        name: str,
        count: int = 0,
        last_run_at: datetime | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> CollectorSignal:
        """Return an available signal."""
        return cls(
            name=name,
            available=True,
            last_run_at=last_run_at,
            count=max(0, int(count)),
            extra=extra or {},
        )

    @classmethod
    def unavailable(cls, name: str, reason: str | None = None) -> CollectorSignal:
        """Return the definite "could not reach subsystem" state."""
        return cls(
            name=name,
            available=False,
            last_run_at=None,
            count=0,
            extra={ERROR_KEY: reason} if reason else {},
        )

    @property
    def error(self) -> str | None:
        """Return the failure reason of an unavailable signal."""
        value = self.extra.get(ERROR_KEY)
        return None if value is None else str(value)

    def as_dict(self) -> dict[str, Any]:
        """Serialize the signal for logs and debug payloads."""
        return {
            "name": self.name,
            "available": self.available,
            "lastRunAt": (
                DateTimeUtils.as_iso(self.last_run_at) if self.last_run_at else None
            ),
            "count": self.count,
            "extra": dict(self.extra),
        }


@dataclass(frozen=True)
class RegionSignals:
    """Collector subset restricted to one region (state)."""

    region: str
    signals: tuple[CollectorSignal, ...]
