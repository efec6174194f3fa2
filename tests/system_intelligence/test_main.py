# ruff: noqa: S101
"""Tests for the service entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from aiohttp import web

from system_intelligence import __main__ as entry

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


def test_main_serves_with_handler_cancellation(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Abandoned requests are cancelled by the served application."""
    calls: list[dict[str, Any]] = []
    path = tmp_path / "config.yaml"
    path.write_text("http:\n  port: 9100\n", encoding="utf-8")
    monkeypatch.setattr(entry, "async_setup_app", lambda config: config)
    monkeypatch.setattr(
        web, "run_app", lambda app, **kwargs: calls.append({"app": app, **kwargs})
    )

    assert entry.main(["--config", str(path)]) == 0

    assert len(calls) == 1
    assert calls[0]["handler_cancellation"] is True
    assert calls[0]["port"] == 9100


def test_main_rejects_bad_config(tmp_path: Path) -> None:
    """A broken configuration exits with a non-zero status."""
    assert entry.main(["--config", str(tmp_path / "absent.yaml")]) == 2  # noqa: PLR2004
