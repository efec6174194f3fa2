"""Centralized error handling utilities."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx
import psycopg
from psycopg_pool import PoolTimeout

from ..exceptions import SystemIntelligenceError

if TYPE_CHECKING:
    from collections.abc import Coroutine

LOGGER = logging.getLogger(__name__)

# Errors a probe is expected to hit when its subsystem is down.
EXPECTED_PROBE_ERRORS: tuple[type[Exception], ...] = (
    SystemIntelligenceError,
    psycopg.Error,
    PoolTimeout,
    httpx.HTTPError,
    OSError,
    ValueError,
    TypeError,
    KeyError,
)


class ErrorHandler:
    """Centralized error handling for probes and async operations."""

    @staticmethod
    async def execute_with_standard_handling(
        coro: Coroutine[Any, Any, Any],
        operation_name: str,
        timeout: float | None = None,
    ) -> tuple[Any | None, Exception | None]:
        """
        Execute async operation with standard error handling.

        Args:
            coro: The coroutine to execute
            operation_name: Name for logging purposes
            timeout: Optional timeout in seconds

        Returns:
            (result, error) - one will be None

        Cancellation is never swallowed; it propagates to the caller.

        """
        try:
            if timeout:
                result = await asyncio.wait_for(coro, timeout=timeout)
            else:
                result = await coro

        except TimeoutError as err:
            LOGGER.warning("%s timed out after %.1fs", operation_name, timeout)
            return None, err

        except EXPECTED_PROBE_ERRORS as err:
            LOGGER.warning("%s failed: %s", operation_name, err)
            return None, err

        except Exception as err:
            LOGGER.exception("Unexpected error in %s", operation_name)
            return None, err

        return result, None


def describe_error(err: BaseException) -> str:
    """Return a short, log-safe description of an error."""
    if isinstance(err, TimeoutError):
        return "timeout"
    message = str(err).strip().splitlines()[0] if str(err).strip() else ""
    if message:
        return f"{type(err).__name__}: {message}"
    return type(err).__name__
