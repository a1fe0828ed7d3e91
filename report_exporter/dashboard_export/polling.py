from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from report_exporter.errors import WaitTimeoutError

from .json_logger import JsonLogger, log_event

__all__ = ["poll_until", "DEFAULT_POLL_INTERVAL_MS"]

T = TypeVar("T")

DEFAULT_POLL_INTERVAL_MS = 500


async def poll_until(
    probe: Callable[[], Awaitable[Optional[T]]],
    *,
    timeout_ms: int,
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    description: str,
    logger: JsonLogger | None = None,
    phase: str = "poll",
) -> T:
    """Await ``probe`` until it returns something truthy or the deadline passes.

    Falsy results and exceptions raised by the probe both mean "not yet". The
    probe always runs at least once, even with a zero timeout. On expiry a
    :class:`WaitTimeoutError` naming ``description`` is raised with the last
    probe error attached.
    """

    if interval_ms <= 0:
        raise ValueError("interval_ms must be positive")

    loop = asyncio.get_running_loop()
    started = loop.time()
    deadline = started + max(0, timeout_ms) / 1000
    attempts = 0
    last_error: BaseException | None = None

    while True:
        attempts += 1
        try:
            result = await probe()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = exc
        else:
            if result:
                return result

        now = loop.time()
        if now >= deadline:
            elapsed_ms = int((now - started) * 1000)
            if logger is not None:
                log_event(
                    logger=logger,
                    phase=phase,
                    status="warn",
                    message=f"Gave up waiting for {description}",
                    attempts=attempts,
                    elapsed_ms=elapsed_ms,
                    last_error=repr(last_error) if last_error else None,
                )
            raise WaitTimeoutError(description, elapsed_ms=elapsed_ms, last_error=last_error)

        await asyncio.sleep(min(interval_ms / 1000, deadline - now))
