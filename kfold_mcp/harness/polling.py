"""Bounded polling of asynchronous status checks."""

import asyncio
from typing import Awaitable, Callable

from .errors import PollingTimeoutError


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    interval: float,
    timeout: float,
    description: str = "condition",
) -> bool:
    """Await check() now and every interval seconds until it is truthy.

    Raises PollingTimeoutError once timeout seconds have elapsed since the
    first check without a truthy result. Errors raised by check propagate.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()

    while True:
        if await check():
            return True

        elapsed = loop.time() - started
        if elapsed >= timeout:
            raise PollingTimeoutError(
                f"Timed out after {elapsed:.1f}s waiting for {description}",
                elapsed=elapsed,
                timeout=timeout,
            )

        await asyncio.sleep(interval)
