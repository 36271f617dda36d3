"""Bounded polling for results that appear asynchronously on the MPC network."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from src.pm_common.errors import MpcTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollPolicy:
    timeout: float
    interval: float = 2.0
    backoff: float = 1.0  # multiplier applied to the interval after each miss
    max_interval: float = 10.0

    def __post_init__(self) -> None:
        if self.timeout <= 0 or self.interval <= 0:
            raise ValueError("timeout and interval must be positive")
        if self.backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")


async def poll_until(
    fetch: Callable[[], Awaitable[T | None]],
    policy: PollPolicy,
    operation: str,
) -> T:
    """Call ``fetch`` until it returns a value, or raise MpcTimeoutError.

    Cancelling the caller cancels the pending fetch or sleep immediately.
    """

    async def _loop() -> T:
        delay = policy.interval
        attempt = 0
        while True:
            attempt += 1
            result = await fetch()
            if result is not None:
                logger.debug("%s ready after %d poll(s)", operation, attempt)
                return result
            await asyncio.sleep(delay)
            delay = min(delay * policy.backoff, policy.max_interval)

    try:
        return await asyncio.wait_for(_loop(), timeout=policy.timeout)
    except TimeoutError:
        logger.warning("%s timed out after %.1fs", operation, policy.timeout)
        raise MpcTimeoutError(operation, policy.timeout) from None
