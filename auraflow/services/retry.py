"""
Retry Policy - Attempt budget and backoff as an injectable value.

Sleep is injected so callers can be exercised without real delays.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field


def exponential_backoff(attempt: int) -> float:
    """2 ** attempt seconds after the given (1-based) attempt."""
    return float(2**attempt)


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""

    max_attempts: int = 3
    backoff: Callable[[int], float] = exponential_backoff
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self) -> None:
        """Validate attempt budget."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {self.max_attempts}")

    def has_more(self, attempt: int) -> bool:
        """True if another attempt may follow `attempt`."""
        return attempt < self.max_attempts

    async def wait(self, attempt: int) -> None:
        """Sleep for the backoff that follows `attempt`."""
        await self.sleep(self.backoff(attempt))
