"""
Batch throttle for sequential probe loops.

Inserts a fixed pause after every Nth request. This is a crude
politeness delay, not a rate limiter: no backoff, no jitter.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field


@dataclass
class BatchThrottle:
    """
    Counts requests and sleeps after every `every`-th one.

    A delay of zero disables the pause entirely.
    """

    delay: float = 0.1
    every: int = 10
    count: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        """Validate throttle parameters."""
        if self.every < 1:
            raise ValueError(f"every must be at least 1, got {self.every}")
        if self.delay < 0:
            raise ValueError(f"delay must be non-negative, got {self.delay}")

    async def tick(self) -> bool:
        """
        Register one request, pausing when a batch completes.

        Returns:
            True if a pause was taken
        """
        self.count += 1
        if self.delay > 0 and self.count % self.every == 0:
            await asyncio.sleep(self.delay)
            return True
        return False

    def reset(self) -> None:
        """Restart the request count."""
        self.count = 0
