"""Tests for the batch throttle."""

from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, patch

import pytest

from reconkit.throttle import BatchThrottle


class TestBatchThrottle(unittest.IsolatedAsyncioTestCase):
    """Test pause placement."""

    async def test_pauses_after_each_batch(self) -> None:
        throttle = BatchThrottle(delay=0.5, every=3)

        with patch("reconkit.throttle.asyncio.sleep", new_callable=AsyncMock) as sleep:
            paused = [await throttle.tick() for _ in range(7)]

        self.assertEqual(paused, [False, False, True, False, False, True, False])
        self.assertEqual(sleep.await_count, 2)
        sleep.assert_awaited_with(0.5)

    async def test_zero_delay_never_sleeps(self) -> None:
        throttle = BatchThrottle(delay=0, every=1)

        with patch("reconkit.throttle.asyncio.sleep", new_callable=AsyncMock) as sleep:
            for _ in range(5):
                self.assertFalse(await throttle.tick())

        sleep.assert_not_awaited()

    async def test_reset(self) -> None:
        throttle = BatchThrottle(delay=0.1, every=2)

        with patch("reconkit.throttle.asyncio.sleep", new_callable=AsyncMock):
            await throttle.tick()
            throttle.reset()
            self.assertFalse(await throttle.tick())
            self.assertTrue(await throttle.tick())


class TestValidation:
    """Test constructor checks."""

    def test_invalid_parameters(self) -> None:
        with pytest.raises(ValueError, match="every"):
            BatchThrottle(every=0)
        with pytest.raises(ValueError, match="delay"):
            BatchThrottle(delay=-0.1)
