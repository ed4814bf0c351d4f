#!/usr/bin/env python3
"""
Rate Limiter for Chat Migrator
Inter-item pacing that grows slowly with progress to avoid burst patterns.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from scraper.session_models import ScraperConfig

logger = logging.getLogger(__name__)

def compute_rate_limit_delay(index: int, base_delay: float, jitter_range: float, max_delay: float,
                             rng: Optional[random.Random] = None) -> float:
    """
    Delay before the item after ``index``

    ``min(base * (1 + 0.5 * index / 100) + uniform(0, jitter), max)``: +50%
    after 100 items, capped at max_delay.
    """
    rng = rng or random
    progress_multiplier = 1 + 0.5 * index / 100
    return min(base_delay * progress_multiplier + rng.uniform(0, jitter_range), max_delay)

class RateLimiter:
    """Sleeps the computed delay between items"""

    def __init__(self, config: ScraperConfig,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 rng: Optional[random.Random] = None):
        self.config = config
        self._sleep = sleep
        self._rng = rng or random.Random()

    def delay_for(self, index: int) -> float:
        return compute_rate_limit_delay(index, self.config.min_delay, self.config.jitter_range,
                                        self.config.max_delay, self._rng)

    async def wait(self, index: int) -> float:
        delay = self.delay_for(index)
        logger.debug(f"[Rate Limit] Waiting {delay:.2f}s...")
        await self._sleep(delay)
        return delay
