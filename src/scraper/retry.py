#!/usr/bin/env python3
"""
Retry Executor for Chat Migrator
Bounded retries with exponential backoff and random jitter.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from errors import LoginTimeoutError, RetryExhaustedError
from scraper.session_models import ScraperConfig

logger = logging.getLogger(__name__)

T = TypeVar('T')

@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and backoff shape (seconds)"""
    max_attempts: int = 3
    base_delay: float = 1.5
    max_delay: float = 4.0
    multiplier: float = 1.5
    jitter_range: float = 0.5

    @classmethod
    def from_scraper_config(cls, config: ScraperConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, config.max_retries),
            base_delay=config.min_delay,
            max_delay=config.max_delay,
            multiplier=config.backoff_multiplier,
            jitter_range=config.jitter_range,
        )

def compute_backoff_delay(attempt: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """
    Delay after a failed attempt

    Args:
        attempt: 0-indexed attempt that just failed
        policy: Backoff shape
        rng: Random source for the jitter

    Returns:
        min(base * multiplier**attempt, max) + uniform(0, jitter) seconds
    """
    rng = rng or random
    delay = min(policy.base_delay * (policy.multiplier ** attempt), policy.max_delay)
    return delay + rng.uniform(0, policy.jitter_range)

def is_retryable(error: BaseException) -> bool:
    """Default policy: everything except a login timeout is worth retrying"""
    return not isinstance(error, LoginTimeoutError)

class RetryExecutor:
    """Runs a fallible coroutine factory with bounded attempts"""

    def __init__(self, policy: RetryPolicy,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 rng: Optional[random.Random] = None,
                 retryable: Callable[[BaseException], bool] = is_retryable):
        self.policy = policy
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._retryable = retryable

    async def run(self, operation: Callable[[], Awaitable[T]], name: str = "operation") -> T:
        """
        Invoke operation until it succeeds or the attempt ceiling is hit

        No delay follows the final failing attempt.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            name: Label used in log messages and the final error

        Returns:
            The operation's result

        Raises:
            RetryExhaustedError: After max_attempts failures
            Exception: Non-retryable errors are re-raised immediately
        """
        attempts = self.policy.max_attempts
        last_error = None

        for attempt in range(attempts):
            try:
                logger.debug(f"[Retry] {name} - Attempt {attempt + 1}/{attempts}")
                return await operation()
            except Exception as e:
                if not self._retryable(e):
                    raise
                last_error = e
                logger.warning(f"[Retry] {name} failed (attempt {attempt + 1}/{attempts}): {e}")

                if attempt < attempts - 1:
                    delay = compute_backoff_delay(attempt, self.policy, self._rng)
                    logger.debug(f"[Retry] Waiting {delay:.2f}s before retry...")
                    await self._sleep(delay)

        raise RetryExhaustedError(name, attempts, last_error) from last_error
