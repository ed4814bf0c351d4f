#!/usr/bin/env python3
"""
Tests for RetryExecutor and RateLimiter
"""

import random
import unittest
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from errors import LoginTimeoutError, RetryExhaustedError
from scraper.rate_limiter import RateLimiter, compute_rate_limit_delay
from scraper.retry import RetryExecutor, RetryPolicy, compute_backoff_delay
from scraper.session_models import ScraperConfig

class FixedRandom(random.Random):
    """Random source whose uniform() always returns the lower bound plus an offset"""

    def __init__(self, offset=0.0):
        super().__init__(0)
        self.offset = offset

    def uniform(self, a, b):
        return a + self.offset

class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)

class TestBackoff(unittest.TestCase):
    """Test cases for delay computation"""

    def test_exponential_growth_capped(self):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=4.0, multiplier=2.0, jitter_range=0.0)
        delays = [compute_backoff_delay(k, policy, FixedRandom()) for k in range(4)]
        self.assertEqual(delays, [1.0, 2.0, 4.0, 4.0])

    def test_jitter_added_after_cap(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=2.0, multiplier=10.0, jitter_range=0.5)
        self.assertAlmostEqual(compute_backoff_delay(3, policy, FixedRandom(0.25)), 2.25)

    def test_jitter_within_range(self):
        policy = RetryPolicy()
        rng = random.Random(42)
        for attempt in range(3):
            base = min(1.5 * 1.5 ** attempt, 4.0)
            delay = compute_backoff_delay(attempt, policy, rng)
            self.assertGreaterEqual(delay, base)
            self.assertLessEqual(delay, base + 0.5)

    def test_policy_from_config(self):
        config = ScraperConfig(max_retries=5, min_delay=2.0, max_delay=6.0, backoff_multiplier=3.0, jitter_range=1.0)
        policy = RetryPolicy.from_scraper_config(config)
        self.assertEqual(policy, RetryPolicy(5, 2.0, 6.0, 3.0, 1.0))

class TestRetryExecutor(unittest.IsolatedAsyncioTestCase):
    """Test cases for RetryExecutor"""

    def setUp(self):
        self.sleep = SleepRecorder()
        self.policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0, multiplier=2.0, jitter_range=0.0)
        self.executor = RetryExecutor(self.policy, sleep=self.sleep, rng=FixedRandom())

    async def test_fails_twice_then_succeeds(self):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("flaky")
            return "ok"

        result = await self.executor.run(operation, "flaky op")

        self.assertEqual(result, "ok")
        self.assertEqual(len(calls), 3)
        self.assertEqual(self.sleep.delays, [1.0, 2.0])

    async def test_always_fails(self):
        calls = []

        async def operation():
            calls.append(1)
            raise ValueError(f"boom {len(calls)}")

        with self.assertRaises(RetryExhaustedError) as ctx:
            await self.executor.run(operation, "doomed op")

        self.assertEqual(len(calls), 3)
        # no delay after the third attempt
        self.assertEqual(len(self.sleep.delays), 2)
        self.assertEqual(ctx.exception.attempts, 3)
        self.assertIsInstance(ctx.exception.last_error, ValueError)
        self.assertIs(ctx.exception.__cause__, ctx.exception.last_error)
        self.assertIn("doomed op failed after 3 attempts: boom 3", str(ctx.exception))

    async def test_first_try_success_does_not_sleep(self):
        async def operation():
            return 42

        self.assertEqual(await self.executor.run(operation), 42)
        self.assertEqual(self.sleep.delays, [])

    async def test_login_timeout_not_retried(self):
        calls = []

        async def operation():
            calls.append(1)
            raise LoginTimeoutError("never logged in")

        with self.assertRaises(LoginTimeoutError):
            await self.executor.run(operation, "login")

        self.assertEqual(len(calls), 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_custom_retryable_predicate(self):
        executor = RetryExecutor(self.policy, sleep=self.sleep,
                                 retryable=lambda e: not isinstance(e, KeyError))

        async def operation():
            raise KeyError("fatal")

        with self.assertRaises(KeyError):
            await executor.run(operation)

class TestRateLimiter(unittest.IsolatedAsyncioTestCase):
    """Test cases for RateLimiter"""

    def test_delay_grows_with_index(self):
        rng = FixedRandom()
        self.assertAlmostEqual(compute_rate_limit_delay(0, 2.0, 0.0, 10.0, rng), 2.0)
        self.assertAlmostEqual(compute_rate_limit_delay(100, 2.0, 0.0, 10.0, rng), 3.0)
        self.assertAlmostEqual(compute_rate_limit_delay(50, 2.0, 0.4, 10.0, FixedRandom(0.4)), 2.9)

    def test_delay_capped(self):
        self.assertEqual(compute_rate_limit_delay(10000, 1.5, 0.5, 4.0, FixedRandom(0.5)), 4.0)

    async def test_wait_sleeps_computed_delay(self):
        sleep = SleepRecorder()
        limiter = RateLimiter(ScraperConfig(min_delay=1.0, jitter_range=0.0, max_delay=5.0),
                              sleep=sleep, rng=FixedRandom())

        delay = await limiter.wait(20)

        self.assertAlmostEqual(delay, 1.1)
        self.assertEqual(sleep.delays, [delay])

if __name__ == '__main__':
    unittest.main()
