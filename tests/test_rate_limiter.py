from __future__ import annotations

import unittest

from opp_match import FixedWindowRateLimiter, InvalidArgumentError, RateLimitRule


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


class FixedWindowRateLimiterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.limiter = FixedWindowRateLimiter(clock=self.clock)

    def test_chat_limit_and_window_reset(self) -> None:
        decisions = [self.limiter.check("client-a", "chat") for _ in range(10)]
        rejected = self.limiter.check("client-a", "chat")

        self.assertTrue(all(decision.allowed for decision in decisions))
        self.assertEqual(decisions[0].remaining, 9)
        self.assertEqual(decisions[-1].remaining, 0)
        self.assertFalse(rejected.allowed)
        self.assertEqual(rejected.remaining, 0)
        self.assertEqual(rejected.reset_at, 560.0)

        self.clock.now += 59.9
        self.assertFalse(self.limiter.check("client-a", "chat").allowed)

        self.clock.now = 560.0
        accepted = self.limiter.check("client-a", "chat")
        self.assertTrue(accepted.allowed)
        self.assertEqual(accepted.remaining, 9)
        self.assertEqual(accepted.reset_at, 620.0)

    def test_clients_and_endpoint_classes_are_independent(self) -> None:
        for _ in range(10):
            self.limiter.check("client-a", "chat")

        self.assertTrue(self.limiter.check("client-b", "chat").allowed)
        self.assertTrue(self.limiter.check("client-a").allowed)
        self.assertEqual(self.limiter.check("client-a", "search").remaining, 59)

    def test_reset(self) -> None:
        for _ in range(10):
            self.limiter.check("client-a", "chat")
            self.limiter.check("client-b", "chat")

        self.limiter.reset("client-a")
        self.assertTrue(self.limiter.check("client-a", "chat").allowed)
        self.assertFalse(self.limiter.check("client-b", "chat").allowed)

        self.limiter.reset()
        self.assertTrue(self.limiter.check("client-b", "chat").allowed)

    def test_expired_windows_are_pruned(self) -> None:
        for index in range(200):
            self.limiter.check(f"client-{index}", "chat")
        self.limiter.check("client-0", "search")
        self.assertEqual(self.limiter.active_windows(), 201)

        self.clock.now += 30.0
        self.limiter.check("late", "chat")
        self.assertEqual(self.limiter.active_windows(), 202)

        self.clock.now += 31.0
        self.limiter.check("late", "chat")
        self.assertEqual(self.limiter.active_windows(), 1)

        self.clock.now += 60.0
        self.limiter.check("newcomer", "search")
        self.assertEqual(self.limiter.active_windows(), 1)

    def test_custom_rules(self) -> None:
        limiter = FixedWindowRateLimiter({"upload": RateLimitRule(1, 5.0)}, clock=self.clock)
        self.assertTrue(limiter.check("c", "upload").allowed)
        self.assertFalse(limiter.check("c", "upload").allowed)

        with self.assertRaises(InvalidArgumentError):
            RateLimitRule(0, 60.0)
        with self.assertRaises(InvalidArgumentError):
            RateLimitRule(10, 0)


if __name__ == "__main__":
    unittest.main()
