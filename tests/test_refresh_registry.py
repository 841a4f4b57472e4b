"""Unit tests for app.services.refresh_registry: one-time use of refresh token ids."""

import unittest
from datetime import UTC, datetime, timedelta

from app.services.refresh_registry import InMemoryRefreshTokenRegistry


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


class TestMarkUsed(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.registry = InMemoryRefreshTokenRegistry(clock=self.clock)
        self.expires = self.clock.now + timedelta(days=7)

    def test_first_use_accepted_second_refused(self) -> None:
        self.assertTrue(self.registry.mark_used("jti-1", self.expires))
        self.assertFalse(self.registry.mark_used("jti-1", self.expires))
        self.assertTrue(self.registry.is_used("jti-1"))

    def test_distinct_ids_independent(self) -> None:
        self.assertTrue(self.registry.mark_used("jti-1", self.expires))
        self.assertTrue(self.registry.mark_used("jti-2", self.expires))
        self.assertFalse(self.registry.is_used("jti-3"))

    def test_entry_forgotten_after_token_expiry(self) -> None:
        self.registry.mark_used("jti-1", self.clock.now + timedelta(minutes=1))
        self.clock.now += timedelta(minutes=2)
        self.assertFalse(self.registry.is_used("jti-1"))
        self.assertEqual(self.registry.cleanup(), 1)
        self.assertEqual(len(self.registry), 0)

    def test_periodic_prune(self) -> None:
        registry = InMemoryRefreshTokenRegistry(clock=self.clock, prune_every=2)
        registry.mark_used("old", self.clock.now + timedelta(seconds=1))
        self.clock.now += timedelta(seconds=5)
        registry.mark_used("new", self.clock.now + timedelta(days=1))
        self.assertEqual(len(registry), 1)
        self.assertTrue(registry.is_used("new"))


if __name__ == "__main__":
    unittest.main()
