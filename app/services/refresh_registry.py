"""Used refresh-token registry.

Rotation alone leaves the previous refresh token valid until it expires.
Each refresh token's jti is remembered here once it has been exchanged (or
presented at logout) and a second presentation is refused. Entries are kept
only until the token's own exp, after which signature verification rejects
it anyway. Process-local: with several workers, each worker has its own set.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol


class RefreshTokenRegistry(Protocol):
    def mark_used(self, jti: str, expires_at: datetime) -> bool:
        """Record jti as used. Returns False if it was already recorded."""
        ...

    def is_used(self, jti: str) -> bool: ...


class InMemoryRefreshTokenRegistry:
    """Thread-safe jti set with expiry-based pruning."""

    def __init__(self, clock: Callable[[], datetime] | None = None, prune_every: int = 256) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._used: dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._prune_every = prune_every
        self._writes = 0

    def mark_used(self, jti: str, expires_at: datetime) -> bool:
        with self._lock:
            now = self._clock()
            existing = self._used.get(jti)
            if existing is not None and existing > now:
                return False
            self._used[jti] = expires_at
            self._writes += 1
            if self._writes % self._prune_every == 0:
                self._prune(now)
            return True

    def is_used(self, jti: str) -> bool:
        with self._lock:
            expires_at = self._used.get(jti)
            return expires_at is not None and expires_at > self._clock()

    def cleanup(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            return self._prune(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._used)

    def _prune(self, now: datetime) -> int:
        expired = [jti for jti, exp in self._used.items() if exp <= now]
        for jti in expired:
            del self._used[jti]
        return len(expired)
