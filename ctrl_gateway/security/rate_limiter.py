# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Token-bucket rate limiter keyed by caller address.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RateBucket:
    tokens: float
    last_refill_ms: float


class TokenBucketRateLimiter:
    """
    Per-key token buckets with lazy refill.

    Every key gets its own lock, so refill-then-debit for one caller is a
    single critical section while different callers never contend.

    Args:
        capacity: Maximum tokens per bucket (also the initial fill)
        refill_per_second: Tokens added per elapsed second
        clock: Millisecond clock, injectable for tests
    """

    def __init__(
        self,
        capacity: float = 20.0,
        refill_per_second: float = 10.0,
        clock: Callable[[], float] = monotonic_ms
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_per_second < 0:
            raise ValueError("refill_per_second must not be negative")
        self.capacity = float(capacity)
        self.refill_per_ms = refill_per_second / 1000.0
        self._clock = clock
        self._buckets: Dict[str, RateBucket] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def allow(self, key: str, cost: float = 1.0) -> bool:
        """Refill the bucket for key, then try to debit cost tokens"""
        with self._lock_for(key):
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = RateBucket(tokens=self.capacity, last_refill_ms=now)
                self._buckets[key] = bucket
            else:
                elapsed = max(0.0, now - bucket.last_refill_ms)
                bucket.tokens = min(self.capacity, bucket.tokens + elapsed * self.refill_per_ms)
                bucket.last_refill_ms = now

            if bucket.tokens < cost:
                return False
            bucket.tokens -= cost
            return True

    def tokens(self, key: str) -> float:
        """Current token count without refilling (capacity for unseen keys)"""
        bucket = self._buckets.get(key)
        return self.capacity if bucket is None else bucket.tokens

    def __len__(self) -> int:
        return len(self._buckets)
