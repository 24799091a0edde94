"""Bounded per-network fee history."""

import threading
from collections import deque

from gas_tracker.exceptions import ConfigError
from gas_tracker.models import FeeSample


class RetentionRing:
    """Fixed-capacity, append-only sequence of FeeSample in arrival order.

    Appending the (capacity + 1)-th sample evicts the oldest. Samples are never
    reordered by timestamp. A lock makes each append atomic with respect to
    snapshot() so readers never see a ring mid-eviction.

    Args:
        capacity: Maximum number of retained samples. Fixed for the ring's
            lifetime; a new retention policy needs a new ring.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ConfigError(f"retention capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._samples: deque[FeeSample] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, sample: FeeSample) -> None:
        with self._lock:
            self._samples.append(sample)

    def snapshot(self) -> tuple[FeeSample, ...]:
        """Return an immutable copy of all retained samples, oldest first."""
        with self._lock:
            return tuple(self._samples)

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
