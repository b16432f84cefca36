"""
Concurrency gate bounding the number of running jobs.
"""

import threading


class ConcurrencyGate:
    """
    Counter with 0 <= running <= capacity.

    try_acquire() checks and increments in one step; callers that fail to
    acquire must not start anything. There is no waiting queue.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")

        self.capacity = capacity
        self._running = 0
        self._lock = threading.Lock()

    @property
    def running(self) -> int:
        return self._running

    @property
    def available(self) -> int:
        return self.capacity - self._running

    def try_acquire(self) -> bool:
        """
        Claim a slot.

        Returns:
            True if a slot was claimed, False if the gate is full
        """
        with self._lock:
            if self._running >= self.capacity:
                return False
            self._running += 1
            return True

    def release(self) -> None:
        """Give back a slot claimed by try_acquire()."""
        with self._lock:
            if self._running == 0:
                raise RuntimeError("release() without a matching try_acquire()")
            self._running -= 1
