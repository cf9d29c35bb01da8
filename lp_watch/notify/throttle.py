from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Sequence


class Throttle:
    """
    Sliding-window rate limiter shared by every sender of one destination.

    ``limits`` is a sequence of ``(max_requests, per_seconds)`` windows, all of
    which must hold. Callers reserve the earliest free slot under the lock and
    then sleep until it, so concurrent senders are throttled in aggregate and
    released in reservation order.
    """

    def __init__(
        self,
        limits: Sequence[tuple[int, float]],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.limits = [(int(n), float(per)) for n, per in limits if n > 0]
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._sent: list[deque[float]] = [deque() for _ in self.limits]
        self._last: float | None = None

    def reserve(self) -> float:
        """Book the next slot and return how long the caller must wait for it."""
        with self._lock:
            now = self._clock()
            at = now if self._last is None else max(now, self._last)
            for (max_requests, per), sent in zip(self.limits, self._sent):
                while sent and now - sent[0] >= per:
                    sent.popleft()
                if len(sent) >= max_requests:
                    at = max(at, sent[-max_requests] + per)
            for sent in self._sent:
                sent.append(at)
            self._last = at
            return at - now

    def acquire(self) -> float:
        delay = self.reserve()
        if delay > 0:
            self._sleep(delay)
        return delay
