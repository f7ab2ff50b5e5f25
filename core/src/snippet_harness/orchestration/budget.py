from __future__ import annotations

import threading
import time

from snippet_harness.contracts import RateBudget


class SemaphoreBudget(RateBudget):
    """
    Counting-semaphore budget with an optional minimum spacing between
    acquisitions.
    """

    def __init__(
        self,
        max_concurrent: int,
        *,
        min_interval_s: float = 0.0,
        poll_interval_s: float = 0.05,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._min_interval_s = min_interval_s
        self._poll_interval_s = poll_interval_s
        self._semaphore = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._next_start = 0.0
        self._in_use = 0
        self._peak_in_use = 0

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    @property
    def peak_in_use(self) -> int:
        with self._lock:
            return self._peak_in_use

    def acquire(self, *, deadline: float, cancel: threading.Event | None = None) -> bool:
        while True:
            if cancel is not None and cancel.is_set():
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            if self._semaphore.acquire(timeout=min(self._poll_interval_s, remaining)):
                break

        if not self._wait_for_spacing(deadline, cancel):
            self._semaphore.release()
            return False

        with self._lock:
            self._in_use += 1
            self._peak_in_use = max(self._peak_in_use, self._in_use)
        return True

    def release(self) -> None:
        with self._lock:
            if self._in_use == 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._in_use -= 1
        self._semaphore.release()

    def _wait_for_spacing(self, deadline: float, cancel: threading.Event | None) -> bool:
        if self._min_interval_s <= 0:
            return True
        with self._lock:
            start_at = max(time.monotonic(), self._next_start)
            if start_at > deadline:
                return False
            self._next_start = start_at + self._min_interval_s
        delay = start_at - time.monotonic()
        if delay <= 0:
            return True
        if cancel is None:
            time.sleep(delay)
            return True
        return not cancel.wait(delay)
