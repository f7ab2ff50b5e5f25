from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class RateBudget(Protocol):
    """
    Shared limit on simultaneous calls to the external service.

    Independent of the worker pool size: any number of local workers share
    one budget, so policy can be tuned without touching adapters.
    """

    def acquire(self, *, deadline: float, cancel: threading.Event | None = None) -> bool:
        """
        Block until a slot is free.

        `deadline` is a `time.monotonic()` value. Return False when the deadline
        passes or `cancel` is set before a slot becomes available.
        """
        ...

    def release(self) -> None:
        """Return a slot acquired with `acquire`."""
        ...
