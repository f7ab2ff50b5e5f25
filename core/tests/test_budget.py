import threading
import time

import pytest

from snippet_harness.orchestration import SemaphoreBudget


def test_acquire_blocks_until_release():
    budget = SemaphoreBudget(1)
    assert budget.acquire(deadline=time.monotonic() + 1)

    assert not budget.acquire(deadline=time.monotonic() + 0.2)

    budget.release()
    assert budget.acquire(deadline=time.monotonic() + 1)
    budget.release()


def test_cancel_interrupts_waiting_acquire():
    budget = SemaphoreBudget(1)
    budget.acquire(deadline=time.monotonic() + 1)
    cancel = threading.Event()
    threading.Timer(0.2, cancel.set).start()
    started = time.monotonic()

    acquired = budget.acquire(deadline=time.monotonic() + 30, cancel=cancel)

    assert not acquired
    assert time.monotonic() - started < 5
    budget.release()


def test_concurrency_never_exceeds_limit():
    budget = SemaphoreBudget(2)
    barrier = threading.Barrier(6)

    def worker():
        barrier.wait()
        assert budget.acquire(deadline=time.monotonic() + 10)
        time.sleep(0.05)
        budget.release()

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert budget.peak_in_use <= 2
    assert budget.in_use == 0


def test_min_interval_spaces_acquisitions():
    budget = SemaphoreBudget(4, min_interval_s=0.2)
    started = time.monotonic()

    for _ in range(3):
        assert budget.acquire(deadline=time.monotonic() + 5)

    assert time.monotonic() - started >= 0.35
    for _ in range(3):
        budget.release()


def test_release_without_acquire_raises():
    with pytest.raises(RuntimeError, match="without a matching acquire"):
        SemaphoreBudget(1).release()


def test_invalid_limit_is_rejected():
    with pytest.raises(ValueError):
        SemaphoreBudget(0)
