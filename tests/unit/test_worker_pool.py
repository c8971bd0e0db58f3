"""
Unit tests for the future-returning worker pool.
"""

import queue
import threading
import time

import pytest

from httpminify.core.worker_pool import WorkerPool


class TestWorkerPool:
    """Tests for WorkerPool."""

    def test_submit_returns_future(self):
        with WorkerPool(min_workers=1, max_workers=2) as pool:
            future = pool.submit(lambda a, b: a + b, 2, b=3)
            assert future.result(timeout=2.0) == 5

    def test_exception_set_on_future(self):
        def boom():
            raise ValueError("boom")

        with WorkerPool(min_workers=1, max_workers=1) as pool:
            future = pool.submit(boom)
            with pytest.raises(ValueError):
                future.result(timeout=2.0)
        assert pool.stats["workers"] == 0

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            WorkerPool().submit(print)

    def test_submit_after_shutdown(self):
        pool = WorkerPool(min_workers=1, max_workers=1).start()
        pool.shutdown()
        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_scales_up_under_load(self):
        """Test that a blocked pool adds workers up to max_workers."""
        release = threading.Event()
        with WorkerPool(min_workers=1, max_workers=3) as pool:
            futures = [pool.submit(release.wait, 2.0)]
            deadline = time.monotonic() + 2.0
            while pool.stats["busy"] < 1 and time.monotonic() < deadline:
                time.sleep(0.01)

            futures.append(pool.submit(release.wait, 2.0))
            assert pool.stats["workers"] == 2

            release.set()
            for future in futures:
                assert future.result(timeout=3.0) is True

    def test_bounded_queue(self):
        """Test that a full queue rejects new work."""
        release = threading.Event()
        pool = WorkerPool(min_workers=1, max_workers=1, max_queue=1).start()
        try:
            pool.submit(release.wait, 2.0)
            with pytest.raises(queue.Full):
                for _ in range(3):
                    pool.submit(release.wait, 2.0)
        finally:
            release.set()
            pool.shutdown()

    def test_cancelled_task_is_skipped(self):
        """Test that a task cancelled while queued never runs."""
        release = threading.Event()
        ran = []
        with WorkerPool(min_workers=1, max_workers=1) as pool:
            pool.submit(release.wait, 2.0)
            queued = pool.submit(ran.append, "x")
            assert queued.cancel()
            release.set()
        assert ran == []

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            WorkerPool(min_workers=0)
        with pytest.raises(ValueError):
            WorkerPool(min_workers=4, max_workers=2)
