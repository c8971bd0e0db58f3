"""
=============================================================================
WORKER POOL
=============================================================================

A small thread pool whose submit() hands back a ``concurrent.futures.Future``.
Two users:

    HTTPServer          one task per accepted connection
    TransformDispatcher backend calls, when a stage timeout is configured:
                        the request thread waits on future.result(timeout)
                        instead of calling the backend directly

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         WorkerPool                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(func, *args) ──► Task(func, args, future) ──► queue        │
    │          │                                               │           │
    │          └── returns future                              │ get()     │
    │                                                          ▼           │
    │                                     ┌────────┐ ┌────────┐ ┌────────┐ │
    │                                     │Worker 1│ │Worker 2│ │Worker n│ │
    │                                     └───┬────┘ └────────┘ └────────┘ │
    │                                         │                            │
    │                           future.set_result(func(*args))             │
    │                        or future.set_exception(error)                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Workers are daemon threads started at min_workers and added up to
max_workers while every worker is busy and tasks are waiting. Shutdown
uses the poison-pill pattern: one None per worker.

A task whose future was cancelled before a worker picked it up is skipped.
A task that is already running when its waiter gives up keeps running to
completion; Python threads can't be interrupted.

=============================================================================
"""

import logging
import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call and the future that receives its outcome."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    future: Future = field(default_factory=Future)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """Pulls tasks off the shared queue until it receives a poison pill."""

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int, name_prefix: str):
        super().__init__(name=f"{name_prefix}-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"{self.name} started")

        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"{self.name} stopped")

    def _execute(self, task: Task):
        # Waiter already gave up and cancelled
        if not task.future.set_running_or_notify_cancel():
            return

        self.state = WorkerState.BUSY
        start_time = time.monotonic()
        try:
            result = task.func(*task.args, **task.kwargs)
        except BaseException as e:
            task.future.set_exception(e)
            self.tasks_failed += 1
            logger.debug(
                f"{self.name} task failed after {time.monotonic() - start_time:.3f}s: {e}"
            )
        else:
            task.future.set_result(result)
            self.tasks_completed += 1
        finally:
            self.state = WorkerState.IDLE


class WorkerPool:
    """
    Thread pool returning futures.

    Usage:
        pool = WorkerPool(min_workers=2, max_workers=8)
        pool.start()

        future = pool.submit(sass.compile, string=source)
        css = future.result(timeout=5.0)

        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 2,
        max_workers: int = 8,
        max_queue: int = 0,
        name: str = "Worker",
    ):
        """
        Args:
            min_workers: Threads started up front.
            max_workers: Upper bound when scaling up under load.
            max_queue: Queue capacity, 0 for unbounded.
            name: Thread name prefix (shows up in logs).
        """
        if min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.name = name

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=max_queue)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._next_worker_id = 0
        self._started = False
        self._shutdown = False

    def start(self) -> "WorkerPool":
        with self._lock:
            if self._started:
                return self
            for _ in range(self.min_workers):
                self._add_worker()
            self._started = True
        logger.debug(f"Started {self.name} pool with {self.min_workers} workers")
        return self

    def _add_worker(self) -> Worker:
        # Caller holds self._lock
        worker = Worker(self._task_queue, self._next_worker_id, self.name)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Schedule ``func(*args, **kwargs)``.

        Returns:
            A Future for the call's result.

        Raises:
            RuntimeError: Pool not started or shutting down.
            queue.Full: Bounded queue is full.
        """
        if self._shutdown:
            raise RuntimeError(f"{self.name} pool is shutting down")
        if not self._started:
            raise RuntimeError(f"{self.name} pool not started")

        task = Task(func=func, args=args, kwargs=kwargs)
        self._task_queue.put_nowait(task)
        self._maybe_scale_up()
        return task.future

    def _maybe_scale_up(self):
        with self._lock:
            busy = sum(1 for w in self._workers if w.state is WorkerState.BUSY)
            if (
                busy == len(self._workers)
                and len(self._workers) < self.max_workers
                and self._task_queue.qsize() > 0
            ):
                logger.debug(
                    f"Scaling {self.name} pool: {len(self._workers)} -> {len(self._workers) + 1}"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued tasks finish first.
            timeout: Give up waiting for the queue after this many seconds.
        """
        with self._lock:
            if not self._started or self._shutdown:
                return
            self._shutdown = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning(f"{self.name} pool shutdown timed out, abandoning tasks")
                    break
                time.sleep(0.05)

        for _ in self._workers:
            self._task_queue.put(None)
        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.debug(f"{self.name} pool stopped")

    @property
    def stats(self) -> dict:
        """Worker and task counts for health checks and tests."""
        return {
            "workers": len(self._workers),
            "busy": sum(1 for w in self._workers if w.state is WorkerState.BUSY),
            "queued": self._task_queue.qsize(),
            "completed": sum(w.tasks_completed for w in self._workers),
            "failed": sum(w.tasks_failed for w in self._workers),
        }

    def __enter__(self) -> "WorkerPool":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True, timeout=5.0)
