"""
=============================================================================
WORKER THREAD POOL
=============================================================================

A bounded pool of worker threads pulling connections from a shared queue.
The accept loop never runs request code itself; it submits each accepted
connection here and goes straight back to accept().

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──►  [conn][conn][conn]   bounded queue      │
    │                                   │                                  │
    │                                   │ get()                            │
    │                                   ▼                                  │
    │               Worker-0   Worker-1   Worker-2   Worker-3   ...        │
    │                                                                      │
    │   min_workers start with the pool; one more is added whenever       │
    │   every worker is busy and work is queued, up to max_workers.       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

When the queue is full submit(block=False) returns False and the server
answers 503 Service Unavailable instead of letting the backlog grow.

Shutdown uses poison pills: one None per worker goes into the queue and a
worker that dequeues None exits.

Every worker may call into the shared KeyValueStore at the same time; the
store's lock is what keeps that safe, not the pool.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any, Dict
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Daemon thread running tasks until it receives the poison pill.

    A task that raises is logged and counted; the worker keeps going.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"kvserver-worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._stop_event = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._stop_event.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} finished task in {time.time() - start_time:.3f}s"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(f"Worker {self.worker_id} task failed: {e}")
        finally:
            self.state = WorkerState.IDLE

    def stop(self):
        """Ask the worker to exit after its current task."""
        self._stop_event.set()


class ThreadPool:
    """
    Fixed-minimum, bounded-maximum pool of Worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=8)
        pool.start()
        if not pool.submit(handle, args=(conn,), block=False):
            ...  # queue full, reject
        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 8,
        queue_size: int = 100,
        idle_timeout: float = 1.0,
    ):
        """
        Args:
            min_workers: Workers started by start() and kept for the pool's life.
            max_workers: Upper bound reached by scaling up under load.
            queue_size: Tasks that may wait for a worker before submit() fails.
            idle_timeout: How often an idle worker checks for stop().
        """
        if min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # guards _workers and _next_worker_id
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def start(self):
        """Start min_workers threads. Calling it twice is a no-op."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker_locked()
        self._started = True

    def _add_worker_locked(self) -> Worker:
        # caller holds self._lock
        worker = Worker(self._task_queue, self._next_worker_id, self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            logger.warning("Task queue full, rejecting task")
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            count = len(self._workers)
            if count >= self.max_workers:
                return

            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == count and not self._task_queue.empty():
                logger.debug(f"Scaling up: {count} -> {count + 1} workers")
                self._add_worker_locked()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued tasks finish before the workers exit.
            timeout: Upper bound in seconds on the drain and on each join.
        """
        if not self._started or self._shutdown:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while self._task_queue.unfinished_tasks:
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, abandoning queued tasks")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)

        for worker in workers:
            worker.stop()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # the stop event still ends the worker

        for worker in workers:
            worker.join(timeout=timeout)

        with self._lock:
            self._workers.clear()

        logger.info("Thread pool stopped")

    @property
    def stats(self) -> Dict[str, Any]:
        """Worker and queue counters for monitoring."""
        with self._lock:
            workers = list(self._workers)

        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state == WorkerState.IDLE),
            },
            "queue": {
                "size": self._task_queue.qsize(),
                "max_size": self.queue_size,
            },
            "tasks": {
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False
