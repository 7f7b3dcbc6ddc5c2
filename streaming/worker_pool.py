from __future__ import annotations

import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, List, Optional, Tuple

from common.config import yaml_config
from common.errors import PoolSaturatedError, ValidationError
from common.logger import get_logger

log = get_logger(__name__)

_POLL_SECONDS = 0.25

_WorkItem = Tuple[Future, Callable[..., Any], tuple, dict]


class BoundedWorkerPool:
    """
    Thread pool for long generation work with a bounded FIFO queue.

    - min_workers threads are kept alive; up to max_workers run while there is
      a backlog, and the extra ones retire after keep_alive seconds idle.
    - A full queue rejects new work with PoolSaturatedError (backpressure).
    - A BoundedSemaphore gates execution at max_workers concurrent tasks.
    """

    def __init__(
        self,
        min_workers: Optional[int] = None,
        max_workers: Optional[int] = None,
        queue_capacity: Optional[int] = None,
        keep_alive: Optional[float] = None,
        name: str = "stream-worker",
    ):
        cfg = yaml_config.streaming
        self.min_workers = cfg.min_workers if min_workers is None else min_workers
        self.max_workers = cfg.max_workers if max_workers is None else max_workers
        self.queue_capacity = cfg.queue_capacity if queue_capacity is None else queue_capacity
        self.keep_alive = cfg.keep_alive_seconds if keep_alive is None else keep_alive
        if self.min_workers < 0 or self.max_workers < 1 or self.max_workers < self.min_workers:
            raise ValidationError(
                f"Invalid worker bounds min={self.min_workers} max={self.max_workers}"
            )
        if self.queue_capacity < 1:
            raise ValidationError(f"queue_capacity must be >= 1, got {self.queue_capacity}")

        self.name = name
        self._queue: "queue.Queue[_WorkItem]" = queue.Queue(maxsize=self.queue_capacity)
        self._admission = threading.BoundedSemaphore(self.max_workers)
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._idle = 0
        self._pending = 0  # submitted, not yet picked up by a worker
        self._running = 0
        self._counter = 0
        self._shutdown = threading.Event()

    # --- public API ---
    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        if self._shutdown.is_set():
            raise RuntimeError("cannot schedule new work after shutdown")
        future: Future = Future()
        with self._lock:
            self._pending += 1
        try:
            self._queue.put_nowait((future, fn, args, kwargs))
        except queue.Full:
            with self._lock:
                self._pending -= 1
            log.warning(
                "%s queue full (capacity=%d, running=%d), rejecting task",
                self.name,
                self.queue_capacity,
                self._running,
            )
            raise PoolSaturatedError(
                f"Generation queue is full ({self.queue_capacity} waiting)"
            ) from None
        self._maybe_spawn()
        return future

    @property
    def running(self) -> int:
        with self._lock:
            return self._running

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    @property
    def worker_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; queued tasks are still drained."""
        self._shutdown.set()
        if wait:
            with self._lock:
                threads = list(self._threads)
            for t in threads:
                t.join()

    def __enter__(self) -> "BoundedWorkerPool":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown(wait=True)

    # --- internals ---
    def _maybe_spawn(self) -> None:
        with self._lock:
            count = len(self._threads)
            backlog = self._pending > self._idle
            if count < self.min_workers or (backlog and count < self.max_workers):
                self._counter += 1
                t = threading.Thread(
                    target=self._work,
                    name=f"{self.name}-{self._counter}",
                    daemon=True,
                )
                self._threads.append(t)
                self._idle += 1
                t.start()

    def _retire(self, idle_for: float) -> bool:
        with self._lock:
            if self._pending:
                return False
            surplus = len(self._threads) > self.min_workers and idle_for >= self.keep_alive
            if self._shutdown.is_set() or surplus:
                self._threads.remove(threading.current_thread())
                self._idle -= 1
                return True
            return False

    def _work(self) -> None:
        idle_since = time.monotonic()
        while True:
            try:
                future, fn, args, kwargs = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                if self._retire(time.monotonic() - idle_since):
                    return
                continue

            with self._lock:
                self._idle -= 1
                self._pending -= 1
                self._running += 1
            try:
                if future.set_running_or_notify_cancel():
                    with self._admission:
                        try:
                            future.set_result(fn(*args, **kwargs))
                        except BaseException as e:
                            log.error("%s task failed: %s", self.name, e, exc_info=True)
                            future.set_exception(e)
            finally:
                with self._lock:
                    self._running -= 1
                    self._idle += 1
                self._queue.task_done()
                idle_since = time.monotonic()
