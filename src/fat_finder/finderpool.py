from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING
from typing import Any
from typing import Callable

if TYPE_CHECKING:
    from types import TracebackType

# Placed on the queue once per worker by drain()
_STOP = object()


class WorkerPool:
    """A fixed number of worker threads running submitted tasks."""

    logger = logging.getLogger(__name__)

    def __init__(self, worker_count: int = 20) -> None:
        """
        Start the workers.

        Submission is rendezvous style: submit() only returns once a worker
        is free to take the task, so the caller never runs more than
        worker_count tasks ahead of the pool.

        Args:
            worker_count: Number of worker threads. Must be at least 1.
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {worker_count}")

        self._worker_count = worker_count
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self._free_workers = threading.BoundedSemaphore(worker_count)
        self._closed = False
        self._lock = threading.Lock()

        self._threads = [
            threading.Thread(
                target=self._worker,
                name=f"fat-finder-worker-{idx}",
                daemon=True,
            )
            for idx in range(worker_count)
        ]
        for thread in self._threads:
            thread.start()

        self.logger.debug("Started %s workers", worker_count)

    @property
    def worker_count(self) -> int:
        """Number of worker threads in the pool."""
        return self._worker_count

    @property
    def closed(self) -> bool:
        """True once drain() has been called."""
        return self._closed

    def __enter__(self) -> WorkerPool:
        """Enter a context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Exit a context manager, waiting for all submitted tasks."""
        self.drain()

    def submit(self, task: Callable[..., object], *args: Any) -> None:
        """
        Hand a task to the pool, blocking until a worker is free.

        Raises:
            RuntimeError: If the pool has been drained.
        """
        if self._closed:
            raise RuntimeError("Cannot submit to a drained pool")

        self._free_workers.acquire()
        self._queue.put((task, args))

    def drain(self) -> None:
        """Stop accepting tasks and block until every submitted task is done."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        for _ in self._threads:
            self._queue.put(_STOP)

        for thread in self._threads:
            thread.join()

        self.logger.debug("All %s workers finished", self._worker_count)

    def _worker(self) -> None:
        """Thread handler: run tasks until the stop marker is received."""
        while True:
            item = self._queue.get()
            if item is _STOP:
                return

            task, args = item
            try:
                task(*args)

            except Exception:
                self.logger.exception("Unhandled error in task %r", task)

            finally:
                self._free_workers.release()
