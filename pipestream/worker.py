"""Thread pools that run stage components over batches of inputs.

A batch result is a list of ``(key, outcome)`` pairs.  The outcome is the
component's output, or the :class:`~pipestream.errors.LibError` that stopped
it.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Generic, Iterable, List, Tuple, TypeVar

from .errors import LibError, ProcessingError, ProcessingErrorKind, WorkerPanicError

K = TypeVar("K")

_STOP = object()


def _run(component: Any, item: Any) -> Any:
    """Run one job, turning any failure into an error outcome."""
    try:
        return component.process(item)
    except LibError as exc:
        return exc
    except Exception as exc:  # a crash in user code must not kill the worker
        return WorkerPanicError(f"{type(exc).__name__}: {exc}")


def _worker_loop(jobs: queue.Queue) -> None:
    while True:
        job = jobs.get()
        if job is _STOP:
            break
        component, idx, item, results = job
        results.put((idx, _run(component, item)))


class WorkerPool:
    """A fixed set of worker threads fed from a bounded job queue."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("a worker pool needs at least one worker")
        self._size = size
        self._capacity = size * 4
        self._jobs: queue.Queue = queue.Queue(maxsize=self._capacity)
        self._lock = threading.Lock()
        self._active = 0
        self._closed = False
        self._threads = [
            threading.Thread(
                target=_worker_loop,
                args=(self._jobs,),
                name=f"pipestream-worker-{worker_id}",
                daemon=True,
            )
            for worker_id in range(size)
        ]
        for thread in self._threads:
            thread.start()

    @property
    def size(self) -> int:
        """Number of worker threads."""
        return self._size

    @property
    def active_jobs(self) -> int:
        """Number of jobs submitted and not yet collected."""
        with self._lock:
            return self._active

    @property
    def queue_capacity(self) -> int:
        """Capacity of the job queue."""
        return self._capacity

    def process_batch(self, component: Any, inputs: Iterable[Tuple[int, Any]]) -> List[Tuple[int, Any]]:
        """Run ``component`` over ``(index, input)`` pairs; return results sorted by index."""
        if self._closed:
            raise ProcessingError(ProcessingErrorKind.POOL, "worker pool is shut down")
        batch = list(inputs)
        results_queue: queue.SimpleQueue = queue.SimpleQueue()
        with self._lock:
            self._active += len(batch)
        try:
            for idx, item in batch:
                self._jobs.put((component, idx, item, results_queue))
            results = [results_queue.get() for _ in batch]
        finally:
            with self._lock:
                self._active -= len(batch)
        results.sort(key=lambda pair: pair[0])
        return results

    def shutdown(self) -> None:
        """Stop the workers and wait for them to exit. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for _ in self._threads:
            self._jobs.put(_STOP)
        for thread in self._threads:
            thread.join()

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"WorkerPool(size={self._size}, queue_capacity={self._capacity})"


class WorkerParallelExecutor(Generic[K]):
    """Runs one component over batches keyed by arbitrary identifiers."""

    def __init__(self, component: Any, num_workers: int) -> None:
        self.component = component
        self._pool = WorkerPool(num_workers)

    @property
    def worker_count(self) -> int:
        """Number of worker threads."""
        return self._pool.size

    @property
    def active_jobs(self) -> int:
        """Number of jobs in flight."""
        return self._pool.active_jobs

    @property
    def queue_capacity(self) -> int:
        """Capacity of the job queue."""
        return self._pool.queue_capacity

    def process_batch(self, inputs: Iterable[Tuple[K, Any]]) -> List[Tuple[K, Any]]:
        """Process ``(key, input)`` pairs in parallel, keeping their order."""
        batch = list(inputs)
        results = self._pool.process_batch(
            self.component, ((idx, item) for idx, (_, item) in enumerate(batch))
        )
        return [(batch[idx][0], outcome) for idx, outcome in results]

    def shutdown(self) -> None:
        """Stop the worker threads."""
        self._pool.shutdown()

    def __enter__(self) -> "WorkerParallelExecutor[K]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()