"""Pipeline stages: a component, its worker pool and optional object pools."""

from __future__ import annotations

import abc
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar

from .errors import LibError
from .pool import ObjectPool, PooledObject
from .worker import WorkerPool

K = TypeVar("K")


class StageImpl(abc.ABC):
    """The processing logic of a stage."""

    @abc.abstractmethod
    def process(self, input: Any) -> Any:
        """Turn one input into one output, raising a LibError on failure."""

    def name(self) -> str:
        """A human-readable name; the class name by default."""
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class StageConfig:
    """Tuning knobs for a stage."""

    workers: int = field(default_factory=_default_workers)
    batch_size: int = 100
    input_pool_size: int = 1000
    output_pool_size: int = 1000
    max_queue_size: int = 10000
    backpressure_threshold: float = 0.8
    timeout: Optional[float] = None


@dataclass(frozen=True)
class StageInfo:
    """A snapshot of a stage's load and pools."""

    active_jobs: int
    queue_capacity: int
    worker_count: int
    input_pool_available: int
    output_pool_available: int


class Stage:
    """A component run by its own pool of worker threads."""

    def __init__(self, component: Any, config: Optional[StageConfig] = None) -> None:
        self.component = component
        self.config = config if config is not None else StageConfig()
        self._worker_pool = WorkerPool(self.config.workers)
        self._input_pool: Optional[ObjectPool] = None
        self._output_pool: Optional[ObjectPool] = None

    def with_input_pool(self, create_fn: Callable[[], Any]) -> "Stage":
        """Attach a pool of reusable input objects; returns the stage."""
        size = self.config.input_pool_size
        self._input_pool = ObjectPool(size // 4, size, create_fn)
        return self

    def with_output_pool(self, create_fn: Callable[[], Any]) -> "Stage":
        """Attach a pool of reusable output objects; returns the stage."""
        size = self.config.output_pool_size
        self._output_pool = ObjectPool(size // 4, size, create_fn)
        return self

    def process(self, input: Any) -> Any:
        """Process a single input on the calling thread."""
        return self.component.process(input)

    def _overloaded(self) -> bool:
        load = self._worker_pool.active_jobs / self._worker_pool.queue_capacity
        return load > self.config.backpressure_threshold

    def process_batch(self, inputs: Iterable[Tuple[K, Any]]) -> List[Tuple[K, Any]]:
        """Process ``(key, input)`` pairs, in parallel unless the stage is overloaded.

        Each outcome is the output or the LibError raised for that input.
        """
        batch = list(inputs)
        if self._overloaded():
            results = []
            for key, item in batch:
                try:
                    results.append((key, self.process(item)))
                except LibError as exc:
                    results.append((key, exc))
            return results

        results = self._worker_pool.process_batch(
            self.component, ((idx, item) for idx, (_, item) in enumerate(batch))
        )
        return [(batch[idx][0], outcome) for idx, outcome in results]

    def get_input(self) -> Optional[PooledObject]:
        """Borrow an object from the input pool, or None if there is none."""
        return self._input_pool.get() if self._input_pool is not None else None

    def get_output(self) -> Optional[PooledObject]:
        """Borrow an object from the output pool, or None if there is none."""
        return self._output_pool.get() if self._output_pool is not None else None

    def info(self) -> StageInfo:
        """Report the stage's current load and pool levels."""
        return StageInfo(
            active_jobs=self._worker_pool.active_jobs,
            queue_capacity=self._worker_pool.queue_capacity,
            worker_count=self.config.workers,
            input_pool_available=self._input_pool.available if self._input_pool else 0,
            output_pool_available=self._output_pool.available if self._output_pool else 0,
        )

    def shutdown(self) -> None:
        """Stop the stage's worker threads."""
        self._worker_pool.shutdown()

    def __enter__(self) -> "Stage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"Stage(component={self.component!r}, config={self.config!r})"