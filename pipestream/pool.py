"""Thread-safe pools of reusable objects."""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Generic, Optional, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Resettable(Protocol):
    """An object that can be restored to its initial state."""

    def reset(self) -> None:
        """Restore the object to its initial state."""


def _call_reset(obj) -> None:
    obj.reset()


class ObjectPool(Generic[T]):
    """A bounded pool that hands out reusable objects, creating them on demand."""

    def __init__(self, initial_capacity: int, max_size: int, create_fn: Callable[[], T]) -> None:
        if initial_capacity > max_size:
            raise ValueError("initial_capacity must be <= max_size")
        self._create = create_fn
        self._max_size = max_size
        self._lock = threading.Lock()
        self._objects: deque = deque(create_fn() for _ in range(initial_capacity))

    @property
    def available(self) -> int:
        """Number of objects currently waiting in the pool."""
        with self._lock:
            return len(self._objects)

    @property
    def max_size(self) -> int:
        """Largest number of objects the pool will hold."""
        return self._max_size

    def _take(self) -> Optional[T]:
        with self._lock:
            return self._objects.popleft() if self._objects else None

    def _acquire(self) -> T:
        obj = self._take()
        return self._create() if obj is None else obj

    def _put(self, obj: T) -> bool:
        with self._lock:
            if len(self._objects) >= self._max_size:
                return False
            self._objects.append(obj)
            return True

    def get(self) -> PooledObject[T]:
        """Take an object from the pool, creating one if the pool is empty."""
        return PooledObject(self._acquire(), self)

    def try_get(self) -> Optional[PooledObject[T]]:
        """Take an object from the pool, or return None if it is empty."""
        obj = self._take()
        return None if obj is None else PooledObject(obj, self)

    def get_resettable(self) -> ResettablePooledObject[T]:
        """Take an object that is reset before it goes back to the pool."""
        return ResettablePooledObject(self._acquire(), self)

    def clear(self) -> None:
        """Drop every object held by the pool."""
        with self._lock:
            self._objects.clear()

    def live_objects_count(self) -> int:
        """Approximate number of objects handed out: max_size minus available."""
        return self._max_size - self.available

    def ensure_min_capacity(self, target_size: int) -> int:
        """Fill the pool up to ``target_size`` (capped at max_size); return how many were added."""
        target_size = min(target_size, self._max_size)
        added = 0
        while self.available < target_size:
            if not self._put(self._create()):
                break
            added += 1
        return added

    def __repr__(self) -> str:
        return f"ObjectPool(available={self.available}, max_size={self._max_size})"


class PooledObject(Generic[T]):
    """A borrowed pool object that goes back to its pool when released.

    Use it as a context manager, or call :meth:`release` explicitly.
    """

    def __init__(self, obj: T, pool: ObjectPool[T]) -> None:
        self._object = obj
        self._pool = pool
        self._released = False

    @property
    def value(self) -> T:
        """The borrowed object."""
        if self._released:
            raise RuntimeError("Object has been taken")
        return self._object

    def _prepare_return(self, obj: T) -> None:
        pass

    def release(self) -> None:
        """Give the object back to the pool unless the pool is full. Idempotent."""
        if self._released:
            return
        self._released = True
        obj = self._object
        self._object = None
        self._prepare_return(obj)
        self._pool._put(obj)

    def __enter__(self) -> T:
        return self.value

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        try:
            self.release()
        except Exception:
            pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(object={self._object!r})"


class ResettablePooledObject(PooledObject[T]):
    """A borrowed pool object that is reset before it goes back to the pool."""

    def __init__(
        self,
        obj: T,
        pool: ObjectPool[T],
        reset: Callable[[T], None] = _call_reset,
    ) -> None:
        self._reset = reset
        super().__init__(obj, pool)

    def _prepare_return(self, obj: T) -> None:
        self._reset(obj)

    def release(self) -> None:
        """Reset the object and give it back to the pool unless the pool is full."""
        super().release()


class BufferPool:
    """A pool of byte buffers that are emptied before reuse."""

    def __init__(self, initial_capacity: int, buffer_size: int, max_size: int) -> None:
        self.buffer_size = buffer_size
        self._pool: ObjectPool[bytearray] = ObjectPool(initial_capacity, max_size, bytearray)

    @property
    def available(self) -> int:
        """Number of buffers waiting in the pool."""
        return self._pool.available

    @property
    def max_size(self) -> int:
        """Largest number of buffers the pool will hold."""
        return self._pool.max_size

    def get(self) -> ResettablePooledObject[bytearray]:
        """Take a buffer, creating one if the pool is empty."""
        return ResettablePooledObject(self._pool._acquire(), self._pool, bytearray.clear)

    def try_get(self) -> Optional[ResettablePooledObject[bytearray]]:
        """Take a buffer, or return None if the pool is empty."""
        buf = self._pool._take()
        if buf is None:
            return None
        return ResettablePooledObject(buf, self._pool, bytearray.clear)

    def __repr__(self) -> str:
        return f"BufferPool(pool={self._pool!r})"