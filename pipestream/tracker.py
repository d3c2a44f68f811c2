"""Bookkeeping for items moving through a streaming pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .errors import LibError


class ItemState(enum.Enum):
    """Where an item is in its journey through the pipeline."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_PENDING = (ItemState.QUEUED, ItemState.PROCESSING)
_FINISHED = (ItemState.COMPLETED, ItemState.FAILED)


@dataclass
class _Entry:
    state: ItemState
    value: Any = None


class StreamingTracker:
    """Tracks the state of every item handed to a streaming pipeline.

    It is not synchronised; callers guard it with their own lock.
    """

    def __init__(self) -> None:
        self._next_id = 0
        self._items: Dict[int, _Entry] = {}

    def next_id(self) -> int:
        """Allocate a fresh item id."""
        item_id = self._next_id
        self._next_id += 1
        return item_id

    def queue_item(self, item_id: int) -> None:
        """Record ``item_id`` as queued."""
        self._items[item_id] = _Entry(ItemState.QUEUED)

    def _update(self, item_id: int, state: ItemState, value: Any = None) -> None:
        entry = self._items.get(item_id)
        if entry is not None:
            entry.state = state
            entry.value = value

    def start_processing(self, item_id: int) -> None:
        """Mark a known item as being processed."""
        self._update(item_id, ItemState.PROCESSING)

    def complete_item(self, item_id: int, output: Any) -> None:
        """Store the output of a known item."""
        self._update(item_id, ItemState.COMPLETED, output)

    def fail_item(self, item_id: int, error: LibError) -> None:
        """Store the error of a known item."""
        self._update(item_id, ItemState.FAILED, error)

    def take_next_completed(self) -> Optional[Tuple[int, Any]]:
        """Remove and return the oldest finished item as ``(id, output or error)``."""
        for item_id, entry in self._items.items():
            if entry.state in _FINISHED:
                del self._items[item_id]
                return item_id, entry.value
        return None

    def state_of(self, item_id: int) -> Optional[ItemState]:
        """The state of ``item_id``, or None if it is not tracked."""
        entry = self._items.get(item_id)
        return entry.state if entry is not None else None

    def has_pending(self) -> bool:
        """Whether any item is still queued or being processed."""
        return any(entry.state in _PENDING for entry in self._items.values())

    def pending_count(self) -> int:
        """Number of items still queued or being processed."""
        return sum(entry.state in _PENDING for entry in self._items.values())

    def completed_count(self) -> int:
        """Number of finished items waiting to be taken."""
        return sum(entry.state in _FINISHED for entry in self._items.values())

    def __repr__(self) -> str:
        return f"StreamingTracker(next_id={self._next_id}, items={len(self._items)})"