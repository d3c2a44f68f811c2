"""Streaming front end: feed inputs continuously and collect results as they finish."""

from __future__ import annotations

import queue
import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import (
    LibError,
    ProcessingError,
    ProcessingErrorKind,
    WorkerPanicError,
    component_error,
)
from .tracker import StreamingTracker

_BATCH_SIZE = 32
_POLL_INTERVAL = 0.1
_PRODUCER_POLL = 0.01
_END = object()
_MISSING = object()
_SINGLE = object()


class InputProcessor:
    """Queues inputs, runs them through a pipeline in batches and tracks their state.

    A background thread gathers up to 32 queued inputs at a time and hands
    them to the pipeline's ``process_batch``.
    """

    def __init__(self, pipeline: Any) -> None:
        self.pipeline = pipeline
        self._inputs: queue.Queue = queue.Queue()
        self._tracker = StreamingTracker()
        self._cond = threading.Condition()
        self._running = threading.Event()
        self._running.set()
        self._thread = threading.Thread(
            target=self._run, name="pipestream-stream-input", daemon=True
        )
        self._thread.start()

    @property
    def closed(self) -> bool:
        """Whether the processor has been closed."""
        return not self._running.is_set()

    def _next_batch(self) -> Optional[List[Tuple[int, Any]]]:
        try:
            first = self._inputs.get(timeout=_POLL_INTERVAL)
        except queue.Empty:
            return None
        batch = [first]
        while len(batch) < _BATCH_SIZE:
            try:
                batch.append(self._inputs.get_nowait())
            except queue.Empty:
                break
        return batch

    def _run(self) -> None:
        while self._running.is_set():
            batch = self._next_batch()
            if batch is None:
                continue
            with self._cond:
                for item_id, _ in batch:
                    self._tracker.start_processing(item_id)
            try:
                results = self.pipeline.process_batch(batch)
            except Exception as exc:  # keep the stream alive; report per item
                error = exc if isinstance(exc, LibError) else WorkerPanicError(
                    f"{type(exc).__name__}: {exc}"
                )
                results = [(item_id, error) for item_id, _ in batch]
            with self._cond:
                for item_id, outcome in results:
                    if isinstance(outcome, LibError):
                        self._tracker.fail_item(item_id, outcome)
                    else:
                        self._tracker.complete_item(item_id, outcome)
                self._cond.notify_all()

    def process(self, input: Any) -> int:
        """Queue ``input`` for processing and return its item id."""
        if self.closed:
            raise ProcessingError(ProcessingErrorKind.PIPELINE, "stream processor is closed")
        with self._cond:
            item_id = self._tracker.next_id()
            self._tracker.queue_item(item_id)
        self._inputs.put((item_id, input))
        return item_id

    def wait_for_next_completed(self, timeout: Optional[float] = None) -> Optional[Tuple[int, Any]]:
        """Take the next finished ``(id, output or error)``.

        Returns None when nothing is pending, when ``timeout`` seconds pass
        without a result, or when the processor is closed.
        """
        with self._cond:
            item = self._tracker.take_next_completed()
            if item is not None:
                return item
            if not self._tracker.has_pending():
                return None
            self._cond.wait_for(
                lambda: self._tracker.completed_count() > 0 or not self._running.is_set(),
                timeout,
            )
            return self._tracker.take_next_completed()

    def is_done(self) -> bool:
        """Whether nothing is pending and no result is waiting to be taken."""
        with self._cond:
            return self._tracker.completed_count() == 0 and not self._tracker.has_pending()

    def close(self) -> None:
        """Stop the background thread and wake any waiters. Idempotent."""
        if self.closed:
            return
        self._running.clear()
        with self._cond:
            self._cond.notify_all()
        self._thread.join()

    def __enter__(self) -> "InputProcessor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"InputProcessor(pipeline={self.pipeline!r}, closed={self.closed})"


def _drain(results: queue.Queue, failure: List[BaseException]) -> Iterator[Tuple[Any, Any]]:
    while True:
        item = results.get()
        if item is _END:
            break
        yield item
    if failure:
        raise failure[0]


class PipelineStream:
    """Processes keyed inputs through a pipeline, streaming results back as they finish."""

    def __init__(self, pipeline: Any) -> None:
        self.processor = InputProcessor(pipeline)
        self._keys: Dict[int, Any] = {}
        self._keys_lock = threading.Lock()

    def _submit(self, key: Any, input: Any) -> int:
        # The key is recorded under the same lock a collector uses, so a
        # result can never be seen before its key.
        with self._keys_lock:
            item_id = self.processor.process(input)
            self._keys[item_id] = key
            return item_id

    def _claim(self, item_id: int) -> Any:
        with self._keys_lock:
            return self._keys.pop(item_id, _MISSING)

    def process_stream(
        self, input_stream: Iterable[Tuple[Any, Any]], buffer_size: int = 0
    ) -> Iterator[Tuple[Any, Any]]:
        """Feed ``(key, input)`` pairs from ``input_stream`` on a background thread.

        Returns an iterator of ``(key, output or error)`` in completion order.
        A positive ``buffer_size`` bounds how many finished results may wait
        unread; 0 means unbounded. An exception raised by ``input_stream`` is
        raised by the iterator once the results already submitted are yielded.
        """
        results: queue.Queue = queue.Queue(maxsize=max(buffer_size, 0))
        producer_done = threading.Event()
        failure: List[BaseException] = []

        def produce() -> None:
            try:
                for key, item in input_stream:
                    self._submit(key, item)
            except BaseException as exc:  # handed to the consumer
                failure.append(exc)
            finally:
                producer_done.set()

        def collect() -> None:
            processor = self.processor
            while not processor.closed:
                got = processor.wait_for_next_completed(_POLL_INTERVAL)
                if got is None:
                    if producer_done.is_set() and processor.is_done():
                        break
                    if not producer_done.is_set():
                        producer_done.wait(_PRODUCER_POLL)
                    continue
                item_id, outcome = got
                key = self._claim(item_id)
                if key is not _MISSING:
                    results.put((key, outcome))
            results.put(_END)

        threading.Thread(target=produce, name="pipestream-stream-producer", daemon=True).start()
        threading.Thread(target=collect, name="pipestream-stream-collector", daemon=True).start()
        return _drain(results, failure)

    def process_batch(self, inputs: Iterable[Tuple[Any, Any]]) -> List[Tuple[Any, Any]]:
        """Process ``(key, input)`` pairs and return ``(key, output or error)`` in completion order."""
        batch = list(inputs)
        for key, item in batch:
            self._submit(key, item)
        results: List[Tuple[Any, Any]] = []
        while len(results) < len(batch):
            got = self.processor.wait_for_next_completed(None)
            if got is None:
                break
            item_id, outcome = got
            key = self._claim(item_id)
            if key is not _MISSING:
                results.append((key, outcome))
        return results

    def process(self, input: Any) -> Any:
        """Process one input and return its output, raising its error on failure."""
        item_id = self._submit(_SINGLE, input)
        while True:
            got = self.processor.wait_for_next_completed(None)
            if got is None:
                raise component_error(type(input).__name__, "Failed to process input")
            processed_id, outcome = got
            if processed_id == item_id:
                self._claim(item_id)
                if isinstance(outcome, LibError):
                    raise outcome
                return outcome

    def close(self) -> None:
        """Stop the underlying processor."""
        self.processor.close()

    def __enter__(self) -> "PipelineStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"PipelineStream(processor={self.processor!r})"


class StreamingPipelineBuilder:
    """Creates stream processors that share one pipeline."""

    def __init__(self, pipeline: Any) -> None:
        self.pipeline = pipeline

    def create_processor(self) -> PipelineStream:
        """Create a new stream processor over the pipeline."""
        return PipelineStream(self.pipeline)

    def __repr__(self) -> str:
        return f"StreamingPipelineBuilder(pipeline={self.pipeline!r})"


def streaming(pipeline: Any) -> StreamingPipelineBuilder:
    """Prepare ``pipeline`` for streaming use."""
    return StreamingPipelineBuilder(pipeline)