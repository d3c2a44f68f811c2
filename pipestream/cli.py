"""Command-line demos that run the text-analysis pipeline in batch and streaming mode."""

from __future__ import annotations

import argparse
import queue
import random
import threading
import time
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from .errors import LibError
from .pipeline import Pipeline
from .streaming import streaming
from .text import TextStats, build_text_pipeline, generate_random_text

SAMPLE_TEXT = """
Lorem ipsum dolor sit amet, consectetur adipiscing elit. Nulla venenatis suscipit massa, vestibulum congue nulla ullamcorper quis. Quisque et condimentum arcu, nec maximus turpis. Sed rhoncus in justo et ultrices. Suspendisse eleifend porta ex, ut pulvinar turpis congue eu. Nulla in sem vel sapien consequat mollis non et lorem. Pellentesque tempor rhoncus mi, ultrices dapibus lacus porta ut. Interdum et malesuada fames ac ante ipsum primis in faucibus. Nunc venenatis quis metus et feugiat. Ut consequat eget velit vitae lacinia. Vivamus euismod lobortis lorem non luctus. Mauris maximus elit enim, et sodales est lobortis at. Curabitur dapibus, orci id fringilla varius, ante turpis dictum sem, in auctor quam augue at enim. Maecenas eget purus purus. Nunc facilisis justo nec convallis commodo.
"""

DEFAULT_JOBS = 10_000
DEFAULT_SEED = 42
MIN_WORDS = 800
MAX_WORDS = 1000
MONITOR_INTERVAL = 0.5
INPUT_BUFFER_SIZE = 100
OUTPUT_BUFFER_SIZE = 100

_DONE = object()


def _format_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.2f}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.2f}ms"
    return f"{seconds * 1e6:.2f}µs"


def _shutdown(processor: Any) -> None:
    """Stop the worker threads of every stage behind ``processor``."""
    if processor is None:
        return
    stop = getattr(processor, "shutdown", None)
    if callable(stop):
        stop()
        return
    for part in (getattr(processor, "first", None), getattr(processor, "second", None)):
        _shutdown(part)


def _close_pipeline(pipeline: Pipeline) -> None:
    _shutdown(pipeline.processor)


def _check_job_count(job_count: int) -> None:
    if job_count < 1:
        raise ValueError("job_count must be at least 1")


def run_simple(job_count: int = DEFAULT_JOBS) -> List[Tuple[int, Any]]:
    """Analyse ``job_count`` copies of a sample text as one batch and print timing stats.

    Returns the ``(job id, TextStats or error)`` pairs.
    """
    _check_job_count(job_count)
    pipeline = build_text_pipeline()
    try:
        start = time.perf_counter()
        results = pipeline.process_batch((job_id, SAMPLE_TEXT) for job_id in range(job_count))
        for job_id, outcome in results:
            if isinstance(outcome, LibError):
                print(f"Job {job_id}: Error: {outcome}")
        elapsed = time.perf_counter() - start
    finally:
        _close_pipeline(pipeline)

    print("\n=== Stats ===\n")
    print(f"Total time elapsed: {_format_duration(elapsed)}\n")
    print(f"Total jobs processed: {len(results)}\n")
    print(f"Average time per job: {_format_duration(elapsed / len(results))}\n")
    print(f"Throughput: {len(results) / max(elapsed, 1e-9):.2f} jobs/second\n")
    return results


def _monitor(
    job_count: int,
    counter: List[int],
    lock: threading.Lock,
    complete: threading.Event,
) -> None:
    start = time.perf_counter()
    last_count = 0
    print("Starting monitoring thread...")
    while True:
        time.sleep(MONITOR_INTERVAL)
        with lock:
            current = counter[0]
        is_complete = complete.is_set()
        elapsed = max(time.perf_counter() - start, 1e-9)
        overall_rate = current / elapsed
        recent_rate = (current - last_count) / MONITOR_INTERVAL
        last_count = current

        print("\n--- Pipeline Status Update ---")
        print(f"Time elapsed: {elapsed:.2f}s")
        print(f"Jobs processed: {current}/{job_count} ({current / job_count * 100.0:.2f}%)")
        print(
            f"Processing rate: {overall_rate:.2f} jobs/sec (overall), "
            f"{recent_rate:.2f} jobs/sec (recent)"
        )
        if is_complete:
            print("\nProcessing complete!")
            break


def _produce(job_count: int, rng: random.Random, jobs: queue.Queue) -> None:
    print("Starting input generator thread...")
    start = time.perf_counter()
    try:
        for job_id in range(job_count):
            word_count = rng.randint(MIN_WORDS, MAX_WORDS)
            jobs.put((job_id, generate_random_text(word_count, rng)))
            if job_id % 100 == 0:
                time.sleep(0.001)
        print(f"Generated {job_count} jobs in {_format_duration(time.perf_counter() - start)}")
    finally:
        jobs.put(_DONE)


def _consume(jobs: queue.Queue) -> Iterator[Tuple[int, str]]:
    while True:
        item = jobs.get()
        if item is _DONE:
            return
        yield item


def _print_aggregate(results: List[Tuple[int, Any]], job_count: int) -> None:
    successes = [outcome for _, outcome in results if isinstance(outcome, TextStats)]
    if not successes:
        return
    total_words = sum(stats.word_count for stats in successes)
    total_unique = sum(stats.unique_word_count for stats in successes)
    total_avg_length = sum(stats.avg_word_length for stats in successes)
    count = len(successes)
    print("\nAggregate Statistics:")
    print(f"Successful jobs: {count}/{job_count}")
    print(f"Failed jobs: {job_count - count}")
    print(f"Total words processed: {total_words}")
    print(f"Average words per job: {total_words / count:.2f}")
    print(f"Average unique words per job: {total_unique / count:.2f}")
    print(f"Average word length: {total_avg_length / count:.2f}")


def run_streaming(job_count: int = DEFAULT_JOBS, seed: int = DEFAULT_SEED) -> List[Tuple[int, Any]]:
    """Stream ``job_count`` random texts through the pipeline while reporting progress.

    Texts are generated from ``seed``. Returns the ``(job id, TextStats or error)``
    pairs in completion order.
    """
    _check_job_count(job_count)
    rng = random.Random(seed)
    pipeline = build_text_pipeline()
    processor = streaming(pipeline).create_processor()

    jobs: queue.Queue = queue.Queue(maxsize=INPUT_BUFFER_SIZE)
    counter = [0]
    lock = threading.Lock()
    complete = threading.Event()

    monitor = threading.Thread(
        target=_monitor, args=(job_count, counter, lock, complete), daemon=True
    )
    producer = threading.Thread(target=_produce, args=(job_count, rng, jobs), daemon=True)
    monitor.start()
    producer.start()

    print("Starting stream processing...")
    start = time.perf_counter()
    results: List[Tuple[int, Any]] = []
    try:
        for job_id, outcome in processor.process_stream(_consume(jobs), OUTPUT_BUFFER_SIZE):
            results.append((job_id, outcome))
            with lock:
                counter[0] += 1
    finally:
        complete.set()
        monitor.join()
        producer.join()
        processor.close()
        _close_pipeline(pipeline)

    total = max(time.perf_counter() - start, 1e-9)
    print("\n=== Final Processing Report ===")
    print(f"Total processing time: {_format_duration(total)}")
    print(f"Average processing rate: {job_count / total:.2f} jobs/second")
    _print_aggregate(results, job_count)
    return results


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipestream", description="Run the text-analysis pipeline demos."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    simple = commands.add_parser("simple", help="process one batch of identical texts")
    simple.add_argument("--jobs", type=_positive_int, default=DEFAULT_JOBS)

    stream = commands.add_parser("streaming", help="stream randomly generated texts")
    stream.add_argument("--jobs", type=_positive_int, default=DEFAULT_JOBS)
    stream.add_argument("--seed", type=int, default=DEFAULT_SEED)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse ``argv`` and run the chosen demo; returns the exit status."""
    args = _parser().parse_args(argv)
    if args.command == "simple":
        run_simple(args.jobs)
    else:
        run_streaming(args.jobs, args.seed)
    return 0