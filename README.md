# pipestream

pipestream builds processing pipelines out of stages. Each stage wraps a
component that turns one input into one output; stages are chained so the
output of one becomes the input of the next. A batch is spread over the
stage's pool of worker threads, and the results come back in the order of
the inputs, each paired with the key you gave it.

It needs Python 3.10 or later and nothing outside the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module                | What it holds |
|-----------------------|---------------|
| `pipestream.stage`    | `StageImpl`, `StageConfig`, `StageInfo`, `Stage` |
| `pipestream.pipeline` | `PipelineBuilder`, `Pipeline`, `ChainedProcessor`, `PipelineStageInfo` |
| `pipestream.worker`   | `WorkerPool`, `WorkerParallelExecutor` |
| `pipestream.pool`     | `ObjectPool`, `PooledObject`, `ResettablePooledObject`, `BufferPool`, `Resettable` |
| `pipestream.retry`    | `RetryPolicy`, `RetryableComponent`, `TimeoutableComponent`, `with_retry`, `with_timeout` |
| `pipestream.circuit`  | `CircuitState`, `CircuitBreakerConfig`, `CircuitBreakerState`, `CircuitableComponent`, `with_circuit_breaker` |
| `pipestream.streaming`| `InputProcessor`, `PipelineStream`, `StreamingPipelineBuilder`, `streaming` |
| `pipestream.tracker`  | `ItemState`, `StreamingTracker` |
| `pipestream.errors`   | `LibError` and its subclasses, `StageError`, `component_error`, `config_error`, `unknown_error` |
| `pipestream.text`     | `Tokenizer`, `StopWordRemover`, `TextAnalyzer`, `TextStats`, `build_text_pipeline`, `generate_random_text` |
| `pipestream.cli`      | `main`, `run_simple`, `run_streaming` |

## Writing a pipeline

A component subclasses `StageImpl` and implements `process`. Failures are
reported by raising `LibError` or one of its subclasses (`ComponentError`,
`ConfigError`, `CircuitOpenError`, `StageTimeoutError` and so on).

```python
from pipestream.stage import Stage, StageConfig, StageImpl
from pipestream.pipeline import PipelineBuilder


class Double(StageImpl):
    def process(self, input):
        return input * 2


class Describe(StageImpl):
    def process(self, input):
        return f"value={input}"


first = Stage(Double(), StageConfig())
second = Stage(Describe(), StageConfig())
pipeline = PipelineBuilder.start_with(first).then(second).build_blocking()

print(pipeline.process(21))  # value=42

for key, outcome in pipeline.process_batch([("a", 1), ("b", 2), ("c", 3)]):
    print(key, outcome)

first.shutdown()
second.shutdown()
```

`Pipeline.process` raises the error of a failed input. `Pipeline.process_batch`
does not raise for a single input: each outcome is either the output or the
`LibError` raised for that input. An input that fails in one stage keeps its
error and is not passed to later stages. Inside the worker pool, an exception
that is not a `LibError` is reported as a `WorkerPanicError`.

`StageConfig` fields are `workers` (one per CPU by default), `batch_size`,
`input_pool_size`, `output_pool_size`, `max_queue_size`,
`backpressure_threshold` (0.8) and `timeout`. When the share of queued jobs
against the worker queue's capacity exceeds `backpressure_threshold`, a stage
processes the batch on the calling thread instead of its pool.
`Stage.with_input_pool(create_fn)` and `Stage.with_output_pool(create_fn)`
attach object pools, borrowed from with `get_input()` and `get_output()`;
`Stage.info()` returns a `StageInfo` snapshot.

A stage owns worker threads; call `Stage.shutdown()` (or use the stage as a
context manager) when you are done with it.

## Making a component resilient

```python
from pipestream.retry import RetryPolicy, with_retry, with_timeout
from pipestream.circuit import CircuitBreakerConfig, with_circuit_breaker

policy = RetryPolicy(5).with_jitter(0.2)
reliable = with_retry(Double(), policy)

guarded = with_circuit_breaker(
    Double(),
    CircuitBreakerConfig().with_failure_threshold(3).with_window_size(5),
)

limited = with_timeout(Double(), 2.0)
```

- `RetryPolicy(max_attempts)` waits `backoff_base * 2 ** (attempt - 1)`
  seconds before each retry, capped at `max_backoff`, plus a random jitter of
  up to `jitter_factor` of that delay. Defaults: 3 attempts, 0.1 s base,
  10 s cap, jitter 0.1. When every attempt fails, a `ComponentError` naming
  the attempt count is raised.
- The circuit breaker opens once the share of failures among the last
  `window_size` results reaches `failure_threshold / window_size`. While it is
  open, calls fail with `CircuitOpenError` without reaching the wrapped
  component; a call after `reset_timeout` seconds closes it again.
- `with_timeout` runs each call on its own thread and raises
  `StageTimeoutError` when it does not finish in time. The thread running the
  late call is left to finish on its own; it is not stopped.

All durations are seconds, or `datetime.timedelta`.

## Streaming

```python
from pipestream.streaming import streaming

stream = streaming(pipeline).create_processor()
results = stream.process_batch([(n, n) for n in range(100)])
stream.close()
```

A `PipelineStream` queues inputs and a background thread passes them to the
pipeline in batches of up to 32. `process_batch` and
`process_stream(input_stream, buffer_size)` return `(key, outcome)` pairs in
the order the items finish, not the order they went in. `process_stream`
reads `input_stream` on a background thread and returns an iterator; a
positive `buffer_size` bounds how many finished results may wait unread.
`process(input)` handles one input and raises its error on failure.

## Object pools

```python
from pipestream.pool import ObjectPool, BufferPool

pool = ObjectPool(2, 5, lambda: "fresh")
item = pool.get()       # taken from the pool, or newly created if it is empty
print(item.value)
item.release()          # returned to the pool unless it already holds 5

with pool.get() as value:
    ...                 # released when the block ends

buffers = BufferPool(3, 1024, 5)
with buffers.get() as buf:
    buf.extend(b"data")  # the bytearray is emptied before it goes back
```

`try_get()` returns `None` instead of creating an object when the pool is
empty. `get_resettable()` hands out an object whose `reset()` is called
before it is returned. `ensure_min_capacity(n)` fills the pool up to `n`
objects and `clear()` empties it.

## The command

Installing the package provides the `pipestream` command, which runs the
bundled text-analysis pipeline (tokenise, remove stop words, count words) and
prints timings and throughput:

```
pipestream simple --jobs 1000
pipestream streaming --jobs 500 --seed 7
```

`simple` processes `--jobs` copies of a sample text as one batch. `streaming`
generates `--jobs` random texts of 800 to 1000 words from `--seed`, streams
them through the pipeline, prints a progress report every half second and
ends with aggregate statistics. Both default to 10,000 jobs. Use
`pipestream --help` for the details.

## What it does not do

- `StageConfig.batch_size`, `max_queue_size` and `timeout` are stored but not
  acted on by `Stage`; wrap a component with `with_timeout` to limit its
  running time.
- `PipelineStageInfo` is a plain record; nothing in the package fills it in,
  and a `Pipeline` does not report on its stages.
- Stages run on threads, so CPU-bound components share one interpreter; there
  is no process-based execution.