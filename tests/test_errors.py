from datetime import timedelta

import pytest

from pipestream.errors import (
    CancelledError,
    CircuitOpenError,
    ComponentError,
    ComponentErrorKind,
    ConfigError,
    IOFailure,
    LibError,
    ProcessingError,
    ProcessingErrorKind,
    StageError,
    StageTimeoutError,
    UnknownError,
    WorkerPanicError,
    component_error,
    config_error,
    unknown_error,
)


def test_component_error_from_message_is_other_kind():
    err = component_error("tokenizer", "bad input")
    assert isinstance(err, LibError)
    assert err.kind is ComponentErrorKind.OTHER
    assert err.component == "tokenizer"
    assert str(err) == "Component error in 'tokenizer': Other component error: bad input"


def test_component_error_with_explicit_kind():
    err = component_error("reader", (ComponentErrorKind.INVALID_INPUT, "empty"))
    assert err.kind is ComponentErrorKind.INVALID_INPUT
    assert err.detail == "empty"
    assert err.reason == "Invalid input: empty"
    assert str(err).endswith(err.reason)


def test_component_error_from_exception_keeps_cause():
    original = ValueError("oops")
    err = component_error("parser", original)
    assert err.__cause__ is original
    assert err.detail == "oops"


def test_component_error_rejects_other_types():
    with pytest.raises(TypeError):
        component_error("x", 42)


def test_config_and_unknown_helpers():
    cfg = config_error("Pipeline has no stages")
    assert isinstance(cfg, ConfigError)
    assert str(cfg) == "Configuration error: Pipeline has no stages"
    unk = unknown_error("mystery")
    assert isinstance(unk, UnknownError)
    assert str(unk).startswith("Unknown error: ")
    assert unk.detail == "mystery"


def test_errors_are_raisable_as_lib_error():
    err = CircuitOpenError("Fetcher")
    assert err.name == "Fetcher"
    assert str(err) == "Circuit breaker for 'Fetcher' is open"
    with pytest.raises(LibError):
        raise err


@pytest.mark.parametrize(
    "err, prefix",
    [
        (IOFailure("disk"), "I/O error: "),
        (WorkerPanicError("boom"), "Worker thread panicked: "),
        (ProcessingError(ProcessingErrorKind.PIPELINE, "broken"), "Processing error: Pipeline error: "),
    ],
)
def test_message_prefixes(err, prefix):
    assert str(err).startswith(prefix)
    assert isinstance(err, LibError)


def test_cancelled_message():
    assert str(CancelledError()) == "Task was cancelled"


def test_timeout_accepts_seconds_and_timedelta():
    a = StageTimeoutError(0.1)
    b = StageTimeoutError(timedelta(milliseconds=100))
    assert a.timeout == b.timeout
    assert str(a) == str(b)
    assert str(a) == "Timeout error after 100ms"


def test_stage_error_kinds():
    assert str(StageError("cancelled")) == "Task cancelled"
    assert str(StageError("worker_panic")) == "Worker thread panicked"
    assert str(StageError("other", "stalled")) == "Pipeline error: stalled"


def test_stage_error_component_with_cause():
    cause = RuntimeError("exploded")
    err = StageError("component", component="Analyzer", cause=cause)
    assert err.__cause__ is cause
    assert str(err) == "Pipeline component 'Analyzer' failed: exploded"


def test_stage_error_invalid_arguments():
    with pytest.raises(ValueError):
        StageError("nonsense")
    with pytest.raises(ValueError):
        StageError("component")


def test_component_error_is_distinct_from_stage_error():
    err = ComponentError("x", "y")
    assert err.component == "x"
    assert not isinstance(err, StageError)
    assert isinstance(err, LibError)