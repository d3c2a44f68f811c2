"""Error types raised by pipeline stages, pools and resilience wrappers."""

from __future__ import annotations

import enum
from datetime import timedelta


class ComponentErrorKind(enum.Enum):
    """Category of a failure reported by a pipeline component."""

    PROCESSING_FAILED = "Processing failed"
    RESOURCE_UNAVAILABLE = "Resource unavailable"
    INVALID_INPUT = "Invalid input"
    INTERNAL = "Internal error"
    OTHER = "Other component error"


class ProcessingErrorKind(enum.Enum):
    """Category of a failure in the processing machinery itself."""

    BATCH_FAILED = "Failed to process batch"
    PIPELINE = "Pipeline error"
    STAGE = "Stage error"
    WORKER = "Worker error"
    POOL = "Pool error"


def _format_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:g}s"
    for scale, unit in ((1e3, "ms"), (1e6, "µs")):
        scaled = seconds * scale
        if scaled >= 1:
            return f"{round(scaled, 6):g}{unit}"
    return f"{round(seconds * 1e9, 6):g}ns"


class LibError(Exception):
    """Base class of every error the library reports."""


class ComponentError(LibError):
    """A named component failed while processing an input."""

    def __init__(
        self,
        component: str,
        detail: str,
        kind: ComponentErrorKind = ComponentErrorKind.OTHER,
    ) -> None:
        self.component = component
        self.kind = kind
        self.detail = detail
        super().__init__(f"Component error in '{component}': {self.reason}")

    @property
    def reason(self) -> str:
        """The underlying component failure, without the component name."""
        return f"{self.kind.value}: {self.detail}"


class ProcessingError(LibError):
    """The pipeline, a stage, a worker or a pool failed."""

    def __init__(self, kind: ProcessingErrorKind, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"Processing error: {kind.value}: {detail}")


class IOFailure(LibError):
    """An input/output operation failed."""

    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(f"I/O error: {message}")


class ConfigError(LibError):
    """The pipeline or one of its parts is misconfigured."""

    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(f"Configuration error: {message}")


class StageTimeoutError(LibError):
    """An operation did not finish within its time limit."""

    def __init__(self, timeout: float | timedelta) -> None:
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        self.timeout = float(timeout)
        super().__init__(f"Timeout error after {_format_duration(self.timeout)}")


class CircuitOpenError(LibError):
    """A circuit breaker rejected the request because it is open."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Circuit breaker for '{name}' is open")


class CancelledError(LibError):
    """A task was cancelled before it finished."""

    def __init__(self) -> None:
        super().__init__("Task was cancelled")


class WorkerPanicError(LibError):
    """A worker thread failed unexpectedly."""

    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(f"Worker thread panicked: {message}")


class UnknownError(LibError):
    """An error that fits no other category."""

    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(f"Unknown error: {message}")


class StageError(Exception):
    """A failure inside a single pipeline stage.

    ``kind`` is one of ``"component"``, ``"other"``, ``"cancelled"`` and
    ``"worker_panic"``.
    """

    KINDS = ("component", "other", "cancelled", "worker_panic")

    def __init__(
        self,
        kind: str = "other",
        detail: str = "",
        *,
        component: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        if kind not in self.KINDS:
            raise ValueError(f"unknown stage error kind: {kind!r}")
        if kind == "component":
            if component is None or cause is None:
                raise ValueError("a component stage error needs a component and a cause")
            message = f"Pipeline component '{component}' failed: {cause}"
        elif kind == "other":
            message = f"Pipeline error: {detail}"
        elif kind == "cancelled":
            message = "Task cancelled"
        else:
            message = "Worker thread panicked"
        self.kind = kind
        self.detail = detail
        self.component = component
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


def component_error(component_name: str, error) -> ComponentError:
    """Build a :class:`ComponentError` for ``component_name``.

    ``error`` is a message (reported as an "other" failure), a
    ``(ComponentErrorKind, message)`` pair, or an exception whose text
    becomes the message.
    """
    if isinstance(error, str):
        return ComponentError(component_name, error)
    if isinstance(error, tuple) and len(error) == 2 and isinstance(error[0], ComponentErrorKind):
        kind, detail = error
        return ComponentError(component_name, str(detail), kind)
    if isinstance(error, BaseException):
        result = ComponentError(component_name, str(error))
        result.__cause__ = error
        return result
    raise TypeError(f"cannot build a component error from {type(error).__name__}")


def config_error(message: str) -> ConfigError:
    """Build a :class:`ConfigError` with ``message``."""
    return ConfigError(message)


def unknown_error(message: str) -> UnknownError:
    """Build an :class:`UnknownError` with ``message``."""
    return UnknownError(message)