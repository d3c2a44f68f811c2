"""Retry and timeout wrappers around stage components."""

from __future__ import annotations

import dataclasses
import math
import random
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Union

from .errors import ConfigError, LibError, StageTimeoutError, component_error

Seconds = Union[float, timedelta]


def _seconds(value: Seconds) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


def _component_name(component: Any) -> str:
    name = getattr(component, "name", None)
    return name() if callable(name) else type(component).__name__


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    Durations are in seconds.
    """

    max_attempts: int = 3
    backoff_base: float = 0.1
    max_backoff: float = 10.0
    jitter_factor: float = 0.1

    def with_backoff_base(self, base: Seconds, maximum: Seconds) -> "RetryPolicy":
        """Return a policy with a new base delay and delay cap."""
        return dataclasses.replace(
            self, backoff_base=_seconds(base), max_backoff=_seconds(maximum)
        )

    def with_jitter(self, factor: float) -> "RetryPolicy":
        """Return a policy with a jitter factor between 0.0 and 1.0."""
        if not 0.0 <= factor <= 1.0:
            raise ValueError("Jitter factor must be between 0.0 and 1.0")
        return dataclasses.replace(self, jitter_factor=factor)

    def should_retry(self, attempt: int) -> bool:
        """Whether attempt number ``attempt`` (counted from 0) may be made."""
        return attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        """Seconds to wait before ``attempt``: exponential, capped, plus jitter."""
        if attempt == 0:
            return 0.0
        backoff = min(self.backoff_base * 2.0 ** (attempt - 1), self.max_backoff)
        if self.jitter_factor > 0.0:
            range_ms = math.floor(backoff * self.jitter_factor * 1000)
            jitter_ms = math.floor(random.random() * range_ms)
            return backoff + jitter_ms / 1000
        return backoff


class RetryableComponent:
    """Retries a component's failures according to a policy."""

    def __init__(self, component: Any, policy: RetryPolicy | None = None) -> None:
        self.inner = component
        self.policy = policy if policy is not None else RetryPolicy()

    def process(self, input: Any) -> Any:
        """Process ``input``, retrying on LibError until the policy gives up."""
        attempt = 0
        last_error: LibError | None = None
        while self.policy.should_retry(attempt):
            if attempt > 0:
                time.sleep(self.policy.delay_for_attempt(attempt))
            try:
                return self.inner.process(input)
            except LibError as exc:
                last_error = exc
                attempt += 1

        if last_error is None:
            raise ConfigError("retry policy allows no attempts")
        error = component_error(
            type(input).__name__,
            f"Failed to process input after {attempt} attempts: {last_error}",
        )
        raise error from last_error

    def name(self) -> str:
        """The wrapped component's name, marked as retryable."""
        return f"RetryableComponent<{_component_name(self.inner)}>"

    def __repr__(self) -> str:
        return f"RetryableComponent(inner={self.inner!r}, policy={self.policy!r})"


class TimeoutableComponent:
    """Runs a component on its own thread and gives up after a time limit.

    A component that crashes with anything other than a LibError is also
    reported as a timeout.
    """

    def __init__(self, component: Any, timeout: Seconds) -> None:
        self.inner = component
        self.timeout = _seconds(timeout)

    def process(self, input: Any) -> Any:
        """Process ``input``; raise StageTimeoutError if it takes too long."""
        outcome: dict = {}

        def run() -> None:
            try:
                outcome["value"] = self.inner.process(input)
            except BaseException as exc:  # reported to the caller below
                outcome["error"] = exc

        worker = threading.Thread(target=run, name="pipestream-timeout", daemon=True)
        worker.start()
        worker.join(self.timeout)
        if worker.is_alive():
            raise StageTimeoutError(self.timeout)
        if "error" in outcome:
            error = outcome["error"]
            if isinstance(error, LibError):
                raise error
            raise StageTimeoutError(self.timeout) from error
        return outcome["value"]

    def name(self) -> str:
        """The wrapped component's name, marked as time-limited."""
        return f"TimeoutableComponent({_component_name(self.inner)})"

    def __repr__(self) -> str:
        return f"TimeoutableComponent(inner={self.inner!r}, timeout={self.timeout!r})"


def with_retry(component: Any, policy: RetryPolicy) -> RetryableComponent:
    """Wrap ``component`` so that its failures are retried."""
    return RetryableComponent(component, policy)


def with_timeout(component: Any, timeout: Seconds) -> TimeoutableComponent:
    """Wrap ``component`` so that it is given at most ``timeout`` seconds."""
    return TimeoutableComponent(component, timeout)