"""Circuit breaker wrapper that stops calling a component after repeated failures."""

from __future__ import annotations

import dataclasses
import enum
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Deque, Union

from .errors import CircuitOpenError, LibError

Seconds = Union[float, timedelta]


def _seconds(value: Seconds) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


def _component_name(component: Any) -> str:
    name = getattr(component, "name", None)
    return name() if callable(name) else type(component).__name__


class CircuitState(enum.Enum):
    """Whether requests are let through to the wrapped component."""

    CLOSED = "closed"
    OPEN = "open"
    RECOVERING = "recovering"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Thresholds of a circuit breaker; ``reset_timeout`` is in seconds."""

    failure_threshold: int = 5
    success_threshold: int = 2
    reset_timeout: float = 10.0
    window_size: int = 10

    def with_failure_threshold(self, threshold: int) -> "CircuitBreakerConfig":
        """Return a config that trips after ``threshold`` failures per window."""
        return dataclasses.replace(self, failure_threshold=threshold)

    def with_success_threshold(self, threshold: int) -> "CircuitBreakerConfig":
        """Return a config that needs ``threshold`` successes to recover."""
        return dataclasses.replace(self, success_threshold=threshold)

    def with_reset_timeout(self, timeout: Seconds) -> "CircuitBreakerConfig":
        """Return a config with a new reset timeout."""
        return dataclasses.replace(self, reset_timeout=_seconds(timeout))

    def with_window_size(self, size: int) -> "CircuitBreakerConfig":
        """Return a config that looks at the last ``size`` results."""
        return dataclasses.replace(self, window_size=size)

    @property
    def trip_rate(self) -> float:
        """The failure rate at or above which a closed circuit opens."""
        if self.window_size == 0:
            return float("inf")
        return self.failure_threshold / self.window_size


class CircuitBreakerState:
    """The mutable state of one circuit breaker."""

    def __init__(self, window_size: int) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_state_change = time.monotonic()
        self.recent_results: Deque[bool] = deque()

    def _push(self, outcome: bool, window_size: int) -> None:
        self.recent_results.append(outcome)
        while len(self.recent_results) > window_size:
            self.recent_results.popleft()

    def record_success(self, window_size: int) -> None:
        """Record a success in a window of ``window_size`` results."""
        self.success_count += 1
        self.failure_count = 0
        self._push(True, window_size)

    def record_failure(self, window_size: int) -> None:
        """Record a failure in a window of ``window_size`` results."""
        self.failure_count += 1
        self.success_count = 0
        self._push(False, window_size)

    def failure_rate(self) -> float:
        """Share of failures among the recent results; 0.0 when there are none."""
        if not self.recent_results:
            return 0.0
        failures = sum(1 for ok in self.recent_results if not ok)
        return failures / len(self.recent_results)

    def change_to(self, state: CircuitState) -> None:
        """Move to ``state`` and note the time of the change."""
        self.state = state
        self.last_state_change = time.monotonic()

    def __repr__(self) -> str:
        return (
            f"CircuitBreakerState(state={self.state}, failure_count={self.failure_count}, "
            f"success_count={self.success_count}, recent_results={list(self.recent_results)!r})"
        )


class CircuitableComponent:
    """Wraps a component and rejects requests while its circuit is open."""

    def __init__(self, component: Any, config: CircuitBreakerConfig | None = None) -> None:
        self.inner = component
        self.config = config if config is not None else CircuitBreakerConfig()
        self.state = CircuitBreakerState(self.config.window_size)
        self._lock = threading.Lock()

    @property
    def current_state(self) -> CircuitState:
        """The circuit's current state."""
        with self._lock:
            return self.state.state

    def _check_transition(self) -> None:
        state = self.state
        if state.state is CircuitState.CLOSED:
            if state.failure_rate() >= self.config.trip_rate:
                state.change_to(CircuitState.OPEN)
        elif state.state is CircuitState.OPEN:
            if time.monotonic() - state.last_state_change > self.config.reset_timeout:
                state.change_to(CircuitState.CLOSED)
                state.failure_count = 0
                state.success_count = 0
        else:
            if state.success_count >= self.config.success_threshold:
                state.change_to(CircuitState.CLOSED)
                state.recent_results.clear()
            elif state.failure_count > 0:
                state.change_to(CircuitState.OPEN)

    def process(self, input: Any) -> Any:
        """Process ``input`` unless the circuit is open, recording the outcome."""
        with self._lock:
            current = self.state.state
        if current is CircuitState.OPEN:
            raise CircuitOpenError(_component_name(self.inner))
        try:
            output = self.inner.process(input)
        except LibError:
            with self._lock:
                self.state.record_failure(self.config.window_size)
                self._check_transition()
            raise
        with self._lock:
            self.state.record_success(self.config.window_size)
            self._check_transition()
        return output

    def name(self) -> str:
        """The wrapped component's name, marked as guarded by a breaker."""
        return f"CircuitBreaker({_component_name(self.inner)})"

    def __repr__(self) -> str:
        return (
            f"CircuitableComponent(inner={self.inner!r}, config={self.config!r}, "
            f"state={self.state!r})"
        )


def with_circuit_breaker(component: Any, config: CircuitBreakerConfig) -> CircuitableComponent:
    """Wrap ``component`` in a circuit breaker."""
    return CircuitableComponent(component, config)