import time
from dataclasses import dataclass, field
from datetime import timedelta

import pytest

from pipestream.circuit import (
    CircuitableComponent,
    CircuitBreakerConfig,
    CircuitBreakerState,
    CircuitState,
    with_circuit_breaker,
)
from pipestream.errors import CircuitOpenError, ComponentError, LibError, component_error


@dataclass
class FakeComponent:
    label: str
    fail_on: list = field(default_factory=list)
    process_count: int = 0

    def process(self, input):
        self.process_count += 1
        if input in self.fail_on:
            raise component_error("int", f"Failed on input {input}")
        return input * 2

    def name(self):
        return self.label


def test_circuit_breaker_config():
    default = CircuitBreakerConfig()
    assert default.failure_threshold == 5
    assert default.success_threshold == 2
    assert default.reset_timeout == 10.0
    assert default.window_size == 10

    custom = (
        CircuitBreakerConfig()
        .with_failure_threshold(3)
        .with_success_threshold(1)
        .with_reset_timeout(timedelta(seconds=5))
        .with_window_size(5)
    )
    assert custom.failure_threshold == 3
    assert custom.success_threshold == 1
    assert custom.reset_timeout == 5.0
    assert custom.window_size == 5


def test_basic_operation():
    circuit = CircuitableComponent(FakeComponent("TestComponent"), CircuitBreakerConfig())
    assert circuit.current_state is CircuitState.CLOSED
    assert circuit.process(5) == 10
    assert circuit.current_state is CircuitState.CLOSED


def test_failure_threshold():
    component = FakeComponent("FailingComponent", [1, 2, 3, 4, 5])
    config = CircuitBreakerConfig().with_failure_threshold(3).with_window_size(5)
    circuit = CircuitableComponent(component, config)
    assert circuit.current_state is CircuitState.CLOSED

    for i in range(1, 4):
        with pytest.raises(LibError):
            circuit.process(i)

    assert circuit.current_state is CircuitState.OPEN
    with pytest.raises(CircuitOpenError) as info:
        circuit.process(10)
    assert "Circuit breaker" in str(info.value)
    assert info.value.name == "FailingComponent"


def test_reset_timeout_with_manual_close():
    component = FakeComponent("FailingComponent", [1, 2, 3, 4, 5])
    config = (
        CircuitBreakerConfig()
        .with_failure_threshold(3)
        .with_window_size(5)
        .with_reset_timeout(0.1)
    )
    circuit = CircuitableComponent(component, config)
    for i in range(1, 4):
        with pytest.raises(LibError):
            circuit.process(i)
    assert circuit.current_state is CircuitState.OPEN

    time.sleep(0.15)
    state = circuit.state
    if (
        state.state is CircuitState.OPEN
        and time.monotonic() - state.last_state_change > config.reset_timeout
    ):
        state.state = CircuitState.CLOSED

    assert circuit.process(10) == 20
    assert circuit.current_state is CircuitState.CLOSED


def test_mixed_results():
    component = FakeComponent("SometimesFailingComponent", [i for i in range(1, 10) if i % 2 == 1])
    config = CircuitBreakerConfig().with_failure_threshold(3).with_window_size(6)
    circuit = CircuitableComponent(component, config)
    assert circuit.current_state is CircuitState.CLOSED

    for i in range(1, 7):
        if i % 2 == 1:
            with pytest.raises(LibError):
                circuit.process(i)
        else:
            try:
                circuit.process(i)
            except LibError:
                pass

    assert circuit.current_state is CircuitState.OPEN


def test_failure_during_recovery():
    component = FakeComponent("FailingComponent", [1, 2, 3, 15])
    config = (
        CircuitBreakerConfig()
        .with_failure_threshold(2)
        .with_success_threshold(3)
        .with_window_size(5)
        .with_reset_timeout(0.01)
    )
    circuit = CircuitableComponent(component, config)
    for i in (1, 2):
        try:
            circuit.process(i)
        except LibError:
            pass
    assert circuit.current_state is CircuitState.OPEN

    time.sleep(0.02)
    circuit.state.state = CircuitState.CLOSED
    assert circuit.current_state is CircuitState.CLOSED

    with pytest.raises(LibError):
        circuit.process(15)
    for i in (10, 11):
        try:
            circuit.process(i)
        except LibError:
            pass
    with pytest.raises(LibError):
        circuit.process(3)
    assert circuit.current_state is CircuitState.OPEN


def test_window_size():
    component = FakeComponent("FailingComponent", [1, 3, 5, 7, 9])
    config = CircuitBreakerConfig().with_failure_threshold(3).with_window_size(5)
    circuit = CircuitableComponent(component, config)

    for i in range(1, 6):
        try:
            circuit.process(i)
        except LibError:
            pass
    assert circuit.current_state is CircuitState.OPEN

    circuit.state.state = CircuitState.CLOSED
    circuit.state.recent_results.clear()

    for i in range(6, 11):
        try:
            circuit.process(i)
        except LibError:
            pass
    assert circuit.current_state is CircuitState.CLOSED

    for i in (1, 3):
        try:
            circuit.process(i)
        except LibError:
            pass
    assert circuit.current_state is CircuitState.OPEN


def test_component_receives_no_requests_when_open():
    component = FakeComponent("FailingComponent", [1])
    config = CircuitBreakerConfig().with_failure_threshold(1).with_window_size(5)
    circuit = CircuitableComponent(component, config)

    with pytest.raises(ComponentError):
        circuit.process(1)
    assert circuit.current_state is CircuitState.OPEN
    assert component.process_count == 1

    for i in range(4, 11):
        with pytest.raises(CircuitOpenError):
            circuit.process(i)
    assert component.process_count == 1


def test_name():
    circuit = CircuitableComponent(FakeComponent("InnerComponent"), CircuitBreakerConfig())
    assert circuit.name() == "CircuitBreaker(InnerComponent)"


def test_repr():
    circuit = CircuitableComponent(FakeComponent("InnerComponent"), CircuitBreakerConfig())
    text = repr(circuit)
    assert "CircuitableComponent" in text
    assert "InnerComponent" in text
    assert "CircuitBreakerConfig" in text


def test_failure_rate_calculation():
    state = CircuitBreakerState(5)
    assert state.failure_rate() == 0.0

    state.record_success(5)
    assert state.failure_rate() == 0.0

    state.record_failure(5)
    assert state.failure_rate() == 0.5

    state.record_failure(5)
    state.record_failure(5)
    assert state.failure_rate() == 0.75

    state.record_failure(5)
    state.record_failure(5)
    assert state.failure_rate() == 1.0
    assert len(state.recent_results) == 5


def test_counts_reset_on_opposite_outcome():
    state = CircuitBreakerState(3)
    state.record_success(3)
    state.record_success(3)
    assert (state.success_count, state.failure_count) == (2, 0)
    state.record_failure(3)
    assert (state.success_count, state.failure_count) == (0, 1)


def test_recovering_closes_after_success_threshold():
    config = CircuitBreakerConfig().with_success_threshold(2)
    circuit = CircuitableComponent(FakeComponent("Inner", [99]), config)
    circuit.state.state = CircuitState.RECOVERING
    circuit.state.success_count = 0

    assert circuit.process(1) == 2
    assert circuit.current_state is CircuitState.RECOVERING
    assert circuit.process(2) == 4
    assert circuit.current_state is CircuitState.CLOSED
    assert len(circuit.state.recent_results) == 0


def test_recovering_reopens_on_failure():
    circuit = CircuitableComponent(FakeComponent("Inner", [99]), CircuitBreakerConfig())
    circuit.state.state = CircuitState.RECOVERING
    with pytest.raises(ComponentError):
        circuit.process(99)
    assert circuit.current_state is CircuitState.OPEN


def test_with_circuit_breaker():
    config = CircuitBreakerConfig().with_failure_threshold(1).with_window_size(2)
    circuit = with_circuit_breaker(FakeComponent("Inner", [7]), config)
    assert circuit.config == config
    assert circuit.process(3) == 6
    with pytest.raises(ComponentError):
        circuit.process(7)
    assert circuit.current_state is CircuitState.OPEN