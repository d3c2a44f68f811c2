import os

import pytest

from pipestream.errors import ComponentError, WorkerPanicError
from pipestream.stage import Stage, StageConfig, StageImpl


class Doubler(StageImpl):
    def process(self, input):
        return input * 2


class OddRejector(StageImpl):
    def process(self, input):
        if input % 2:
            raise ComponentError(self.name(), f"odd input {input}")
        return input


class Crasher(StageImpl):
    def process(self, input):
        raise ValueError("crash")


class Named(StageImpl):
    def process(self, input):
        return input

    def name(self):
        return "CustomName"


@pytest.fixture
def doubler_stage():
    stage = Stage(Doubler(), StageConfig(workers=2))
    yield stage
    stage.shutdown()


def test_default_name_is_class_name():
    assert StageImpl.name(Doubler()) == "Doubler"
    assert StageImpl.name(OddRejector()) == "OddRejector"
    assert Named().name() == "CustomName"


def test_stage_impl_requires_process():
    class Incomplete(StageImpl):
        pass

    with pytest.raises(TypeError):
        Stage(Incomplete(), StageConfig(workers=1))


def test_default_config_values():
    config = StageConfig()
    assert config.workers == (os.cpu_count() or 1)
    assert config.batch_size == 100
    assert config.input_pool_size == 1000
    assert config.output_pool_size == 1000
    assert config.max_queue_size == 10000
    assert config.backpressure_threshold == 0.8
    assert config.timeout is None


def test_process_single(doubler_stage):
    assert doubler_stage.process(21) == Doubler().process(21)
    assert doubler_stage.process("ab") == "abab"


def test_process_batch_keeps_keys_and_order(doubler_stage):
    inputs = [(key, n) for n, key in enumerate("zyxwv")]
    results = doubler_stage.process_batch(inputs)
    assert [key for key, _ in results] == [key for key, _ in inputs]
    assert [out for _, out in results] == [doubler_stage.process(n) for _, n in inputs]


def test_process_batch_reports_errors_per_item():
    with Stage(OddRejector(), StageConfig(workers=2)) as stage:
        results = stage.process_batch([(i, i) for i in range(4)])
    assert [key for key, _ in results] == [0, 1, 2, 3]
    assert results[0][1] == 0
    assert results[2][1] == 2
    assert isinstance(results[1][1], ComponentError)
    assert isinstance(results[3][1], ComponentError)
    assert results[1][1].component == "OddRejector"


def test_process_raises_component_error():
    with Stage(OddRejector(), StageConfig(workers=1)) as stage:
        with pytest.raises(ComponentError):
            stage.process(3)


def test_parallel_path_wraps_unexpected_errors():
    with Stage(Crasher(), StageConfig(workers=1)) as stage:
        results = stage.process_batch([("k", 1)])
    assert results[0][0] == "k"
    assert isinstance(results[0][1], WorkerPanicError)


def test_overloaded_stage_runs_sequentially():
    config = StageConfig(workers=1, backpressure_threshold=-1.0)
    with Stage(OddRejector(), config) as stage:
        results = stage.process_batch([("a", 2), ("b", 3)])
        assert results[0] == ("a", 2)
        assert isinstance(results[1][1], ComponentError)
    with Stage(Crasher(), config) as stage:
        with pytest.raises(ValueError):
            stage.process_batch([("a", 1)])


def test_pools_absent_by_default(doubler_stage):
    assert doubler_stage.get_input() is None
    assert doubler_stage.get_output() is None
    info = doubler_stage.info()
    assert info.input_pool_available == 0
    assert info.output_pool_available == 0


def test_input_pool_lends_created_objects():
    config = StageConfig(workers=1, input_pool_size=8)
    with Stage(Doubler(), config).with_input_pool(list) as stage:
        before = stage.info().input_pool_available
        borrowed = stage.get_input()
        assert borrowed.value == []
        assert stage.info().input_pool_available == before - 1
        borrowed.release()
        assert stage.info().input_pool_available == before


def test_output_pool_lends_created_objects():
    config = StageConfig(workers=1, output_pool_size=4)
    with Stage(Doubler(), config).with_output_pool(dict) as stage:
        with stage.get_output() as obj:
            assert obj == {}
        assert stage.info().output_pool_available == config.output_pool_size // 4


def test_info_reflects_config(doubler_stage):
    info = doubler_stage.info()
    assert info.worker_count == doubler_stage.config.workers
    assert info.active_jobs == 0
    assert info.queue_capacity >= info.worker_count
    doubler_stage.process_batch([(i, i) for i in range(10)])
    assert doubler_stage.info().active_jobs == 0