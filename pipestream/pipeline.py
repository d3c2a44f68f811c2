"""Pipelines: stages chained so that each stage's output feeds the next."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypeVar

from .errors import LibError, component_error, config_error

K = TypeVar("K")

_NO_STAGES = "Pipeline has no stages"


@dataclass
class PipelineStageInfo:
    """Description and load of one stage in a pipeline."""

    name: str
    input_type: str
    output_type: str
    workers: int
    active_jobs: int
    queue_capacity: int


class ChainedProcessor:
    """Two processors run one after the other.

    Either side is anything with ``process(input)`` and
    ``process_batch(batch)``: a :class:`~pipestream.stage.Stage` or another
    chain.
    """

    def __init__(self, first: Any, second: Any) -> None:
        self.first = first
        self.second = second

    def process(self, input: Any) -> Any:
        """Run one input through both processors."""
        return self.second.process(self.first.process(input))

    def process_batch(self, batch: Iterable[Tuple[int, Any]]) -> List[Tuple[int, Any]]:
        """Run ``(id, input)`` pairs through both processors.

        Inputs that fail in the first processor keep their error and never
        reach the second one.
        """
        batch = list(batch)
        input_types = {item_id: type(item).__name__ for item_id, item in batch}
        intermediate = self.first.process_batch(batch)

        second_inputs = [
            (item_id, outcome)
            for item_id, outcome in intermediate
            if not isinstance(outcome, LibError)
        ]
        second_results: Dict[int, Any] = dict(self.second.process_batch(second_inputs))

        results = []
        for item_id, outcome in intermediate:
            if isinstance(outcome, LibError):
                results.append((item_id, outcome))
            elif item_id in second_results:
                results.append((item_id, second_results.pop(item_id)))
            else:
                results.append(
                    (
                        item_id,
                        component_error(
                            input_types.get(item_id, "unknown"),
                            f"Missing result for ID {item_id}",
                        ),
                    )
                )
        return results

    def __repr__(self) -> str:
        return f"ChainedProcessor(first={self.first!r}, second={self.second!r})"


class Pipeline:
    """Runs inputs through a chain of stages."""

    def __init__(self, processor: Optional[Any] = None) -> None:
        self.processor = processor

    def process(self, input: Any) -> Any:
        """Process one input; raises ConfigError when the pipeline is empty."""
        if self.processor is None:
            raise config_error(_NO_STAGES)
        return self.processor.process(input)

    def process_batch(self, inputs: Iterable[Tuple[K, Any]]) -> List[Tuple[K, Any]]:
        """Process ``(key, input)`` pairs; each outcome is an output or a LibError."""
        batch = list(inputs)
        if self.processor is None:
            return [(key, config_error(_NO_STAGES)) for key, _ in batch]

        keys = {idx: key for idx, (key, _) in enumerate(batch)}
        indexed = [(idx, item) for idx, (_, item) in enumerate(batch)]
        return [(keys.pop(idx), outcome) for idx, outcome in self.processor.process_batch(indexed)]

    def __repr__(self) -> str:
        return f"Pipeline(processor={self.processor!r})"


class PipelineBuilder:
    """Builds a pipeline stage by stage."""

    def __init__(self, processor: Optional[Any] = None) -> None:
        self._processor = processor

    @classmethod
    def start_with(cls, stage: Any) -> "PipelineBuilder":
        """Begin a pipeline with its first stage."""
        return cls(stage)

    def then(self, next_stage: Any) -> "PipelineBuilder":
        """Return a builder whose pipeline ends with ``next_stage``."""
        if self._processor is None:
            raise config_error("Cannot chain with an empty pipeline")
        return PipelineBuilder(ChainedProcessor(self._processor, next_stage))

    def build(self) -> Pipeline:
        """Finish the pipeline."""
        return Pipeline(self._processor)

    def build_blocking(self) -> Pipeline:
        """Finish the pipeline for use from the calling thread."""
        return Pipeline(self._processor)