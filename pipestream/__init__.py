"""Multi-stage processing pipelines with worker pools, object pools, retry, circuit-breaker and timeout wrappers, streaming, and a text-analysis example pipeline."""

__version__ = "0.1.0"