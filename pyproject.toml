[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pipestream"
version = "0.1.0"
description = "Multi-stage processing pipelines with worker pools, object pools, resilience wrappers and streaming."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "pipeline",
    "stages",
    "worker-pool",
    "object-pool",
    "circuit-breaker",
    "retry",
    "streaming",
    "batch-processing",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pipestream = "pipestream.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pipestream"]

[tool.hatch.build.targets.sdist]
include = ["pipestream", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
