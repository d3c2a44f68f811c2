"""Text analysis stages: tokenising, stop-word removal and word statistics."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List

from .pipeline import Pipeline, PipelineBuilder
from .stage import Stage, StageConfig, StageImpl

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "but", "or", "for", "nor", "on", "at", "to", "from", "by",
        "in", "out", "is", "are", "am", "was", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "of", "with", "this", "that", "these", "those",
        "it", "its", "they", "them", "their", "we", "us", "our", "i", "me", "my",
    }
)

WORDS = (
    "the", "quick", "brown", "fox", "jumps", "over", "lazy", "dog", "hello", "world",
    "rust", "programming", "language", "pipeline", "processing", "system", "text",
    "analysis", "tokenizer", "stop", "words", "remover", "statistics", "performance",
    "benchmark", "test", "parallel", "concurrent", "sequential", "batch", "stream",
    "data", "input", "output", "result", "error", "success", "failure", "try", "catch",
    "handle", "exception", "function", "method", "class", "struct", "enum", "trait",
    "implementation", "module", "crate", "package",
)

PUNCTUATION = (".", ",", "!", "?", ";", ":", "-", "(", ")", '"')


@dataclass(frozen=True)
class TextStats:
    """Word statistics of a text."""

    word_count: int
    unique_word_count: int
    avg_word_length: float


class Tokenizer(StageImpl):
    """Splits text into lower-case words, treating punctuation as whitespace."""

    def process(self, input: str) -> List[str]:
        normalized = "".join(c if c.isalnum() or c.isspace() else " " for c in input)
        return [word.lower() for word in normalized.split()]


class StopWordRemover(StageImpl):
    """Drops common English stop words."""

    def process(self, input: List[str]) -> List[str]:
        return [word for word in input if word not in STOP_WORDS]


class TextAnalyzer(StageImpl):
    """Counts words and unique words and averages word length in UTF-8 bytes."""

    def process(self, input: List[str]) -> TextStats:
        word_count = len(input)
        total = sum(len(word.encode("utf-8")) for word in input)
        average = total / word_count if word_count else 0.0
        return TextStats(word_count, len(set(input)), average)


def generate_random_text(word_count: int, rng: random.Random) -> str:
    """Build ``word_count`` random words, about one in five followed by punctuation."""
    pieces = []
    for _ in range(word_count):
        word = rng.choice(WORDS)
        if rng.random() < 0.2:
            word += rng.choice(PUNCTUATION)
        pieces.append(word)
    return " ".join(pieces)


def build_text_pipeline() -> Pipeline:
    """Tokenizer, stop-word remover and analyzer chained with default stage settings."""
    return (
        PipelineBuilder.start_with(Stage(Tokenizer(), StageConfig()))
        .then(Stage(StopWordRemover(), StageConfig()))
        .then(Stage(TextAnalyzer(), StageConfig()))
        .build_blocking()
    )