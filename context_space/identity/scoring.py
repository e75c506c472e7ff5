"""
Similarity signals used to decide whether an incoming session belongs to
an existing pseudo identity.

Each signal is a plain function of ``MatchInputs`` returning a value in
[0, 1]. ``DEFAULT_SIGNALS`` pairs them with their weights; callers may
pass a different list to the resolver to replace any heuristic.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

from ..constants import (
    BEHAVIOR_WEIGHT,
    IDENTIFIER_WEIGHT,
    MESSAGE_LENGTH_SCALE,
    METADATA_WEIGHT,
    VECTOR_WEIGHT,
)
from ..core.types import (
    LongTermMemoryPoint,
    MultiVectorEmbedding,
    SessionMetadata,
    ShortTermVectorPoint,
)

ORDER_CODE = re.compile(r"\b([A-Z]{2,}\d+|[A-Z]+-\d+)\b")
PHONE_NUMBER = re.compile(r"\b\d{10,}\b")
EMAIL_ADDRESS = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PUNCTUATION = re.compile(r"[.!?,;:]")
CAPITALS = re.compile(r"[A-Z]")

HistoricalCandidate = ShortTermVectorPoint | LongTermMemoryPoint


@dataclass
class MatchInputs:
    """Everything the signals may look at for one resolution."""

    embedding: MultiVectorEmbedding
    metadata: SessionMetadata
    current_messages: Sequence[str]
    candidates: Sequence[HistoricalCandidate]
    historical_metadata: SessionMetadata | None = None
    historical_messages: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class SimilaritySignal:
    name: str
    weight: float
    score: Callable[[MatchInputs], float]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Vectors of different length, and zero-norm vectors, score 0.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


def vector_similarity(inputs: MatchInputs) -> float:
    """Mean cosine between the incoming intent vector and each candidate's."""
    if not inputs.candidates:
        return 0.0
    similarities = [
        cosine_similarity(inputs.embedding.intent_vector, candidate.intent_vector)
        for candidate in inputs.candidates
    ]
    return sum(similarities) / len(similarities)


def metadata_similarity(inputs: MatchInputs) -> float:
    """Share of ip/geo/lang fields present on both sides that are equal."""
    if inputs.historical_metadata is None:
        return 0.0
    current = inputs.metadata.comparable()
    historical = inputs.historical_metadata.comparable()
    shared = [name for name in current if name in historical]
    if not shared:
        return 0.0
    matches = sum(1 for name in shared if current[name] == historical[name])
    return matches / len(shared)


@dataclass(frozen=True)
class WritingStyle:
    avg_length: float
    punctuation_density: float
    capital_density: float


def writing_style(messages: Sequence[str]) -> WritingStyle | None:
    """Per-speaker writing statistics, or None for an empty message set."""
    if not messages:
        return None
    total_chars = sum(len(m) for m in messages)
    if total_chars == 0:
        return WritingStyle(0.0, 0.0, 0.0)
    punctuation = sum(len(PUNCTUATION.findall(m)) for m in messages)
    capitals = sum(len(CAPITALS.findall(m)) for m in messages)
    return WritingStyle(
        avg_length=total_chars / len(messages),
        punctuation_density=punctuation / total_chars,
        capital_density=capitals / total_chars,
    )


def behavior_similarity(inputs: MatchInputs) -> float:
    """Mean of the length, punctuation and capitalization similarities."""
    current = writing_style(inputs.current_messages)
    historical = writing_style(inputs.historical_messages)
    if current is None or historical is None:
        return 0.0
    length = 1 - min(1.0, abs(current.avg_length - historical.avg_length) / MESSAGE_LENGTH_SCALE)
    punctuation = 1 - abs(current.punctuation_density - historical.punctuation_density)
    capitals = 1 - abs(current.capital_density - historical.capital_density)
    return (length + punctuation + capitals) / 3


def extract_identifiers(text: str) -> set[str]:
    """Order codes, long digit runs and email addresses found in ``text``."""
    identifiers: set[str] = set()
    identifiers.update(ORDER_CODE.findall(text))
    identifiers.update(PHONE_NUMBER.findall(text))
    identifiers.update(EMAIL_ADDRESS.findall(text))
    return identifiers


def jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def identifier_overlap(inputs: MatchInputs) -> float:
    """Best Jaccard overlap of identifiers against any single historical text."""
    current = extract_identifiers(" ".join(inputs.current_messages))
    if not current:
        return 0.0
    return max(
        (jaccard(current, extract_identifiers(text)) for text in inputs.historical_messages),
        default=0.0,
    )


DEFAULT_SIGNALS: tuple[SimilaritySignal, ...] = (
    SimilaritySignal("vector", VECTOR_WEIGHT, vector_similarity),
    SimilaritySignal("metadata", METADATA_WEIGHT, metadata_similarity),
    SimilaritySignal("behavior", BEHAVIOR_WEIGHT, behavior_similarity),
    SimilaritySignal("identifier", IDENTIFIER_WEIGHT, identifier_overlap),
)
