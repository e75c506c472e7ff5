"""
Urgency estimation.

Four factors, each in [0, 1], combined with fixed weights:

- frustration: magnitude of the frustration vector per dimension, scaled
- repetition: earlier messages that overlap with this one
- time_sensitive: time pressure keywords ("asap", "deadline", ...)
- escalation_keywords: escalation vocabulary ("manager", "refund", ...)
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..constants import (
    ESCALATION_KEYWORD_STEP,
    ESCALATION_KEYWORDS,
    FRUSTRATION_MAGNITUDE_SCALE,
    LONG_TERM_REPETITION_CAP,
    LONG_TERM_REPETITION_STEP,
    REPETITION_SIMILARITY_THRESHOLD,
    SHORT_TERM_REPETITION_CAP,
    SHORT_TERM_REPETITION_STEP,
    TIME_KEYWORD_STEP,
    TIME_SENSITIVE_KEYWORDS,
    URGENCY_CRITICAL_THRESHOLD,
    URGENCY_HIGH_THRESHOLD,
    URGENCY_LEVEL_WEIGHTS,
    URGENCY_MEDIUM_THRESHOLD,
    URGENCY_WEIGHTS,
)
from ..core.types import LongTermMemoryPoint, ShortTermRecord
from .text import count_keywords, keyword_similarity

URGENCY_LEVELS = ("low", "medium", "high", "critical")


@dataclass
class UrgencyScore:
    score: float
    level: str
    factors: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": round(self.score, 4),
            "level": self.level,
            "factors": {k: round(v, 4) for k, v in self.factors.items()},
        }


def urgency_level(score: float) -> str:
    if score >= URGENCY_CRITICAL_THRESHOLD:
        return "critical"
    if score >= URGENCY_HIGH_THRESHOLD:
        return "high"
    if score >= URGENCY_MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def get_urgency_priority(urgency: UrgencyScore) -> float:
    """Sort key for work queues: level first, score as tie-breaker."""
    return URGENCY_LEVEL_WEIGHTS[urgency.level] * 1000 + urgency.score * 100


class UrgencyEstimator:
    """
    Rule-based urgency scoring.

    Subclass and override a ``*_factor`` method, or pass other keyword
    lists, to change a heuristic without touching the pipeline.
    """

    def __init__(
        self,
        weights: dict[str, float] | None = None,
        time_keywords: Sequence[str] = TIME_SENSITIVE_KEYWORDS,
        escalation_keywords: Sequence[str] = ESCALATION_KEYWORDS,
    ):
        self.weights = dict(weights or URGENCY_WEIGHTS)
        self.time_keywords = tuple(time_keywords)
        self.escalation_keywords = tuple(escalation_keywords)

    def frustration_factor(self, frustration_vector: Sequence[float]) -> float:
        if not frustration_vector:
            return 0.0
        magnitude = math.sqrt(sum(v * v for v in frustration_vector))
        return min(1.0, magnitude / len(frustration_vector) * FRUSTRATION_MAGNITUDE_SCALE)

    def repetition_factor(
        self,
        text: str,
        short_term: ShortTermRecord | None,
        long_term: Sequence[LongTermMemoryPoint],
    ) -> float:
        short_repeats = 0
        if short_term is not None:
            short_repeats = sum(
                1
                for message in short_term.messages
                if message.role == "user"
                and keyword_similarity(text, message.text) > REPETITION_SIMILARITY_THRESHOLD
            )
        long_repeats = sum(
            1
            for point in long_term
            if keyword_similarity(text, point.summary) > REPETITION_SIMILARITY_THRESHOLD
        )
        short_part = min(SHORT_TERM_REPETITION_CAP, short_repeats * SHORT_TERM_REPETITION_STEP)
        long_part = min(LONG_TERM_REPETITION_CAP, long_repeats * LONG_TERM_REPETITION_STEP)
        return min(1.0, short_part + long_part)

    def time_sensitive_factor(self, text: str) -> float:
        return min(1.0, count_keywords(text, self.time_keywords) * TIME_KEYWORD_STEP)

    def escalation_keyword_factor(self, text: str) -> float:
        return min(1.0, count_keywords(text, self.escalation_keywords) * ESCALATION_KEYWORD_STEP)

    def calculate_urgency(
        self,
        text: str,
        frustration_vector: Sequence[float],
        short_term: ShortTermRecord | None = None,
        long_term: Sequence[LongTermMemoryPoint] = (),
    ) -> UrgencyScore:
        factors = {
            "frustration": self.frustration_factor(frustration_vector),
            "repetition": self.repetition_factor(text, short_term, long_term),
            "time_sensitive": self.time_sensitive_factor(text),
            "escalation_keywords": self.escalation_keyword_factor(text),
        }
        score = sum(self.weights[name] * value for name, value in factors.items())
        score = min(1.0, max(0.0, score))
        return UrgencyScore(score=score, level=urgency_level(score), factors=factors)
