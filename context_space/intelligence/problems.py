"""
Problem extraction.

Turns a message into an ExtractedProblem when it mentions a problem
indicator: category by first matching keyword set, whether an automated
agent can resolve it, a criticality score and how often it has recurred.
"""

import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..constants import (
    CRITICAL_KEYWORD_BOOST,
    CRITICAL_PROBLEM_CRITICALITY,
    CRITICAL_PROBLEM_KEYWORDS,
    CRITICAL_PROBLEM_OCCURRENCES,
    NOT_SOLVABLE_BOOST,
    OCCURRENCE_SIMILARITY_THRESHOLD,
    PROBLEM_INDICATORS,
    PROBLEM_SUMMARY_MAX_CHARS,
    SIMILAR_HISTORY_BOOST,
    SUMMARY_KEYWORDS,
)
from ..core.types import LongTermMemoryPoint, ShortTermRecord
from .text import contains_any, count_keywords, extract_entities, keyword_similarity
from .urgency import UrgencyScore

# First match wins.
PROBLEM_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("delivery", ("delivery", "shipment", "shipping", "tracking", "package", "arrived")),
    ("payment", ("payment", "charge", "billing", "invoice", "transaction", "card")),
    ("refund", ("refund", "return", "money back", "cancel")),
    ("technical", ("error", "bug", "broken", "not working", "crash", "technical")),
    ("account", ("account", "login", "password", "access", "profile")),
    ("product_quality", ("quality", "defective", "damaged", "broken product")),
    ("billing", ("bill", "invoice", "charge", "payment")),
)
DEFAULT_CATEGORY = "other"

AGENT_SOLVABLE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"order.*status",
        r"tracking",
        r"where.*order",
        r"update.*account",
        r"change.*password",
        r"forgot.*password",
        r"how.*to",
        r"what.*is",
    )
)

HUMAN_REQUIRED_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"refund",
        r"cancel.*order",
        r"complaint",
        r"legal",
        r"sue",
        r"manager",
        r"supervisor",
        r"escalate",
        r"unacceptable",
        r"demand",
    )
)

SENTENCE_BOUNDARY = re.compile(r"[.!?]+")


@dataclass
class ExtractedProblem:
    id: str
    summary: str
    description: str
    category: str
    criticality: float
    can_agent_solve: bool
    entities: list[str]
    urgency: str
    first_seen: int
    last_seen: int
    occurrence_count: int = 1
    channels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "summary": self.summary,
            "description": self.description,
            "category": self.category,
            "criticality": round(self.criticality, 4),
            "can_agent_solve": self.can_agent_solve,
            "entities": list(self.entities),
            "urgency": self.urgency,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "occurrence_count": self.occurrence_count,
            "channels": list(self.channels),
        }


def is_critical_problem(problem: ExtractedProblem) -> bool:
    return (
        problem.criticality >= CRITICAL_PROBLEM_CRITICALITY
        or not problem.can_agent_solve
        or problem.occurrence_count >= CRITICAL_PROBLEM_OCCURRENCES
    )


def problem_id(channel: str, timestamp: int, text: str) -> str:
    slug = re.sub(r"\s+", "-", text[:20]).lower()
    return f"problem:{channel}:{timestamp}:{slug}"


class ProblemExtractor:
    """
    Keyword/regex problem extraction.

    ``categories``, ``agent_patterns`` and ``human_patterns`` can be replaced
    per instance; methods can be overridden for learned classifiers.
    """

    def __init__(
        self,
        categories: Sequence[tuple[str, Sequence[str]]] = PROBLEM_CATEGORIES,
        agent_patterns: Sequence[re.Pattern] = AGENT_SOLVABLE_PATTERNS,
        human_patterns: Sequence[re.Pattern] = HUMAN_REQUIRED_PATTERNS,
    ):
        self.categories = tuple((name, tuple(words)) for name, words in categories)
        self.agent_patterns = tuple(agent_patterns)
        self.human_patterns = tuple(human_patterns)

    def has_problem_indicator(self, text: str) -> bool:
        return contains_any(text, PROBLEM_INDICATORS)

    def summarize(self, text: str) -> str:
        """The sentence mentioning the most problem keywords, truncated."""
        sentences = [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s.strip()]
        if not sentences:
            return text.strip()[:PROBLEM_SUMMARY_MAX_CHARS]
        best = max(sentences, key=lambda s: count_keywords(s, SUMMARY_KEYWORDS))
        return best[:PROBLEM_SUMMARY_MAX_CHARS]

    def categorize(self, text: str) -> str:
        for name, keywords in self.categories:
            if contains_any(text, keywords):
                return name
        return DEFAULT_CATEGORY

    def can_agent_solve(self, text: str, urgency: UrgencyScore) -> bool:
        if urgency.level in ("high", "critical"):
            return False
        if any(p.search(text) for p in self.human_patterns):
            return False
        if any(p.search(text) for p in self.agent_patterns):
            return True
        return urgency.level in ("low", "medium")

    def criticality(
        self,
        text: str,
        urgency: UrgencyScore,
        can_agent_solve: bool,
        long_term: Sequence[LongTermMemoryPoint],
    ) -> float:
        value = urgency.score
        if not can_agent_solve:
            value += NOT_SOLVABLE_BOOST
        if long_term:
            value += SIMILAR_HISTORY_BOOST
        if contains_any(text, CRITICAL_PROBLEM_KEYWORDS):
            value += CRITICAL_KEYWORD_BOOST
        return min(1.0, max(0.0, value))

    def occurrence_count(
        self,
        summary: str,
        short_term: ShortTermRecord | None,
        long_term: Sequence[LongTermMemoryPoint],
    ) -> int:
        count = 1
        if short_term is not None:
            count += sum(
                1
                for message in short_term.messages
                if keyword_similarity(summary, message.text) >= OCCURRENCE_SIMILARITY_THRESHOLD
            )
        count += sum(
            1
            for point in long_term
            if keyword_similarity(summary, point.summary) >= OCCURRENCE_SIMILARITY_THRESHOLD
        )
        return count

    def extract_problem(
        self,
        text: str,
        channel: str,
        urgency: UrgencyScore,
        short_term: ShortTermRecord | None = None,
        long_term: Sequence[LongTermMemoryPoint] = (),
        timestamp: int | None = None,
    ) -> ExtractedProblem | None:
        """
        ExtractedProblem for ``text``, or None when it names no problem.
        """
        if not self.has_problem_indicator(text):
            return None

        timestamp = timestamp if timestamp is not None else int(time.time())
        summary = self.summarize(text)
        solvable = self.can_agent_solve(text, urgency)
        return ExtractedProblem(
            id=problem_id(channel, timestamp, text),
            summary=summary,
            description=text,
            category=self.categorize(text),
            criticality=self.criticality(text, urgency, solvable, long_term),
            can_agent_solve=solvable,
            entities=extract_entities(text),
            urgency=urgency.level,
            first_seen=timestamp,
            last_seen=timestamp,
            occurrence_count=self.occurrence_count(summary, short_term, long_term),
            channels=[channel],
        )
