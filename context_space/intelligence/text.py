"""
Keyword heuristics shared by the intelligence layer.
"""

from collections.abc import Iterable

from ..constants import PRODUCT_TERMS
from ..identity.scoring import EMAIL_ADDRESS, ORDER_CODE, PHONE_NUMBER


def keyword_similarity(a: str, b: str) -> float:
    """Jaccard overlap of the lowercase whitespace-separated words of two texts."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def count_keywords(text: str, keywords: Iterable[str]) -> int:
    """Number of ``keywords`` occurring anywhere in ``text`` (case-insensitive)."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def extract_entities(text: str) -> list[str]:
    """Order codes, phone numbers and email addresses, deduplicated in order of appearance."""
    found = ORDER_CODE.findall(text) + PHONE_NUMBER.findall(text) + EMAIL_ADDRESS.findall(text)
    return list(dict.fromkeys(found))


def extract_product_terms(text: str) -> list[str]:
    lowered = text.lower()
    return [term for term in PRODUCT_TERMS if term in lowered]
