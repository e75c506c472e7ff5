"""
Identity resolution: pseudo identities, similarity signals and hashing.
"""

from .hashing import Hasher, sha256_hex
from .resolver import IdentityResolver, MatchScore, generate_pseudo_user_id
from .scoring import (
    DEFAULT_SIGNALS,
    MatchInputs,
    SimilaritySignal,
    behavior_similarity,
    cosine_similarity,
    extract_identifiers,
    identifier_overlap,
    metadata_similarity,
    vector_similarity,
    writing_style,
)

__all__ = [
    "Hasher",
    "sha256_hex",
    "IdentityResolver",
    "MatchScore",
    "generate_pseudo_user_id",
    "DEFAULT_SIGNALS",
    "MatchInputs",
    "SimilaritySignal",
    "cosine_similarity",
    "vector_similarity",
    "metadata_similarity",
    "behavior_similarity",
    "writing_style",
    "extract_identifiers",
    "identifier_overlap",
]
