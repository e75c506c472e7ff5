"""
Embedding generation.

Provider abstraction over OpenAI / Azure OpenAI plus the multi-vector
embedder used by the memory pipeline.
"""

from .service import (
    AzureOpenAIEmbeddingProvider,
    BaseEmbeddingProvider,
    EmbeddingProvider,
    MultiVectorEmbedder,
    OpenAIEmbeddingProvider,
    frustration_text,
    product_text,
)

__all__ = [
    "BaseEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "AzureOpenAIEmbeddingProvider",
    "EmbeddingProvider",
    "MultiVectorEmbedder",
    "frustration_text",
    "product_text",
]
