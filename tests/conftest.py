"""
Pytest configuration and shared fixtures for CONTEXT_SPACE tests.

This module provides:
- A deterministic embedding provider
- In-process MemoryContext / MemoryPipeline fixtures
- Mock Motor collection fixtures
"""

import hashlib
from unittest.mock import AsyncMock, MagicMock

import pytest

from context_space.config import MemoryConfig
from context_space.core.context import MemoryContext
from context_space.embeddings.service import BaseEmbeddingProvider, MultiVectorEmbedder
from context_space.observability.logging import clear_correlation_id, clear_request_context
from context_space.observability.metrics import get_metrics_collector
from context_space.pipeline.memory_pipeline import MemoryPipeline

TEST_DIMENSIONS = 4


class FakeEmbeddingProvider(BaseEmbeddingProvider):
    """
    Deterministic provider.

    Intent and product inputs become bag-of-words bucket vectors; the
    frustration input becomes a constant vector of ``frustration``.
    """

    def __init__(self, dimensions: int = TEST_DIMENSIONS, frustration: float = 1.0):
        self.dimensions = dimensions
        self.frustration = frustration
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        if text.startswith(("User is frustrated about:", "User message:")):
            return [self.frustration] * self.dimensions
        vector = [0.0] * self.dimensions
        for word in text.lower().split():
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        return vector

    async def embed(self, text, model=None):
        texts = [text] if isinstance(text, str) else list(text)
        self.calls.append(texts)
        return [self._vector(t) for t in texts]


@pytest.fixture(autouse=True)
def reset_observability():
    """Isolate metrics and logging context between tests."""
    get_metrics_collector().reset()
    clear_request_context()
    clear_correlation_id()
    yield
    clear_request_context()
    clear_correlation_id()


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def make_embedder():
    """Factory for embedders with a chosen frustration value."""

    def _make(frustration: float = 1.0, dimensions: int = TEST_DIMENSIONS):
        provider = FakeEmbeddingProvider(dimensions=dimensions, frustration=frustration)
        return MultiVectorEmbedder(provider, dimensions=dimensions)

    return _make


@pytest.fixture
def embedder(fake_provider) -> MultiVectorEmbedder:
    return MultiVectorEmbedder(fake_provider, dimensions=TEST_DIMENSIONS)


@pytest.fixture
def memory_config() -> MemoryConfig:
    return MemoryConfig(
        mongo_uri="mongodb://localhost:27017",
        db_name="context_space_test",
        redis_url="redis://localhost:6379/0",
        embedding_dimensions=TEST_DIMENSIONS,
        retrieval_top_k=10,
        store_read_timeout_ms=0,
    )


@pytest.fixture
def memory_context(embedder, memory_config) -> MemoryContext:
    return MemoryContext.in_memory(embedder, memory_config)


@pytest.fixture
def pipeline(memory_context) -> MemoryPipeline:
    return MemoryPipeline(memory_context)


@pytest.fixture
def mock_mongo_collection() -> MagicMock:
    """Motor collection double with async CRUD methods."""
    collection = MagicMock()
    collection.name = "test_collection"
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.replace_one = AsyncMock(return_value=MagicMock(modified_count=1))
    collection.update_one = AsyncMock(
        return_value=MagicMock(matched_count=0, modified_count=0, upserted_id=None)
    )
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=0))
    collection.count_documents = AsyncMock(return_value=0)
    collection.create_index = AsyncMock(return_value="index_name")
    collection.create_search_index = AsyncMock(return_value="intent_vector_index")
    return collection


@pytest.fixture
def make_cursor():
    """Factory for cursor doubles whose sort/limit chain and to_list returns ``docs``."""

    def _make(docs):
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.to_list = AsyncMock(return_value=docs)
        return cursor

    return _make
