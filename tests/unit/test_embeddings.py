"""
Unit tests for embedding providers and the multi-vector embedder.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from openai import OpenAIError

from context_space.embeddings.service import (

    BaseEmbeddingProvider,

    EmbeddingProvider,

    MultiVectorEmbedder,

    OpenAIEmbeddingProvider,

    frustration_text,

    product_text,

)
from context_space.exceptions import ConfigurationError, EmbeddingFailure


class ListProvider(BaseEmbeddingProvider):
    def __init__(self, vectors):
        self.vectors = vectors
        self.inputs = None

    async def embed(self, text, model=None):
        self.inputs = text
        return self.vectors


class TestEmbeddingInputs:
    def test_frustration_text(self):
        assert frustration_text("late again") == "User message: late again"
        assert (
            frustration_text("late again", "delivery")
            == "User is frustrated about: late again. Context: delivery"
        )

    def test_product_text_prefers_order_reference(self):
        assert product_text("Where is order ab123 please") == "Order ab123"

    def test_product_text_terms(self):
        assert product_text("My package and refund") == "refund package"

    def test_product_text_falls_back_to_prefix(self):
        text = "hello " * 40
        assert product_text(text) == text[:100]


class TestMultiVectorEmbedder:
    @pytest.mark.asyncio
    async def test_single_batched_call(self, fake_provider, embedder):
        embedding = await embedder.embed("Where is my package", context="Where is my package")

        assert len(fake_provider.calls) == 1
        intent, frustration, product = fake_provider.calls[0]
        assert intent == "Where is my package"
        assert frustration.startswith("User is frustrated about:")
        assert product == "package"
        assert embedding.dimensions == 4
        assert embedding.frustration_vector == (1.0, 1.0, 1.0, 1.0)

    @pytest.mark.asyncio
    async def test_wrong_vector_count(self):
        embedder = MultiVectorEmbedder(ListProvider([[1.0, 0.0]]))
        with pytest.raises(EmbeddingFailure):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_ragged_vectors(self):
        embedder = MultiVectorEmbedder(ListProvider([[1.0, 0.0], [1.0], [0.0, 1.0]]))
        with pytest.raises(EmbeddingFailure):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_unexpected_dimensions(self):
        vectors = [[1.0, 0.0], [1.0, 0.0], [0.0, 1.0]]
        embedder = MultiVectorEmbedder(ListProvider(vectors), dimensions=3)
        with pytest.raises(EmbeddingFailure) as exc_info:
            await embedder.embed("hello")
        assert exc_info.value.context["expected"] == 3

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self):
        provider = MagicMock(spec=BaseEmbeddingProvider)
        provider.embed = AsyncMock(side_effect=EmbeddingFailure("down"))
        with pytest.raises(EmbeddingFailure):
            await MultiVectorEmbedder(provider).embed("hello")


class TestEmbeddingProvider:
    def test_rejects_non_provider(self):
        with pytest.raises(ConfigurationError):
            EmbeddingProvider(embedding_provider=object())

    @pytest.mark.asyncio
    async def test_wraps_unexpected_errors(self):
        inner = MagicMock(spec=BaseEmbeddingProvider)
        inner.embed = AsyncMock(side_effect=KeyError("data"))
        provider = EmbeddingProvider(embedding_provider=inner)
        with pytest.raises(EmbeddingFailure):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_delegates(self):
        inner = ListProvider([[0.5, 0.5]])
        provider = EmbeddingProvider(embedding_provider=inner)
        assert await provider.embed(["a"]) == [[0.5, 0.5]]

    def test_openai_requires_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            OpenAIEmbeddingProvider()

    @pytest.mark.asyncio
    async def test_openai_error_becomes_embedding_failure(self):
        with patch("context_space.embeddings.service.AsyncOpenAI") as client_cls:
            client = client_cls.return_value
            client.embeddings.create = AsyncMock(side_effect=OpenAIError("rate limited"))
            provider = OpenAIEmbeddingProvider(api_key="sk-test", dimensions=4)

            with pytest.raises(EmbeddingFailure) as exc_info:
                await provider.embed(["a", "b"])

        assert exc_info.value.model == "text-embedding-3-large"

    @pytest.mark.asyncio
    async def test_openai_requests_dimensions(self):
        with patch("context_space.embeddings.service.AsyncOpenAI") as client_cls:
            client = client_cls.return_value
            item = MagicMock(embedding=[0.1, 0.2])
            client.embeddings.create = AsyncMock(return_value=MagicMock(data=[item]))
            provider = OpenAIEmbeddingProvider(api_key="sk-test", dimensions=2)

            vectors = await provider.embed("a")

        assert vectors == [[0.1, 0.2]]
        client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-large", input=["a"], dimensions=2
        )
