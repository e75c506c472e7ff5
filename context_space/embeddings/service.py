"""
Embedding providers and the multi-vector embedder.

Every inbound message is embedded three times in one batched provider
call: once for what is being asked (intent), once for its emotional tone
(frustration) and once for its subject matter (product). The provider
must return the same dimensionality for every call in a deployment.
"""

import logging
import os
import re
import time
from abc import ABC, abstractmethod

from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError

from ..constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_MODEL,
    PRODUCT_EMBEDDING_TERMS,
    SUMMARY_MAX_CHARS,
)
from ..core.types import MultiVectorEmbedding
from ..exceptions import ConfigurationError, EmbeddingFailure

logger = logging.getLogger(__name__)

ORDER_REFERENCE = re.compile(r"order\s+([A-Z0-9]+)", re.IGNORECASE)


class BaseEmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.
    """

    @abstractmethod
    async def embed(self, text: str | list[str], model: str | None = None) -> list[list[float]]:
        """
        Generate embeddings for text.

        Args:
            text: A single string or list of strings to embed
            model: Optional model identifier

        Returns:
            One vector per input string, in input order

        Raises:
            EmbeddingFailure: If the provider call fails
        """
        pass


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """
    OpenAI embedding provider. Requires OPENAI_API_KEY.
    """

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSIONS,
    ):
        """
        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            default_model: Default embedding model
            dimensions: Requested output size (text-embedding-3 models only)
        """
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key not found. Set OPENAI_API_KEY environment variable.",
                config_key="OPENAI_API_KEY",
            )

        self.client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model
        self.dimensions = dimensions

    async def embed(self, text: str | list[str], model: str | None = None) -> list[list[float]]:
        """Generate embeddings using OpenAI."""
        model = model or self.default_model
        if isinstance(text, str):
            text = [text]

        kwargs = {"dimensions": self.dimensions} if self.dimensions else {}
        try:
            response = await self.client.embeddings.create(model=model, input=text, **kwargs)
            return [item.embedding for item in response.data]
        except (OpenAIError, AttributeError, TypeError, ValueError, ConnectionError, OSError) as e:
            logger.exception(f"OpenAI embedding failed: {e}")
            raise EmbeddingFailure(f"OpenAI embedding failed: {e}", model=model) from e


class AzureOpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """
    Azure OpenAI embedding provider.

    Requires AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT; the model name
    is the deployment name.
    """

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        api_version: str | None = None,
        default_model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSIONS,
    ):
        api_key = api_key or os.getenv("AZURE_OPENAI_API_KEY")
        endpoint = endpoint or os.getenv("AZURE_OPENAI_ENDPOINT")
        api_version = (
            api_version
            or os.getenv("AZURE_OPENAI_API_VERSION")
            or os.getenv("OPENAI_API_VERSION", "2024-02-15-preview")
        )

        if not api_key or not endpoint:
            raise ConfigurationError(
                "Azure OpenAI credentials not found. Set AZURE_OPENAI_API_KEY and "
                "AZURE_OPENAI_ENDPOINT environment variables.",
                config_key="AZURE_OPENAI_API_KEY",
            )

        self.client = AsyncAzureOpenAI(
            api_key=api_key, api_version=api_version, azure_endpoint=endpoint
        )
        self.default_model = default_model
        self.dimensions = dimensions

    async def embed(self, text: str | list[str], model: str | None = None) -> list[list[float]]:
        """Generate embeddings using Azure OpenAI."""
        model = model or self.default_model
        if isinstance(text, str):
            text = [text]

        kwargs = {"dimensions": self.dimensions} if self.dimensions else {}
        try:
            response = await self.client.embeddings.create(model=model, input=text, **kwargs)
            return [item.embedding for item in response.data]
        except (OpenAIError, AttributeError, TypeError, ValueError, ConnectionError, OSError) as e:
            logger.exception(f"Azure OpenAI embedding failed: {e}")
            raise EmbeddingFailure(f"Azure OpenAI embedding failed: {e}", model=model) from e


def _detect_provider_from_env() -> str:
    """
    Returns:
        "azure" if Azure OpenAI credentials are present, otherwise "openai"
    """
    if os.getenv("AZURE_OPENAI_API_KEY") and os.getenv("AZURE_OPENAI_ENDPOINT"):
        return "azure"
    return "openai"


class EmbeddingProvider:
    """
    Embedding provider wrapper that times calls and normalizes failures.

    Auto-detects OpenAI or Azure OpenAI from environment variables when no
    provider is passed.

    Example:
        provider = EmbeddingProvider()
        vectors = await provider.embed(["first", "second"])
    """

    def __init__(
        self,
        embedding_provider: BaseEmbeddingProvider | None = None,
        default_model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSIONS,
        api_key: str | None = None,
    ):
        if embedding_provider is not None:
            if not isinstance(embedding_provider, BaseEmbeddingProvider):
                raise ConfigurationError(
                    f"embedding_provider must be an instance of BaseEmbeddingProvider, "
                    f"got {type(embedding_provider)}"
                )
            self.embedding_provider = embedding_provider
        elif _detect_provider_from_env() == "azure":
            self.embedding_provider = AzureOpenAIEmbeddingProvider(
                default_model=default_model, dimensions=dimensions
            )
            logger.info(f"Auto-detected Azure OpenAI embedding provider (model: {default_model})")
        else:
            self.embedding_provider = OpenAIEmbeddingProvider(
                api_key=api_key, default_model=default_model, dimensions=dimensions
            )
            logger.info(f"Auto-detected OpenAI embedding provider (model: {default_model})")
        self.default_model = default_model

    async def embed(self, text: str | list[str], model: str | None = None) -> list[list[float]]:
        start_time = time.time()
        try:
            vectors = await self.embedding_provider.embed(text, model)
        except EmbeddingFailure:
            raise
        except (AttributeError, TypeError, ValueError, RuntimeError, KeyError) as e:
            logger.exception(f"EMBED_FAILED: {e}")
            raise EmbeddingFailure(f"Embedding failed: {e}", model=model) from e

        item_count = 1 if isinstance(text, str) else len(text)
        logger.info(
            "EMBED_SUCCESS",
            extra={"count": item_count, "latency_sec": round(time.time() - start_time, 3)},
        )
        return vectors


def frustration_text(text: str, context: str | None = None) -> str:
    """Input embedded for the frustration/tone vector."""
    if context:
        return f"User is frustrated about: {text}. Context: {context}"
    return f"User message: {text}"


def product_text(text: str) -> str:
    """Input embedded for the product vector."""
    match = ORDER_REFERENCE.search(text)
    if match:
        return f"Order {match.group(1)}"
    lowered = text.lower()
    terms = [term for term in PRODUCT_EMBEDDING_TERMS if term in lowered]
    if terms:
        return " ".join(terms)
    return text[:SUMMARY_MAX_CHARS]


class MultiVectorEmbedder:
    """
    Produces the MultiVectorEmbedding of a message.

    Args:
        provider: Anything with ``async embed(list[str], model) -> list[list[float]]``
        model: Model requested for every call
        dimensions: Expected dimensionality; None accepts whatever the
            provider returns as long as all three vectors agree
    """

    def __init__(
        self,
        provider: BaseEmbeddingProvider | EmbeddingProvider,
        model: str | None = None,
        dimensions: int | None = None,
    ):
        self.provider = provider
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str, context: str | None = None) -> MultiVectorEmbedding:
        """
        Embed ``text`` as intent, frustration and product vectors.

        Args:
            text: Message text
            context: Optional context (usually the message summary) folded
                into the frustration input

        Raises:
            EmbeddingFailure: If the provider fails or returns vectors of the
                wrong count or size
        """
        inputs = [text, frustration_text(text, context), product_text(text)]
        vectors = await self.provider.embed(inputs, self.model)

        if not isinstance(vectors, list) or len(vectors) != len(inputs):
            raise EmbeddingFailure(
                f"Provider returned {len(vectors) if isinstance(vectors, list) else 'no'} "
                f"vectors for {len(inputs)} inputs",
                model=self.model,
            )
        sizes = {len(v) for v in vectors}
        if len(sizes) != 1 or 0 in sizes:
            raise EmbeddingFailure(
                f"Provider returned vectors of inconsistent size: {sorted(sizes)}",
                model=self.model,
            )
        size = sizes.pop()
        if self.dimensions is not None and size != self.dimensions:
            raise EmbeddingFailure(
                f"Expected {self.dimensions}-dimensional vectors, got {size}",
                model=self.model,
                context={"expected": self.dimensions, "actual": size},
            )
        return MultiVectorEmbedding.from_lists(*vectors)
