# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Embedding model providers (text -> vector).

Providers only generate vectors. Storage and ranking live in the index
store and the similarity module, so any provider can back any index.

Every provider reports failures as EmbeddingError, whatever the
underlying SDK or HTTP client raised.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

import httpx

from codebase_rag.config import EmbeddingModelConfig
from codebase_rag.errors import EmbeddingError

logger = logging.getLogger(__name__)


class BaseEmbeddingModel(ABC):
    """Abstract base for embedding models.

    Handles converting text -> vectors.
    """

    def __init__(self, config: EmbeddingModelConfig):
        """Initialize embedding model.

        Args:
            config: Model configuration
        """
        self.config = config
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the model (connect to API, verify model, etc.)."""
        pass

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: If the provider call fails
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts (batch optimized).

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors, in input order
        """
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of embeddings produced by this model."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass


class OpenAIEmbeddingModel(BaseEmbeddingModel):
    """OpenAI embedding model (cloud API).

    Good for: production indexing when sending code to OpenAI is acceptable.
    """

    DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.client = None

    async def initialize(self) -> None:
        """Initialize OpenAI client."""
        if self._initialized:
            return

        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise ImportError("openai not installed. Install with: pip install codebase-rag[openai]")

        if not self.config.api_key:
            raise EmbeddingError("OpenAI API key required")

        kwargs = {"api_key": self.config.api_key, "timeout": self.config.timeout}
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        self.client = AsyncOpenAI(**kwargs)
        self._initialized = True
        logger.info(f"OpenAI embedding model initialized: {self.config.model_name}")

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding using OpenAI API."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts."""
        if not self._initialized:
            await self.initialize()

        try:
            # One request per batch_size texts
            vectors: List[List[float]] = []
            for start in range(0, len(texts), self.config.batch_size):
                chunk = texts[start : start + self.config.batch_size]
                response = await self.client.embeddings.create(
                    model=self.config.model_name, input=chunk
                )
                vectors.extend(item.embedding for item in response.data)
            return vectors
        except Exception as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
        self.client = None
        self._initialized = False


class CohereEmbeddingModel(BaseEmbeddingModel):
    """Cohere embedding model (cloud API).

    Good for: multilingual repositories.
    """

    DIMENSIONS = {
        "embed-english-v3.0": 1024,
        "embed-multilingual-v3.0": 1024,
        "embed-english-light-v3.0": 384,
        "embed-multilingual-light-v3.0": 384,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.client = None

    async def initialize(self) -> None:
        """Initialize Cohere client."""
        if self._initialized:
            return

        try:
            import cohere
        except ImportError:
            raise ImportError("cohere not installed. Install with: pip install codebase-rag[cohere]")

        if not self.config.api_key:
            raise EmbeddingError("Cohere API key required")

        self.client = cohere.AsyncClient(api_key=self.config.api_key, timeout=self.config.timeout)
        self._initialized = True
        logger.info(f"Cohere embedding model initialized: {self.config.model_name}")

    async def embed_text(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not self._initialized:
            await self.initialize()

        try:
            response = await self.client.embed(
                texts=texts, model=self.config.model_name, input_type="search_document"
            )
        except Exception as e:
            raise EmbeddingError(f"Cohere embedding request failed: {e}") from e
        return [list(vector) for vector in response.embeddings]

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        self.client = None
        self._initialized = False


class OllamaEmbeddingModel(BaseEmbeddingModel):
    """Ollama embedding model (local server, no data leaves the machine).

    Supported models include nomic-embed-text (768-dim), mxbai-embed-large
    (1024-dim), bge-m3 (1024-dim) and qwen3-embedding (4096-dim).
    """

    DEFAULT_BASE_URL = "http://localhost:11434"

    DIMENSIONS = {
        "qwen3-embedding:8b": 4096,
        "qwen3-embedding:4b": 2560,
        "qwen3-embedding:0.6b": 1024,
        "snowflake-arctic-embed2": 1024,
        "bge-m3": 1024,
        "mxbai-embed-large": 1024,
        "nomic-embed-text": 768,
        "nomic-embed-text:v1.5": 768,
        "all-minilm": 384,
        "all-minilm:l6-v2": 384,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.base_url = config.base_url or self.DEFAULT_BASE_URL
        self.client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Create the HTTP client and verify the model is pulled."""
        if self._initialized:
            return

        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=self.config.timeout)
        logger.info(
            f"Initializing Ollama embedding model {self.config.model_name} at {self.base_url}"
        )

        try:
            response = await self.client.post(
                "/api/embeddings", json={"model": self.config.model_name, "prompt": "test"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            await self._discard_client()
            if e.response.status_code == 404:
                raise EmbeddingError(
                    f"Ollama model '{self.config.model_name}' not found. "
                    f"Pull it with: ollama pull {self.config.model_name}"
                ) from e
            raise EmbeddingError(f"Ollama API error: {e}") from e
        except httpx.HTTPError as e:
            await self._discard_client()
            raise EmbeddingError(f"Cannot connect to Ollama at {self.base_url}: {e}") from e

        self._initialized = True

    async def _discard_client(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def embed_text(self, text: str) -> List[float]:
        if not self._initialized:
            await self.initialize()

        try:
            response = await self.client.post(
                "/api/embeddings", json={"model": self.config.model_name, "prompt": text}
            )
            response.raise_for_status()
            return response.json()["embedding"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed texts with concurrent requests (Ollama has no batch endpoint)."""
        if not self._initialized:
            await self.initialize()

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.config.batch_size):
            chunk = texts[start : start + self.config.batch_size]
            vectors.extend(await asyncio.gather(*(self.embed_text(t) for t in chunk)))
        return vectors

    def get_dimension(self) -> int:
        if self.config.model_name in self.DIMENSIONS:
            return self.DIMENSIONS[self.config.model_name]
        # "nomic-embed-text:latest" -> "nomic-embed-text"
        base_name = self.config.model_name.split(":")[0]
        return self.DIMENSIONS.get(base_name, self.config.dimension)

    async def close(self) -> None:
        await self._discard_client()
        self._initialized = False


_embedding_models: Dict[str, Type[BaseEmbeddingModel]] = {
    "openai": OpenAIEmbeddingModel,
    "cohere": CohereEmbeddingModel,
    "ollama": OllamaEmbeddingModel,
}


def register_embedding_model(model_type: str, model_class: Type[BaseEmbeddingModel]) -> None:
    """Register an additional provider under ``model_type``."""
    _embedding_models[model_type] = model_class


def create_embedding_model(config: EmbeddingModelConfig) -> BaseEmbeddingModel:
    """Factory function to create embedding model.

    Args:
        config: Model configuration

    Returns:
        Embedding model instance

    Raises:
        ValueError: If model type not recognized
    """
    model_class = _embedding_models.get(config.model_type)
    if not model_class:
        available = ", ".join(_embedding_models.keys())
        raise ValueError(
            f"Unknown embedding model type: {config.model_type}. Available: {available}"
        )

    return model_class(config)
