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

"""Embedding manager: timeouts, truncation and validation around a provider.

Embeddings are best-effort. ``embed`` raises EmbeddingError; the
``try_embed`` / ``embed_entry`` helpers log failures and leave the entity
without a vector instead.
"""

import asyncio
import logging
import math
from typing import List, Optional

from codebase_rag.codebase.embeddings.models import BaseEmbeddingModel
from codebase_rag.codebase.models import FileIndexEntry
from codebase_rag.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingManager:
    """Wraps a BaseEmbeddingModel for use by the indexer and RAG service.

    Usage:
        manager = EmbeddingManager(create_embedding_model(config.embedding))
        vector = await manager.embed("def parse(...)")
    """

    def __init__(
        self,
        model: BaseEmbeddingModel,
        timeout: float = 30.0,
        max_symbol_chars: int = 1000,
    ):
        self.model = model
        self.timeout = timeout
        self.max_symbol_chars = max_symbol_chars

    @property
    def dimension(self) -> int:
        return self.model.get_dimension()

    async def embed(self, text: str) -> List[float]:
        """Embed text with the configured timeout.

        Raises:
            EmbeddingError: On provider failure, timeout, or a malformed vector
        """
        if not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        try:
            vector = await asyncio.wait_for(self.model.embed_text(text), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"Embedding timed out after {self.timeout}s") from e
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding provider failed: {e}") from e

        return self._validate(vector)

    def _validate(self, vector: List[float]) -> List[float]:
        try:
            values = [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Provider returned a non-numeric vector: {e}") from e
        if len(values) != self.dimension:
            raise EmbeddingError(
                f"Provider returned {len(values)} dimensions, expected {self.dimension}"
            )
        if not all(math.isfinite(v) for v in values):
            raise EmbeddingError("Provider returned a vector with non-finite values")
        return values

    async def embed_symbol_text(self, text: str) -> List[float]:
        """Embed symbol source, truncated to ``max_symbol_chars``."""
        return await self.embed(text[: self.max_symbol_chars])

    async def try_embed(self, text: str, label: str = "text") -> Optional[List[float]]:
        try:
            return await self.embed(text)
        except EmbeddingError as e:
            logger.warning(f"Failed to embed {label}: {e}")
            return None

    async def embed_entry(
        self,
        entry: FileIndexEntry,
        embed_file: bool = True,
        embed_symbols: bool = True,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> int:
        """Compute file-level and symbol-level embeddings for an entry in place.

        Each vector is assigned whole once computed. Failures leave the
        corresponding entity with ``embedding = None``.

        Returns:
            Number of embeddings computed
        """
        semaphore = semaphore or asyncio.Semaphore(1)
        count = 0

        if embed_file and entry.content.strip():
            async with semaphore:
                vector = await self.try_embed(entry.content, label=entry.path)
            entry.embedding = vector
            count += vector is not None

        if embed_symbols:
            for symbol in entry.symbols:
                text = entry.symbol_source(symbol)
                if not text.strip():
                    continue
                async with semaphore:
                    try:
                        vector = await self.embed_symbol_text(text)
                    except EmbeddingError as e:
                        logger.warning(f"Failed to embed {entry.path}::{symbol.qualified_name}: {e}")
                        vector = None
                symbol.embedding = vector
                count += vector is not None

        return count

    async def close(self) -> None:
        await self.model.close()
