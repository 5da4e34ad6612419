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

"""Retrieval-augmented context building.

Embeds a natural-language query, retrieves the most similar files and
symbols from the index and formats them as a markdown context block to be
placed in front of a model prompt. Prompt assembly and the generation call
itself belong to the caller.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from codebase_rag.codebase.embeddings.manager import EmbeddingManager
from codebase_rag.codebase.indexer import CodebaseIndexer
from codebase_rag.codebase.models import SimilarityResult
from codebase_rag.config import RAGConfig
from codebase_rag.errors import EmbeddingError

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "### Relevant code from your codebase:\n\n"
TRUNCATION_MARKER = "\n// ... content truncated ..."


class RAGContext(BaseModel):
    """Retrieved context for one query."""

    query: str
    context_text: str = Field(default="", description="Formatted context, empty when nothing matched")
    results: List[SimilarityResult] = Field(default_factory=list)

    @property
    def has_context(self) -> bool:
        return bool(self.context_text)


def truncate_content(content: str, max_length: int) -> str:
    """Truncate content at line boundaries, appending a truncation marker.

    Content at or under ``max_length`` is returned unchanged. Otherwise
    whole lines are kept while they fit; a first line longer than the
    budget is cut mid-line. The result never exceeds ``max_length``.

    Example:
        >>> truncate_content("a\\nb\\nc", 100)
        'a\\nb\\nc'
    """
    if len(content) <= max_length:
        return content

    budget = max_length - len(TRUNCATION_MARKER)
    if budget <= 0:
        return TRUNCATION_MARKER[-max_length:] if max_length > 0 else ""

    kept = ""
    for line in content.split("\n"):
        piece = line + "\n"
        if len(kept) + len(piece) > budget:
            break
        kept += piece

    if not kept:
        kept = content[:budget]
    return kept.rstrip("\n") + TRUNCATION_MARKER


class RAGService:
    """Enhances queries with relevant code from a CodebaseIndexer.

    Usage:
        rag = RAGService(indexer, manager, RAGConfig(top_n=3))
        context = await rag.enhance("where is the config loaded?")
        prompt = context.context_text + question
    """

    def __init__(
        self,
        indexer: CodebaseIndexer,
        embedding_manager: EmbeddingManager,
        config: Optional[RAGConfig] = None,
    ):
        self.indexer = indexer
        self.embedding_manager = embedding_manager
        self.config = config or RAGConfig()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.config.enabled = value

    @property
    def max_chunk_size(self) -> int:
        return self.config.max_chunk_size

    @max_chunk_size.setter
    def max_chunk_size(self, value: int) -> None:
        self.config.max_chunk_size = value

    @property
    def top_n(self) -> int:
        return self.config.top_n

    @top_n.setter
    def top_n(self, value: int) -> None:
        self.config.top_n = value

    @property
    def min_similarity(self) -> float:
        return self.config.min_similarity

    @min_similarity.setter
    def min_similarity(self, value: float) -> None:
        self.config.min_similarity = value

    async def enhance(self, query: str) -> RAGContext:
        """Retrieve and format context for a query.

        Never raises for retrieval problems: a disabled service, an
        embedding failure or no sufficiently similar code all produce an
        empty context.
        """
        if not self.config.enabled:
            return RAGContext(query=query)

        try:
            query_vector = await self.embedding_manager.embed(query)
        except EmbeddingError as e:
            logger.warning(f"Could not embed query, continuing without context: {e}")
            return RAGContext(query=query)

        results = self.indexer.search(
            query_vector,
            top_n=self.config.top_n,
            min_similarity=self.config.min_similarity,
            scope=self.config.scope,
        )
        logger.debug(f"Retrieved {len(results)} results for query")
        return RAGContext(query=query, context_text=self.format_context(results), results=results)

    def _excerpt(self, result: SimilarityResult) -> Optional[str]:
        entry = self.indexer.store.get(result.file_path)
        if entry is None:
            return None
        if result.symbol is not None:
            return entry.symbol_source(result.symbol)
        return entry.content

    def format_context(self, results: List[SimilarityResult]) -> str:
        """Format results as a markdown context block ("" when empty)."""
        if not results:
            return ""

        parts = [CONTEXT_HEADER]
        for result in results:
            content = self._excerpt(result)
            if content is None:
                continue
            entry = self.indexer.store.get(result.file_path)
            fence = "" if entry.language == "plaintext" else entry.language

            header = (
                f"File: {self.indexer.relative_path(result.file_path)} "
                f"(relevance: {result.score * 100:.1f}%"
            )
            if result.symbol is not None:
                header += f", symbol: {result.symbol.name}"
            parts.append(header + ")\n")
            parts.append(f"```{fence}\n")
            parts.append(truncate_content(content, self.config.max_chunk_size))
            parts.append("\n```\n\n")

        if len(parts) == 1:
            return ""
        return "".join(parts)
