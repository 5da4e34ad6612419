# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Embedding providers, the embedding manager and similarity search."""

from codebase_rag.codebase.embeddings.manager import EmbeddingManager
from codebase_rag.codebase.embeddings.models import (
    BaseEmbeddingModel,
    CohereEmbeddingModel,
    OllamaEmbeddingModel,
    OpenAIEmbeddingModel,
    create_embedding_model,
    register_embedding_model,
)
from codebase_rag.codebase.embeddings.similarity import cosine_similarity, search

__all__ = [
    "EmbeddingManager",
    "BaseEmbeddingModel",
    "CohereEmbeddingModel",
    "OllamaEmbeddingModel",
    "OpenAIEmbeddingModel",
    "create_embedding_model",
    "register_embedding_model",
    "cosine_similarity",
    "search",
]
