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

"""Codebase indexing and retrieval-augmented context.

Builds an in-memory, rebuildable index of a multi-language source tree
(files, declared symbols, cross-file references, embeddings) and uses it
to retrieve relevant code for natural-language queries.

Package Structure:
    config.py                       - Pydantic configuration + YAML loader
    errors.py                       - Exception hierarchy
    codebase/ignore_patterns.py     - Ignore rules (.ragignore, binary files)
    codebase/discovery.py           - File discovery across roots
    codebase/extractors/            - Per-language symbol extractors (ast, tree-sitter)
    codebase/index_store.py         - Per-file entries, generations, lookups
    codebase/symbol_resolver.py     - Name table used to resolve uses
    codebase/reference_resolver.py  - Cross-file reference linking pass
    codebase/embeddings/            - Embedding providers, manager, similarity
    codebase/indexer.py             - Full builds and incremental updates
    codebase/watcher.py             - Watchdog file change notifications
    rag/service.py                  - Context building for prompts

Usage:
    from codebase_rag import CodebaseIndexer, EmbeddingManager, RAGService
    from codebase_rag import create_embedding_model, load_config

    config = load_config("codebase_rag.yaml")
    manager = EmbeddingManager(create_embedding_model(config.embedding))
    async with CodebaseIndexer(["."], embedding_manager=manager, config=config.indexer) as indexer:
        await indexer.build()
        context = await RAGService(indexer, manager, config.rag).enhance("how are configs loaded?")
"""

from codebase_rag.codebase.embeddings import (
    BaseEmbeddingModel,
    EmbeddingManager,
    create_embedding_model,
)
from codebase_rag.codebase.indexer import BuildReport, BuildState, CodebaseIndexer
from codebase_rag.config import (
    CodebaseRAGConfig,
    EmbeddingModelConfig,
    IndexerConfig,
    RAGConfig,
    load_config,
)
from codebase_rag.errors import (
    CodebaseRAGError,
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    ExtractorUnavailableError,
    ParseError,
    StaleGenerationError,
)
from codebase_rag.rag import RAGContext, RAGService

__version__ = "0.1.0"

__all__ = [
    "BaseEmbeddingModel",
    "EmbeddingManager",
    "create_embedding_model",
    "BuildReport",
    "BuildState",
    "CodebaseIndexer",
    "CodebaseRAGConfig",
    "EmbeddingModelConfig",
    "IndexerConfig",
    "RAGConfig",
    "load_config",
    "CodebaseRAGError",
    "ConfigurationError",
    "DimensionMismatchError",
    "EmbeddingError",
    "ExtractorUnavailableError",
    "ParseError",
    "StaleGenerationError",
    "RAGContext",
    "RAGService",
]
