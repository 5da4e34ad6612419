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

"""Configuration models for indexing, embeddings and retrieval.

Configuration can be built in code or loaded from a YAML file:

```yaml
indexer:
  generate_embeddings: true
  extra_ignore_patterns: ["generated/"]
rag:
  top_n: 5
  min_similarity: 0.7
embedding:
  model_type: openai
  model_name: text-embedding-3-small
```
"""

import logging
import os
from pathlib import Path
from typing import List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from codebase_rag.errors import ConfigurationError

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "CODEBASE_RAG_EMBEDDING_API_KEY"


class EmbeddingModelConfig(BaseModel):
    """Configuration for the embedding model (text -> vector)."""

    model_type: str = Field(
        default="openai", description="Model type (openai, ollama, cohere)"
    )
    model_name: str = Field(
        default="text-embedding-3-small", description="Specific model name"
    )
    dimension: int = Field(
        default=1536, description="Embedding dimension (auto-detected if possible)"
    )
    api_key: Optional[str] = Field(default=None, description="API key for cloud providers")
    base_url: Optional[str] = Field(
        default=None, description="Base URL for self-hosted providers (e.g. Ollama)"
    )
    batch_size: int = Field(default=32, description="Batch size for embedding generation")
    timeout: float = Field(default=60.0, description="HTTP timeout for provider calls (seconds)")


class IndexerConfig(BaseModel):
    """Configuration for discovery, extraction and embedding passes."""

    ignore_file_name: str = Field(
        default=".ragignore", description="Project-local ignore file (gitignore syntax)"
    )
    extra_ignore_patterns: List[str] = Field(
        default_factory=list, description="Additional ignore patterns applied to every root"
    )
    generate_embeddings: bool = Field(
        default=True, description="Compute embeddings after a full build"
    )
    embed_files: bool = Field(default=True, description="Compute file-level embeddings")
    embed_symbols: bool = Field(default=True, description="Compute symbol-level embeddings")
    max_symbol_embed_chars: int = Field(
        default=1000, description="Symbol source text is truncated to this length before embedding"
    )
    embedding_timeout: float = Field(
        default=30.0, description="Timeout for a single embedding call (seconds)"
    )
    embedding_concurrency: int = Field(
        default=8, ge=1, description="Maximum concurrent embedding calls during a build"
    )
    max_file_bytes: int = Field(
        default=1_000_000, description="Files larger than this are indexed text-only"
    )
    enable_watcher: bool = Field(
        default=False, description="Watch roots for file changes and update incrementally"
    )
    watcher_debounce: float = Field(default=0.5, description="Debounce delay for file events")


class RAGConfig(BaseModel):
    """Configuration for retrieval-augmented context building."""

    enabled: bool = Field(default=True, description="Enable context retrieval")
    top_n: int = Field(default=5, description="Maximum number of excerpts in the context")
    min_similarity: float = Field(
        default=0.7, description="Minimum cosine similarity for an excerpt to be included"
    )
    max_chunk_size: int = Field(
        default=2000, description="Maximum characters per excerpt"
    )
    scope: Literal["all", "files", "symbols"] = Field(
        default="all", description="Which embedded entities are searched"
    )


class CodebaseRAGConfig(BaseModel):
    """Root configuration object."""

    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    rag: RAGConfig = Field(default_factory=RAGConfig)
    embedding: EmbeddingModelConfig = Field(default_factory=EmbeddingModelConfig)


def load_config(path: Optional[Union[str, Path]] = None) -> CodebaseRAGConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML file. If None or missing, defaults are used.

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    data = {}
    if path is not None:
        config_path = Path(path)
        if config_path.is_file():
            try:
                with open(config_path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to read config {config_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"Config {config_path} must contain a mapping, got {type(data).__name__}"
                )
        else:
            logger.debug(f"Config file {config_path} not found, using defaults")

    try:
        config = CodebaseRAGConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if config.embedding.api_key is None:
        env_key = os.environ.get(API_KEY_ENV_VAR)
        if env_key:
            config.embedding.api_key = env_key

    return config
