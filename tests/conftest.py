# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Shared fixtures: a deterministic embedding model and project trees."""

import asyncio
import math
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from codebase_rag.codebase.embeddings.manager import EmbeddingManager
from codebase_rag.codebase.embeddings.models import BaseEmbeddingModel
from codebase_rag.codebase.extractors.python_ast import PythonAstExtractor
from codebase_rag.codebase.extractors.registry import ExtractorRegistry
from codebase_rag.config import EmbeddingModelConfig
from codebase_rag.errors import EmbeddingError


def unit_vector_at(score: float) -> List[float]:
    """3-d unit vector whose cosine with [1, 0, 0] is ``score``."""
    return [score, math.sqrt(1.0 - score * score), 0.0]


class KeywordEmbeddingModel(BaseEmbeddingModel):
    """Maps text to a fixed vector by the first keyword it contains."""

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        dimension: int = 3,
        fail_on: Optional[str] = None,
        delay: float = 0.0,
    ):
        super().__init__(
            EmbeddingModelConfig(model_type="keyword", model_name="keyword", dimension=dimension)
        )
        self.vectors = vectors or {}
        self.fail_on = fail_on
        self.delay = delay
        self.calls: List[str] = []
        self.closed = False

    async def initialize(self) -> None:
        self._initialized = True

    async def embed_text(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingError(f"refusing to embed text containing {self.fail_on!r}")
        for keyword, vector in self.vectors.items():
            if keyword in text:
                return list(vector)
        return [0.0] * self.config.dimension

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [await self.embed_text(t) for t in texts]

    def get_dimension(self) -> int:
        return self.config.dimension

    async def close(self) -> None:
        self.closed = True


def write_files(root: Path, files: Dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def python_registry() -> ExtractorRegistry:
    registry = ExtractorRegistry()
    registry.register(PythonAstExtractor())
    return registry


@pytest.fixture
def keyword_model() -> KeywordEmbeddingModel:
    return KeywordEmbeddingModel(
        {
            "alpha": unit_vector_at(0.82),
            "beta": unit_vector_at(0.55),
            "query": [1.0, 0.0, 0.0],
        }
    )


@pytest.fixture
def embedding_manager(keyword_model) -> EmbeddingManager:
    return EmbeddingManager(keyword_model, timeout=5.0)


@pytest.fixture
def project(tmp_path) -> Path:
    """Small Python package with a cross-file call and a syntax error."""
    root = tmp_path / "project"
    return write_files(
        root,
        {
            "pkg/__init__.py": "",
            "pkg/util.py": "def helper():\n    return 1\n",
            "pkg/main.py": (
                "from pkg.util import helper\n"
                "\n"
                "\n"
                "def run():\n"
                "    return helper()\n"
            ),
            "pkg/broken.py": "def broken(:\n    pass\n",
            "node_modules/dep/index.py": "def ignored():\n    pass\n",
        },
    ).resolve()
