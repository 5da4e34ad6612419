# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Pluggable per-language symbol extraction."""

from codebase_rag.codebase.extractors.base import (
    DeclarationSite,
    ExtractedSymbol,
    ExtractionResult,
    SymbolExtractor,
    Use,
)
from codebase_rag.codebase.extractors.python_ast import PythonAstExtractor
from codebase_rag.codebase.extractors.registry import (
    EXTENSION_LANGUAGES,
    ExtractorRegistry,
    detect_language,
)

__all__ = [
    "DeclarationSite",
    "ExtractedSymbol",
    "ExtractionResult",
    "SymbolExtractor",
    "Use",
    "PythonAstExtractor",
    "EXTENSION_LANGUAGES",
    "ExtractorRegistry",
    "detect_language",
]
