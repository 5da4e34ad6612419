# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Codebase indexing: discovery, symbol extraction, references and search."""

from codebase_rag.codebase.discovery import DiscoveryResult, discover
from codebase_rag.codebase.ignore_patterns import IgnoreFilter
from codebase_rag.codebase.index_store import IndexStore
from codebase_rag.codebase.indexer import BuildReport, BuildState, CodebaseIndexer
from codebase_rag.codebase.models import (
    FileIndexEntry,
    Position,
    ReferenceLocation,
    SimilarityResult,
    SourceFile,
    SourceRange,
    Symbol,
    SymbolHandle,
    SymbolKind,
)
from codebase_rag.codebase.reference_resolver import ReferenceResolver, ResolutionStats
from codebase_rag.codebase.symbol_resolver import SymbolResolver

__all__ = [
    "DiscoveryResult",
    "discover",
    "IgnoreFilter",
    "IndexStore",
    "BuildReport",
    "BuildState",
    "CodebaseIndexer",
    "FileIndexEntry",
    "Position",
    "ReferenceLocation",
    "SimilarityResult",
    "SourceFile",
    "SourceRange",
    "Symbol",
    "SymbolHandle",
    "SymbolKind",
    "ReferenceResolver",
    "ResolutionStats",
    "SymbolResolver",
]
