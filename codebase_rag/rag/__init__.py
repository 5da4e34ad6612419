# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Retrieval-augmented context for model prompts."""

from codebase_rag.rag.service import (
    CONTEXT_HEADER,
    TRUNCATION_MARKER,
    RAGContext,
    RAGService,
    truncate_content,
)

__all__ = [
    "CONTEXT_HEADER",
    "TRUNCATION_MARKER",
    "RAGContext",
    "RAGService",
    "truncate_content",
]
