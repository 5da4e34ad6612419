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

"""Registry mapping languages to symbol extractors."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from codebase_rag.codebase.extractors.base import SymbolExtractor
from codebase_rag.errors import ExtractorUnavailableError

logger = logging.getLogger(__name__)

# Extension -> language id. Languages without a registered extractor are
# still indexed, text-only (content and file embedding, no symbols).
EXTENSION_LANGUAGES: Dict[str, str] = {
    ".py": "python",
    ".pyw": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".scala": "scala",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".vb": "vb",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".swift": "swift",
    ".dart": "dart",
    ".sh": "bash",
    ".sql": "sql",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".md": "markdown",
    ".html": "html",
    ".css": "css",
}


def detect_language(file_path: Path, default: str = "plaintext") -> str:
    """Detect a language id from a file extension."""
    return EXTENSION_LANGUAGES.get(Path(file_path).suffix.lower(), default)


class ExtractorRegistry:
    """Language -> extractor lookup.

    Usage:
        registry = ExtractorRegistry.default()
        extractor = registry.get("python")
    """

    def __init__(self) -> None:
        self._extractors: Dict[str, SymbolExtractor] = {}

    def register(self, extractor: SymbolExtractor, languages: Optional[List[str]] = None) -> None:
        """Register an extractor for its languages (or an explicit subset)."""
        if not isinstance(extractor, SymbolExtractor):
            raise TypeError(f"{extractor!r} must inherit from SymbolExtractor")
        for language in languages or extractor.languages:
            self._extractors[language] = extractor

    def get(self, language: str) -> Optional[SymbolExtractor]:
        return self._extractors.get(language)

    def languages(self) -> List[str]:
        return sorted(self._extractors)

    def __contains__(self, language: str) -> bool:
        return language in self._extractors

    @classmethod
    def default(cls) -> "ExtractorRegistry":
        """Build a registry with the bundled extractors.

        Tree-sitter grammars that are not installed are skipped; files in
        those languages are then indexed text-only.
        """
        from codebase_rag.codebase.extractors.python_ast import PythonAstExtractor
        from codebase_rag.codebase.extractors.tree_sitter_extractor import TreeSitterExtractor

        registry = cls()
        registry.register(PythonAstExtractor())

        tree_sitter = TreeSitterExtractor()
        available = []
        for language in tree_sitter.languages:
            try:
                tree_sitter.check_available(language)
            except ExtractorUnavailableError as e:
                logger.warning(f"Symbol extraction disabled for {language}: {e}")
                continue
            available.append(language)
        if available:
            registry.register(tree_sitter, available)
        return registry
