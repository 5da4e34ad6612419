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

"""Symbol extraction capability boundary.

An extractor turns one file's text into declared symbols plus an ordered
list of uses (call/reference sites). It never touches the index: the
indexer stores the symbols in phase 1 and hands the uses to the reference
resolver in phase 2, once the whole symbol table exists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from codebase_rag.codebase.models import Position, SourceFile, SourceRange, SymbolKind
from codebase_rag.errors import ParseError


@dataclass
class ExtractedSymbol:
    """A declaration found by an extractor."""

    name: str
    kind: SymbolKind
    range: SourceRange
    container: Optional[str] = None


@dataclass(frozen=True)
class DeclarationSite:
    """Precise location of a use's declaration, when the extractor knows it."""

    file_path: str
    position: Position


@dataclass
class Use:
    """A call/reference site to be resolved in the second pass.

    Attributes:
        file_path: File containing the use
        range: Span of the referencing expression
        name: Textual handle (identifier being called/referenced)
        module: Import hint - module the name was imported from. Dotted for
            Python (leading dots for relative imports), a path specifier for
            JavaScript/TypeScript ("./util")
        container: Expected enclosing class of the target (self.foo() / this.foo())
        declaration: Precise declaration site, if already known
        external: True when the target is known to live outside the project
    """

    file_path: str
    range: SourceRange
    name: str
    module: Optional[str] = None
    container: Optional[str] = None
    declaration: Optional[DeclarationSite] = None
    external: bool = False


@dataclass
class ExtractionResult:
    """Output of one extractor run. A failed run has no symbols and no uses."""

    symbols: List[ExtractedSymbol] = field(default_factory=list)
    uses: List[Use] = field(default_factory=list)
    error: Optional[ParseError] = None

    @classmethod
    def failed(cls, error: ParseError) -> "ExtractionResult":
        return cls(symbols=[], uses=[], error=error)


class ColumnMapper:
    """Converts parser columns (UTF-8 byte offsets) to character offsets.

    Both ``ast`` and tree-sitter report columns in bytes, while stored
    ranges index into ``str`` lines.
    """

    def __init__(self, content: str):
        self._lines = content.splitlines()

    def column(self, line: int, byte_column: int) -> int:
        if not 0 <= line < len(self._lines):
            return byte_column
        text = self._lines[line]
        if text.isascii():
            return byte_column
        return len(text.encode("utf-8")[:byte_column].decode("utf-8", errors="ignore"))

    def range(self, start_line: int, start_byte: int, end_line: int, end_byte: int) -> SourceRange:
        return SourceRange.from_coords(
            start_line,
            self.column(start_line, start_byte),
            end_line,
            self.column(end_line, end_byte),
        )


class SymbolExtractor(ABC):
    """Abstract base for language-specific symbol extractors."""

    #: Language ids handled by this extractor (e.g. ("python",))
    languages: Tuple[str, ...] = ()

    @abstractmethod
    def extract(self, source: SourceFile) -> ExtractionResult:
        """Extract declarations and uses from a file.

        Implementations must not raise for malformed input: syntax problems
        are reported through ``ExtractionResult.error``.

        Args:
            source: File to analyze

        Returns:
            Extraction result
        """
        pass

    def supports(self, language: str) -> bool:
        return language in self.languages

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(languages={list(self.languages)})"
