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

"""Index data model.

Symbols live in an arena per file: a FileIndexEntry owns an ordered list of
symbols, and references point at their target through a SymbolHandle
(file path + slot) instead of an object reference. Replacing an entry
therefore never leaves dangling back-pointers in other files' objects.

Positions are 0-based (line, character). Ranges are inclusive at both ends
for containment checks.
"""

import hashlib
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SymbolKind(str, Enum):
    """Kinds of declarations tracked by the index."""

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    TYPE_ALIAS = "type_alias"
    VARIABLE = "variable"


class Position(BaseModel):
    """A 0-based line/character position."""

    model_config = ConfigDict(frozen=True)

    line: int
    character: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.line, self.character)

    def __lt__(self, other: "Position") -> bool:
        return self.as_tuple() < other.as_tuple()

    def __le__(self, other: "Position") -> bool:
        return self.as_tuple() <= other.as_tuple()

    def __gt__(self, other: "Position") -> bool:
        return self.as_tuple() > other.as_tuple()

    def __ge__(self, other: "Position") -> bool:
        return self.as_tuple() >= other.as_tuple()


class SourceRange(BaseModel):
    """A start/end span inside one file."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def from_coords(
        cls, start_line: int, start_char: int, end_line: int, end_char: int
    ) -> "SourceRange":
        return cls(
            start=Position(line=start_line, character=start_char),
            end=Position(line=end_line, character=end_char),
        )

    def contains(self, position: Position) -> bool:
        return self.start <= position <= self.end


class SourceFile(BaseModel):
    """One indexable file. Identity is its path."""

    path: str
    content: str
    language: str
    last_modified: float = 0.0

    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.content.encode("utf-8", errors="replace")).hexdigest()


class SymbolHandle(BaseModel):
    """Stable (file, slot) handle into a FileIndexEntry's symbol arena."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    slot: int


class ReferenceLocation(BaseModel):
    """A resolved use of a symbol."""

    file_path: str
    range: SourceRange
    target: SymbolHandle
    generation: int = Field(default=0, description="Index generation the target handle belongs to")


class Symbol(BaseModel):
    """A declaration stored in the index.

    Identity for reference linking is (file_path, range.start); two
    declarations with the same name stay distinct by range.
    """

    name: str
    kind: SymbolKind
    file_path: str
    range: SourceRange
    slot: int = 0
    container: Optional[str] = None  # enclosing class/function name
    embedding: Optional[List[float]] = None
    references: List[ReferenceLocation] = Field(default_factory=list)

    @property
    def key(self) -> Tuple[str, int, int]:
        return (self.file_path, self.range.start.line, self.range.start.character)

    @property
    def handle(self) -> SymbolHandle:
        return SymbolHandle(file_path=self.file_path, slot=self.slot)

    @property
    def qualified_name(self) -> str:
        return f"{self.container}.{self.name}" if self.container else self.name


class FileIndexEntry(BaseModel):
    """Per-file record. Replaced wholesale on re-index, never merged."""

    path: str
    language: str
    content: str = ""
    symbols: List[Symbol] = Field(default_factory=list)
    parse_error: Optional[str] = None
    content_hash: Optional[str] = None
    last_modified: float = 0.0
    indexed_at: float = 0.0
    generation: int = 0
    embedding: Optional[List[float]] = None  # file-level document vector

    @property
    def has_error(self) -> bool:
        return self.parse_error is not None

    def symbol_source(self, symbol: Symbol) -> str:
        """Return the source text covered by a symbol's declaration range."""
        return slice_range(self.content, symbol.range)


class SimilarityResult(BaseModel):
    """One ranked search hit. Ordered descending by score."""

    kind: Literal["file", "symbol"]
    file_path: str
    score: float
    symbol: Optional[Symbol] = None

    @property
    def label(self) -> str:
        if self.symbol is not None:
            return f"{self.file_path}::{self.symbol.qualified_name}"
        return self.file_path


def slice_range(content: str, source_range: SourceRange) -> str:
    """Extract the text covered by a range (end character exclusive)."""
    lines = content.splitlines(keepends=True)
    if not lines:
        return ""
    start_line = min(max(source_range.start.line, 0), len(lines) - 1)
    end_line = min(max(source_range.end.line, start_line), len(lines) - 1)
    if start_line == end_line:
        return lines[start_line][source_range.start.character : source_range.end.character]
    parts = [lines[start_line][source_range.start.character :]]
    parts.extend(lines[start_line + 1 : end_line])
    parts.append(lines[end_line][: source_range.end.character])
    return "".join(parts)
