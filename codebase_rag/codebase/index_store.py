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

"""Authoritative in-memory map from file path to FileIndexEntry.

Writes are whole-entry assignments (``put``) or whole-generation swaps
(``install``), so a reader running between two awaits always sees a
complete entry and never a partially built one.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from codebase_rag.codebase.models import (
    FileIndexEntry,
    Position,
    ReferenceLocation,
    Symbol,
    SymbolHandle,
)
from codebase_rag.errors import StaleGenerationError

logger = logging.getLogger(__name__)


class IndexStore:
    """Per-file index entries for one index generation."""

    def __init__(self) -> None:
        self._entries: Dict[str, FileIndexEntry] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def next_generation(self) -> int:
        """Generation number the next full build will install."""
        return self._generation + 1

    # ------------------------------------------------------------------
    # Mutation (build/update paths only)
    # ------------------------------------------------------------------

    def put(self, entry: FileIndexEntry) -> None:
        """Replace a file's entry wholesale."""
        entry.generation = self._generation
        self._entries[entry.path] = entry

    def remove(self, path: str) -> bool:
        """Delete a file's entry. Returns True if it existed."""
        return self._entries.pop(path, None) is not None

    def install(self, entries: Dict[str, FileIndexEntry], generation: int) -> None:
        """Swap in a complete generation built elsewhere."""
        for entry in entries.values():
            entry.generation = generation
        self._entries = entries
        self._generation = generation
        logger.debug(f"Installed index generation {generation} ({len(entries)} files)")

    def clear(self) -> None:
        """Discard all entries. The generation counter keeps increasing."""
        self._entries = {}
        self._generation += 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> Optional[FileIndexEntry]:
        return self._entries.get(path)

    def paths(self) -> List[str]:
        return list(self._entries)

    def entries(self) -> List[FileIndexEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def snapshot(self) -> Dict[str, FileIndexEntry]:
        """Deep copy of all entries (stable view for comparisons)."""
        return {path: entry.model_copy(deep=True) for path, entry in self._entries.items()}

    def iter_symbols(self) -> Iterator[Symbol]:
        for entry in list(self._entries.values()):
            yield from entry.symbols

    def find_symbols_by_name(self, name: str) -> List[Symbol]:
        """All declarations with the given name, across files."""
        return [symbol for symbol in self.iter_symbols() if symbol.name == name]

    def find_symbol_at(self, path: str, position: Position) -> Optional[Symbol]:
        """Innermost symbol whose range contains the position.

        Among all enclosing symbols, the one whose declaration starts latest wins.
        """
        entry = self._entries.get(path)
        if entry is None:
            return None
        best: Optional[Symbol] = None
        for symbol in entry.symbols:
            if symbol.range.contains(position):
                if best is None or symbol.range.start > best.range.start:
                    best = symbol
        return best

    def symbol_at_start(self, path: str, position: Position) -> Optional[SymbolHandle]:
        """Handle of the symbol whose declaration starts exactly at a position."""
        entry = self._entries.get(path)
        if entry is None:
            return None
        for symbol in entry.symbols:
            if symbol.range.start == position:
                return symbol.handle
        return None

    def resolve_handle(self, handle: SymbolHandle, generation: Optional[int] = None) -> Symbol:
        """Look up a symbol by handle.

        Raises:
            StaleGenerationError: If ``generation`` is not the installed generation
            KeyError: If the file or slot does not exist
        """
        if generation is not None and generation != self._generation:
            raise StaleGenerationError(generation, self._generation)
        entry = self._entries.get(handle.file_path)
        if entry is None or not 0 <= handle.slot < len(entry.symbols):
            raise KeyError(f"No symbol at {handle.file_path}#{handle.slot}")
        return entry.symbols[handle.slot]

    def find_references(self, symbol: Symbol) -> List[ReferenceLocation]:
        """References recorded on the stored copy of a declaration."""
        entry = self._entries.get(symbol.file_path)
        if entry is None:
            return []
        for candidate in entry.symbols:
            if candidate.key == symbol.key:
                return list(candidate.references)
        return []

    def stats(self) -> Dict[str, Any]:
        entries = list(self._entries.values())
        symbols = sum(len(e.symbols) for e in entries)
        return {
            "generation": self._generation,
            "total_files": len(entries),
            "total_symbols": symbols,
            "total_references": sum(len(s.references) for e in entries for s in e.symbols),
            "parse_errors": sum(1 for e in entries if e.has_error),
            "embedded_files": sum(1 for e in entries if e.embedding is not None),
            "embedded_symbols": sum(
                1 for e in entries for s in e.symbols if s.embedding is not None
            ),
        }
