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

"""Second build pass: link every recorded use to its declaration.

Runs only once the symbol table of a generation is complete, so a use in
file A always sees a declaration in file B regardless of extraction order.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

from codebase_rag.codebase.extractors.base import Use
from codebase_rag.codebase.models import FileIndexEntry, ReferenceLocation, SymbolHandle
from codebase_rag.codebase.symbol_resolver import SymbolResolver
from codebase_rag.errors import StaleGenerationError

logger = logging.getLogger(__name__)


@dataclass
class ResolutionStats:
    """Outcome counts of one resolution pass."""

    resolved: int = 0
    dropped_external: int = 0
    dropped_unresolved: int = 0

    @property
    def total(self) -> int:
        return self.resolved + self.dropped_external + self.dropped_unresolved


class ReferenceResolver:
    """Attach ReferenceLocations to target symbols of one generation."""

    def __init__(self, roots: Sequence[Path] = ()):
        self.roots = list(roots)

    def resolve_all(
        self,
        uses: Iterable[Use],
        entries: Dict[str, FileIndexEntry],
        generation: int,
    ) -> ResolutionStats:
        """Resolve uses against ``entries`` and record references on their targets.

        Args:
            uses: Uses collected from every file in phase 1
            entries: Complete entry map of the generation being built
            generation: Generation number the entries belong to

        Returns:
            Resolution counts

        Raises:
            StaleGenerationError: If an entry belongs to another generation
        """
        for entry in entries.values():
            if entry.generation != generation:
                raise StaleGenerationError(entry.generation, generation)

        resolver = SymbolResolver(self.roots)
        resolver.ingest(entries.values())

        stats = ResolutionStats()
        for use in uses:
            if resolver.is_external(use):
                stats.dropped_external += 1
                continue

            handle = self._resolve(resolver, use, entries)
            if handle is None:
                stats.dropped_unresolved += 1
                continue

            target = entries[handle.file_path].symbols[handle.slot]
            target.references.append(
                ReferenceLocation(
                    file_path=use.file_path, range=use.range, target=handle, generation=generation
                )
            )
            stats.resolved += 1

        logger.debug(
            f"Resolved {stats.resolved} references "
            f"({stats.dropped_external} external, {stats.dropped_unresolved} unresolved)"
        )
        return stats

    def _resolve(
        self, resolver: SymbolResolver, use: Use, entries: Dict[str, FileIndexEntry]
    ) -> Optional[SymbolHandle]:
        if use.declaration is not None:
            entry = entries.get(use.declaration.file_path)
            if entry is None:
                return None
            for symbol in entry.symbols:
                if symbol.range.start == use.declaration.position:
                    return symbol.handle
            return None
        return resolver.resolve(use)
