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

"""Codebase indexing for intelligent code awareness.

This is the orchestrator that turns a set of project roots into a
queryable in-memory index:

1. Discovery: enumerate files, honoring ignore rules
2. Extraction: per-file symbols and uses (in worker threads)
3. Resolution: link uses to declarations, once every file is extracted
4. Embeddings: best-effort file and symbol vectors

A full build assembles a new generation off to the side and installs it
in one step. File-change notifications update single entries in place of
a rebuild; they are skipped while a full build is running.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from codebase_rag.codebase.discovery import discover
from codebase_rag.codebase.embeddings.manager import EmbeddingManager
from codebase_rag.codebase.embeddings.similarity import search as similarity_search
from codebase_rag.codebase.extractors.base import Use
from codebase_rag.codebase.extractors.registry import ExtractorRegistry, detect_language
from codebase_rag.codebase.ignore_patterns import IgnoreFilter, is_binary_path
from codebase_rag.codebase.index_store import IndexStore
from codebase_rag.codebase.models import (
    FileIndexEntry,
    Position,
    ReferenceLocation,
    SimilarityResult,
    SourceFile,
    Symbol,
)
from codebase_rag.codebase.reference_resolver import ReferenceResolver
from codebase_rag.config import IndexerConfig
from codebase_rag.errors import ConfigurationError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class BuildState(str, Enum):
    """Full-build lifecycle of an indexer."""

    IDLE = "idle"
    BUILDING = "building"


@dataclass
class BuildReport:
    """Summary of one completed full build."""

    generation: int
    files: int = 0
    symbols: int = 0
    parse_errors: int = 0
    references: int = 0
    embeddings: int = 0
    discovery_errors: Dict[str, str] = field(default_factory=dict)
    duration: float = 0.0


class CodebaseIndexer:
    """Indexes one or more project roots.

    Usage:
        async with CodebaseIndexer(["/path/to/project"], embedding_manager=manager) as indexer:
            report = await indexer.build()
            hits = indexer.search(await manager.embed("parse config"))
    """

    def __init__(
        self,
        roots: Sequence[PathLike],
        extractors: Optional[ExtractorRegistry] = None,
        embedding_manager: Optional[EmbeddingManager] = None,
        config: Optional[IndexerConfig] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        """Initialize the indexer.

        Args:
            roots: Project root directories
            extractors: Language -> extractor registry (defaults to the bundled extractors)
            embedding_manager: Optional embedding manager; without one no vectors are computed
            config: Indexer configuration
            on_error: Called with fatal build errors (e.g. to notify a host UI)
        """
        self.roots: List[Path] = [Path(r) for r in roots]
        self.extractors = extractors if extractors is not None else ExtractorRegistry.default()
        self.embedding_manager = embedding_manager
        self.config = config or IndexerConfig()
        self.on_error = on_error

        self.store = IndexStore()
        self.attached_files: Set[Path] = set()
        self.attached_folders: Set[Path] = set()

        self._state = BuildState.IDLE
        self._ignore_filters: Dict[Path, IgnoreFilter] = {}
        self._watcher = None
        self._last_report: Optional[BuildReport] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def is_building(self) -> bool:
        return self._state == BuildState.BUILDING

    @property
    def last_report(self) -> Optional[BuildReport]:
        return self._last_report

    async def start(self) -> None:
        """Start the file watcher when enabled in config."""
        if self.config.enable_watcher and self._watcher is None:
            from codebase_rag.codebase.watcher import FileWatcher

            self._watcher = FileWatcher(
                self, asyncio.get_running_loop(), debounce=self.config.watcher_debounce
            )
            self._watcher.start()

    async def close(self) -> None:
        """Stop the watcher and release the embedding provider."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if self.embedding_manager is not None:
            await self.embedding_manager.close()

    async def __aenter__(self) -> "CodebaseIndexer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Paths and filtering
    # ------------------------------------------------------------------

    def valid_roots(self) -> List[Path]:
        """Configured roots that exist and are directories, resolved."""
        valid = []
        for root in self.roots:
            resolved = root.resolve()
            if resolved.is_dir():
                valid.append(resolved)
            else:
                logger.warning(f"Ignoring invalid project root: {root}")
        return valid

    def _ignore_filter(self, root: Path) -> IgnoreFilter:
        ignore_filter = self._ignore_filters.get(root)
        if ignore_filter is None:
            ignore_filter = IgnoreFilter(
                root,
                extra_patterns=self.config.extra_ignore_patterns,
                ignore_file_name=self.config.ignore_file_name,
            )
            self._ignore_filters[root] = ignore_filter
        return ignore_filter

    def _normalize(self, path: PathLike) -> Path:
        path = Path(os.path.abspath(path))
        if self._containing_root(path) is None and path.exists():
            return path.resolve()
        return path

    def _containing_root(self, path: Path) -> Optional[Path]:
        candidates = [r.resolve() for r in self.roots] + sorted(self.attached_folders)
        for root in candidates:
            try:
                path.relative_to(root)
            except ValueError:
                continue
            return root
        return None

    def is_tracked(self, path: PathLike) -> bool:
        """Whether a path belongs to the index (inside a root or attached, not ignored)."""
        path = self._normalize(path)
        if path in self.attached_files:
            return not is_binary_path(path)
        root = self._containing_root(path)
        if root is None:
            return False
        return not self._ignore_filter(root).should_ignore(path)

    def relative_path(self, path: PathLike) -> str:
        """Display path relative to its root, or the absolute path outside any root."""
        path = Path(path)
        root = self._containing_root(path)
        if root is None:
            return path.as_posix()
        if root in self.attached_folders and root not in [r.resolve() for r in self.roots]:
            return (Path(root.name) / path.relative_to(root)).as_posix()
        return path.relative_to(root).as_posix()

    # ------------------------------------------------------------------
    # Per-file extraction (runs in a worker thread)
    # ------------------------------------------------------------------

    def _extract_file(self, path: Path, generation: int) -> Tuple[FileIndexEntry, List[Use]]:
        key = str(path)
        language = detect_language(path)
        entry = FileIndexEntry(
            path=key, language=language, generation=generation, indexed_at=time.time()
        )

        try:
            stat = path.stat()
            entry.last_modified = stat.st_mtime
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            entry.parse_error = "file is not valid UTF-8 text"
            return entry, []
        except OSError as e:
            entry.parse_error = f"could not read file: {e}"
            logger.warning(f"Failed to read {path}: {e}")
            return entry, []

        source = SourceFile(
            path=key, content=content, language=language, last_modified=entry.last_modified
        )
        entry.content = content
        entry.content_hash = source.content_hash

        extractor = self.extractors.get(language)
        if extractor is None:
            return entry, []
        if stat.st_size > self.config.max_file_bytes:
            logger.debug(f"Skipping symbol extraction for large file {path}")
            return entry, []

        try:
            result = extractor.extract(source)
        except Exception as e:
            logger.warning(f"{extractor!r} failed on {path}: {e}", exc_info=True)
            entry.parse_error = f"extractor failure: {e}"
            return entry, []

        if result.error is not None:
            entry.parse_error = str(result.error)
            logger.debug(f"Parse error in {path}: {result.error}")
            return entry, []

        entry.symbols = [
            Symbol(
                name=extracted.name,
                kind=extracted.kind,
                file_path=key,
                range=extracted.range,
                slot=slot,
                container=extracted.container,
            )
            for slot, extracted in enumerate(result.symbols)
        ]
        return entry, result.uses

    # ------------------------------------------------------------------
    # Full build
    # ------------------------------------------------------------------

    def _discover_all(self, roots: List[Path]):
        filters = {root: self._ignore_filter(root) for root in roots}
        extra_roots = sorted(self.attached_folders - set(roots))
        for folder in extra_roots:
            filters[folder] = self._ignore_filter(folder)
        discovery = discover(roots + extra_roots, ignore_filters=filters)
        files = list(discovery.files)
        seen = set(files)
        for attached in sorted(self.attached_files):
            if attached not in seen and attached.is_file():
                files.append(attached)
        return files, discovery.errors

    async def build(self) -> Optional[BuildReport]:
        """Rebuild the whole index.

        Returns:
            BuildReport, or None when a build is already running (no-op)

        Raises:
            ConfigurationError: If no valid project root exists; the store is cleared
        """
        if self._state == BuildState.BUILDING:
            logger.debug("Full build already in progress, ignoring request")
            return None

        self._state = BuildState.BUILDING
        started = time.monotonic()
        try:
            roots = self.valid_roots()
            if not roots:
                raise ConfigurationError(
                    f"No valid project root among: {', '.join(str(r) for r in self.roots) or '(none)'}"
                )
            self._ignore_filters.clear()

            files, discovery_errors = self._discover_all(roots)
            generation = self.store.next_generation()
            logger.info(f"Indexing {len(files)} files (generation {generation})")

            # Phase 1: extraction. gather() is the barrier before resolution.
            results = await asyncio.gather(
                *(asyncio.to_thread(self._extract_file, path, generation) for path in files)
            )
            entries: Dict[str, FileIndexEntry] = {}
            uses: List[Use] = []
            for entry, file_uses in results:
                entries[entry.path] = entry
                uses.extend(file_uses)

            # Phase 2: references
            resolution = ReferenceResolver(roots).resolve_all(uses, entries, generation)

            # Phase 3: embeddings
            embedded = 0
            if self.embedding_manager is not None and self.config.generate_embeddings:
                embedded = await self._embed_entries(list(entries.values()))

            self.store.install(entries, generation)
        except ConfigurationError as e:
            self.store.clear()
            logger.error(f"Index build failed: {e}")
            if self.on_error is not None:
                self.on_error(e)
            raise
        finally:
            self._state = BuildState.IDLE

        report = BuildReport(
            generation=generation,
            files=len(entries),
            symbols=sum(len(e.symbols) for e in entries.values()),
            parse_errors=sum(1 for e in entries.values() if e.has_error),
            references=resolution.resolved,
            embeddings=embedded,
            discovery_errors=discovery_errors,
            duration=time.monotonic() - started,
        )
        self._last_report = report
        logger.info(
            f"Indexed {report.files} files with {report.symbols} symbols, "
            f"{report.references} references, {report.embeddings} embeddings "
            f"({report.parse_errors} parse errors) in {report.duration:.2f}s"
        )
        return report

    async def _embed_entries(self, entries: List[FileIndexEntry]) -> int:
        semaphore = asyncio.Semaphore(self.config.embedding_concurrency)
        counts = await asyncio.gather(
            *(
                self.embedding_manager.embed_entry(
                    entry,
                    embed_file=self.config.embed_files,
                    embed_symbols=self.config.embed_symbols,
                    semaphore=semaphore,
                )
                for entry in entries
            )
        )
        return sum(counts)

    # ------------------------------------------------------------------
    # Incremental updates
    # ------------------------------------------------------------------

    async def _reindex(self, path: Path) -> Optional[FileIndexEntry]:
        generation = self.store.generation
        entry, _ = await asyncio.to_thread(self._extract_file, path, generation)
        if self.embedding_manager is not None and self.config.generate_embeddings:
            await self.embedding_manager.embed_entry(
                entry,
                embed_file=self.config.embed_files,
                embed_symbols=self.config.embed_symbols,
            )
        # A build that started (or finished) meanwhile owns this path now
        if self._state == BuildState.BUILDING or self.store.generation != generation:
            logger.warning(f"Discarding update of {path}: a full build ran meanwhile")
            return None
        self.store.put(entry)
        return entry

    async def update_file(self, path: PathLike) -> Optional[FileIndexEntry]:
        """Re-extract one file and replace its entry.

        References are not recomputed; the new entry's symbols start with
        empty reference lists. A path that no longer exists is removed.

        Returns:
            The new entry, or None if the update was skipped or removed the file
        """
        if self._state == BuildState.BUILDING:
            logger.warning(f"Skipping update of {path}: full build in progress")
            return None

        path = self._normalize(path)
        if not self.is_tracked(path):
            logger.debug(f"Ignoring change to untracked path {path}")
            return None
        if not path.is_file():
            await self.remove_file(path)
            return None

        entry = await self._reindex(path)
        if entry is not None:
            logger.debug(f"Updated index for {path} ({len(entry.symbols)} symbols)")
        return entry

    async def remove_file(self, path: PathLike) -> bool:
        """Remove a file's entry outright."""
        if self._state == BuildState.BUILDING:
            logger.warning(f"Skipping removal of {path}: full build in progress")
            return False
        path = self._normalize(path)
        self.attached_files.discard(path)
        removed = self.store.remove(str(path))
        if removed:
            logger.debug(f"Removed from index: {path}")
        return removed

    async def on_file_created(self, path: PathLike) -> Optional[FileIndexEntry]:
        return await self.update_file(path)

    async def on_file_changed(self, path: PathLike) -> Optional[FileIndexEntry]:
        return await self.update_file(path)

    async def on_file_deleted(self, path: PathLike) -> bool:
        return await self.remove_file(path)

    async def remove_directory(self, path: PathLike) -> int:
        """Remove every entry under a directory. Returns the number removed."""
        if self._state == BuildState.BUILDING:
            logger.warning(f"Skipping removal of {path}: full build in progress")
            return 0
        prefix = str(self._normalize(path)) + os.sep
        removed = 0
        for key in self.store.paths():
            if key.startswith(prefix) and self.store.remove(key):
                removed += 1
        self.attached_files = {f for f in self.attached_files if not str(f).startswith(prefix)}
        if removed:
            logger.debug(f"Removed {removed} entries under {path}")
        return removed

    async def on_directory_deleted(self, path: PathLike) -> int:
        return await self.remove_directory(path)

    async def on_directory_created(self, path: PathLike) -> List[FileIndexEntry]:
        """A directory appeared (usually moved in): index its tracked files."""
        if self._state == BuildState.BUILDING:
            logger.warning(f"Skipping scan of {path}: full build in progress")
            return []
        folder = self._normalize(path)
        if not folder.is_dir() or self._containing_root(folder) is None:
            return []
        updated = []
        for file_path in discover([folder]).files:
            entry = await self.update_file(file_path)
            if entry is not None:
                updated.append(entry)
        return updated

    async def on_active_file_changed(self, path: PathLike) -> Optional[FileIndexEntry]:
        """The editor switched to ``path``: refresh its entry."""
        return await self.update_file(path)

    async def attach_file(self, path: PathLike) -> Optional[FileIndexEntry]:
        """Index a single file, even outside the configured roots.

        The file stays part of the index across full builds.
        """
        if self._state == BuildState.BUILDING:
            logger.warning(f"Skipping attach of {path}: full build in progress")
            return None
        path = Path(path).resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Cannot attach {path}: not a file")
        if is_binary_path(path):
            logger.debug(f"Not attaching binary file {path}")
            return None
        self.attached_files.add(path)
        return await self._reindex(path)

    async def attach_folder(self, path: PathLike) -> List[FileIndexEntry]:
        """Index every non-ignored file under a folder, even outside the roots."""
        if self._state == BuildState.BUILDING:
            logger.warning(f"Skipping attach of {path}: full build in progress")
            return []
        folder = Path(path).resolve()
        if not folder.is_dir():
            raise NotADirectoryError(f"Cannot attach {folder}: not a directory")
        self.attached_folders.add(folder)

        discovery = discover([folder], ignore_filters={folder: self._ignore_filter(folder)})
        attached = []
        for file_path in discovery.files:
            entry = await self._reindex(file_path)
            if entry is None:
                break
            attached.append(entry)
        logger.info(f"Attached {len(attached)} files from {folder}")
        return attached

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_entry(self, path: PathLike) -> Optional[FileIndexEntry]:
        return self.store.get(str(self._normalize(path)))

    def find_symbols_by_name(self, name: str) -> List[Symbol]:
        return self.store.find_symbols_by_name(name)

    def find_symbol_at(self, path: PathLike, position: Position) -> Optional[Symbol]:
        return self.store.find_symbol_at(str(self._normalize(path)), position)

    def find_references(self, symbol: Symbol) -> List[ReferenceLocation]:
        return self.store.find_references(symbol)

    def find_definition(self, reference: ReferenceLocation) -> Optional[Symbol]:
        """Declaration a reference points to.

        Returns None if the target's entry was removed or replaced by an
        incremental update since the reference was recorded.

        Raises:
            StaleGenerationError: If the reference came from an older full build
        """
        try:
            symbol = self.store.resolve_handle(reference.target, generation=reference.generation)
        except KeyError:
            return None
        return symbol if reference in symbol.references else None

    def search(
        self,
        query_vector: Sequence[float],
        top_n: int = 5,
        min_similarity: float = 0.7,
        scope: str = "all",
    ) -> List[SimilarityResult]:
        """Rank embedded files and/or symbols by cosine similarity.

        Args:
            query_vector: Embedded query
            top_n: Maximum number of results
            min_similarity: Minimum score to include
            scope: "all", "files" or "symbols"
        """
        if scope not in ("all", "files", "symbols"):
            raise ValueError(f"Unknown search scope: {scope}")

        candidates = []
        for entry in self.store.entries():
            if scope != "symbols" and entry.embedding is not None:
                candidates.append(
                    (SimilarityResult(kind="file", file_path=entry.path, score=0.0), entry.embedding)
                )
            if scope == "files":
                continue
            for symbol in entry.symbols:
                if symbol.embedding is not None:
                    candidates.append(
                        (
                            SimilarityResult(
                                kind="symbol", file_path=entry.path, score=0.0, symbol=symbol
                            ),
                            symbol.embedding,
                        )
                    )
        return similarity_search(query_vector, candidates, top_n=top_n, min_similarity=min_similarity)

    def stats(self) -> Dict[str, Any]:
        stats = self.store.stats()
        stats.update(
            {
                "state": self._state.value,
                "roots": [str(r) for r in self.roots],
                "attached_files": len(self.attached_files),
                "attached_folders": len(self.attached_folders),
                "watching": self._watcher is not None,
            }
        )
        return stats
