# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for full builds, incremental updates and index queries."""

import asyncio
import threading

import pytest

from codebase_rag.codebase.embeddings.manager import EmbeddingManager
from codebase_rag.codebase.extractors.python_ast import PythonAstExtractor
from codebase_rag.codebase.extractors.registry import ExtractorRegistry
from codebase_rag.codebase.indexer import BuildState, CodebaseIndexer
from codebase_rag.codebase.models import Position, SymbolKind
from codebase_rag.config import IndexerConfig
from codebase_rag.errors import ConfigurationError, StaleGenerationError
from tests.conftest import KeywordEmbeddingModel, write_files


def _indexer(root, registry, **kwargs):
    return CodebaseIndexer([root], extractors=registry, **kwargs)


class GatedExtractor(PythonAstExtractor):
    """Blocks the next extraction of a matching file until released."""

    def __init__(self, suffix):
        self.suffix = suffix
        self.entered = threading.Event()
        self.release = threading.Event()
        self._armed = False

    def gate(self):
        self._armed = True

    def extract(self, source):
        if self._armed and source.path.endswith(self.suffix):
            self._armed = False
            self.entered.set()
            self.release.wait(timeout=5)
        return super().extract(source)


class TestFullBuild:
    """Discovery -> extraction -> resolution -> install."""

    @pytest.mark.asyncio
    async def test_build_indexes_every_file_and_records_parse_errors(self, project, python_registry):
        indexer = _indexer(project, python_registry)

        report = await indexer.build()

        assert report.files == 4
        assert report.parse_errors == 1
        broken = indexer.get_entry(project / "pkg/broken.py")
        assert broken.has_error
        assert broken.symbols == []
        util = indexer.get_entry(project / "pkg/util.py")
        assert [s.name for s in util.symbols] == ["helper"]
        assert indexer.state == BuildState.IDLE

    @pytest.mark.asyncio
    async def test_ignored_directories_are_not_indexed(self, project, python_registry):
        indexer = _indexer(project, python_registry)

        await indexer.build()

        assert indexer.get_entry(project / "node_modules/dep/index.py") is None
        assert indexer.find_symbols_by_name("ignored") == []

    @pytest.mark.asyncio
    async def test_cross_file_references(self, project, python_registry):
        indexer = _indexer(project, python_registry)

        report = await indexer.build()

        helper = indexer.find_symbols_by_name("helper")[0]
        references = indexer.find_references(helper)
        assert report.references == 1
        assert [r.file_path for r in references] == [str(project / "pkg/main.py")]
        assert references[0].range.start.line == 4

    @pytest.mark.asyncio
    async def test_generation_advances_per_build(self, project, python_registry):
        indexer = _indexer(project, python_registry)

        first = await indexer.build()
        second = await indexer.build()

        assert second.generation == first.generation + 1
        assert indexer.get_entry(project / "pkg/util.py").generation == second.generation

    @pytest.mark.asyncio
    async def test_concurrent_build_request_is_a_no_op(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        before = indexer.store.snapshot()

        task = asyncio.create_task(indexer.build())
        await asyncio.sleep(0)
        assert indexer.is_building

        assert await indexer.build() is None
        assert indexer.store.snapshot() == before

        report = await task
        assert report is not None

    @pytest.mark.asyncio
    async def test_no_valid_root_clears_store_and_notifies(self, project, python_registry):
        errors = []
        indexer = _indexer(project, python_registry, on_error=errors.append)
        await indexer.build()
        assert len(indexer.store) > 0

        indexer.roots = [project / "does-not-exist"]
        with pytest.raises(ConfigurationError):
            await indexer.build()

        assert len(indexer.store) == 0
        assert isinstance(errors[0], ConfigurationError)
        assert indexer.state == BuildState.IDLE

    @pytest.mark.asyncio
    async def test_multiple_roots(self, tmp_path, python_registry):
        first = write_files(tmp_path / "one", {"a.py": "def a():\n    pass\n"})
        second = write_files(tmp_path / "two", {"b.py": "def b():\n    pass\n"})
        indexer = CodebaseIndexer([first, second], extractors=python_registry)

        report = await indexer.build()

        assert report.files == 2
        assert indexer.find_symbols_by_name("b")[0].kind == SymbolKind.FUNCTION

    @pytest.mark.asyncio
    async def test_files_without_extractor_are_text_only(self, tmp_path, python_registry):
        write_files(tmp_path, {"notes.md": "# Notes\n", "app.go": "package main\n"})
        indexer = _indexer(tmp_path, python_registry)

        await indexer.build()

        entry = indexer.get_entry(tmp_path / "app.go")
        assert entry.language == "go"
        assert entry.symbols == []
        assert not entry.has_error
        assert entry.content == "package main\n"


class TestEmbeddingsDuringBuild:
    """Best-effort embedding phase."""

    @pytest.mark.asyncio
    async def test_failed_embeddings_leave_entities_without_vectors(self, tmp_path, python_registry):
        write_files(
            tmp_path,
            {
                "good.py": "def alpha():\n    return 1\n",
                "bad.py": "def boom():\n    return 2\n",
            },
        )
        model = KeywordEmbeddingModel({"alpha": [1.0, 0.0, 0.0]}, fail_on="boom")
        indexer = _indexer(tmp_path, python_registry, embedding_manager=EmbeddingManager(model))

        report = await indexer.build()

        good = indexer.get_entry(tmp_path / "good.py")
        bad = indexer.get_entry(tmp_path / "bad.py")
        assert good.embedding == [1.0, 0.0, 0.0]
        assert good.symbols[0].embedding == [1.0, 0.0, 0.0]
        assert bad.embedding is None
        assert bad.symbols[0].embedding is None
        assert report.embeddings == 2

    @pytest.mark.asyncio
    async def test_embeddings_can_be_disabled(self, tmp_path, python_registry):
        write_files(tmp_path, {"good.py": "def alpha():\n    return 1\n"})
        model = KeywordEmbeddingModel({"alpha": [1.0, 0.0, 0.0]})
        indexer = _indexer(
            tmp_path,
            python_registry,
            embedding_manager=EmbeddingManager(model),
            config=IndexerConfig(generate_embeddings=False),
        )

        await indexer.build()

        assert model.calls == []

    @pytest.mark.asyncio
    async def test_search_scopes(self, tmp_path, python_registry):
        write_files(tmp_path, {"good.py": "def alpha():\n    return 1\n"})
        model = KeywordEmbeddingModel({"alpha": [1.0, 0.0, 0.0]})
        indexer = _indexer(tmp_path, python_registry, embedding_manager=EmbeddingManager(model))
        await indexer.build()

        everything = indexer.search([1.0, 0.0, 0.0], top_n=5, min_similarity=0.5)
        files = indexer.search([1.0, 0.0, 0.0], scope="files")
        symbols = indexer.search([1.0, 0.0, 0.0], scope="symbols")

        assert {r.kind for r in everything} == {"file", "symbol"}
        assert [r.kind for r in files] == ["file"]
        assert [r.symbol.name for r in symbols] == ["alpha"]
        with pytest.raises(ValueError):
            indexer.search([1.0, 0.0, 0.0], scope="modules")


class TestIncrementalUpdates:
    """Single-file updates outside full builds."""

    @pytest.mark.asyncio
    async def test_update_replaces_only_that_entry(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        main_before = indexer.get_entry(project / "pkg/main.py")

        (project / "pkg/util.py").write_text("def helper():\n    return 1\n\ndef extra():\n    pass\n")
        entry = await indexer.on_file_changed(project / "pkg/util.py")

        assert [s.name for s in entry.symbols] == ["helper", "extra"]
        assert all(s.references == [] for s in entry.symbols)
        assert indexer.get_entry(project / "pkg/main.py") is main_before

    @pytest.mark.asyncio
    async def test_parse_error_replaces_last_good_entry(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()

        (project / "pkg/util.py").write_text("def helper(:\n")
        entry = await indexer.update_file(project / "pkg/util.py")

        assert entry.has_error
        assert indexer.find_symbols_by_name("helper") == []

    @pytest.mark.asyncio
    async def test_created_file_is_added(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()

        write_files(project, {"pkg/new.py": "class Fresh:\n    pass\n"})
        await indexer.on_file_created(project / "pkg/new.py")

        assert indexer.find_symbols_by_name("Fresh")[0].kind == SymbolKind.CLASS

    @pytest.mark.asyncio
    async def test_delete_removes_entry(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()

        (project / "pkg/util.py").unlink()
        assert await indexer.on_file_deleted(project / "pkg/util.py") is True

        assert indexer.get_entry(project / "pkg/util.py") is None
        assert indexer.find_symbols_by_name("helper") == []

    @pytest.mark.asyncio
    async def test_change_to_missing_file_is_treated_as_delete(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()

        (project / "pkg/util.py").unlink()
        assert await indexer.on_file_changed(project / "pkg/util.py") is None

        assert indexer.get_entry(project / "pkg/util.py") is None

    @pytest.mark.asyncio
    async def test_ignored_and_outside_paths_are_skipped(self, project, tmp_path, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        outside = write_files(tmp_path / "elsewhere", {"x.py": "def x():\n    pass\n"})

        assert await indexer.update_file(project / "node_modules/dep/index.py") is None
        assert await indexer.update_file(outside / "x.py") is None
        assert indexer.find_symbols_by_name("x") == []

    @pytest.mark.asyncio
    async def test_updates_are_skipped_during_a_full_build(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        before = indexer.store.snapshot()

        task = asyncio.create_task(indexer.build())
        await asyncio.sleep(0)
        (project / "pkg/util.py").write_text("def changed():\n    pass\n")

        assert await indexer.update_file(project / "pkg/util.py") is None
        assert await indexer.remove_file(project / "pkg/main.py") is False
        assert indexer.store.snapshot() == before

        await task

    @pytest.mark.asyncio
    async def test_update_started_before_a_build_does_not_overwrite_it(self, project):
        extractor = GatedExtractor("util.py")
        registry = ExtractorRegistry()
        registry.register(extractor)
        indexer = _indexer(project, registry)
        await indexer.build()

        # The update reads the old content, then blocks inside extraction
        extractor.gate()
        update = asyncio.create_task(indexer.update_file(project / "pkg/util.py"))
        assert await asyncio.to_thread(extractor.entered.wait, 5)

        (project / "pkg/util.py").write_text("def fresh():\n    pass\n")
        await indexer.build()
        assert indexer.find_symbols_by_name("fresh")

        extractor.release.set()
        assert await update is None
        assert indexer.find_symbols_by_name("fresh")
        assert indexer.find_symbols_by_name("helper") == []

    @pytest.mark.asyncio
    async def test_active_file_change_refreshes_entry(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()

        (project / "pkg/main.py").write_text("def run():\n    pass\n\ndef walk():\n    pass\n")
        await indexer.on_active_file_changed(project / "pkg/main.py")

        assert indexer.find_symbols_by_name("walk")


class TestAttach:
    """Attaching content outside the configured roots."""

    @pytest.mark.asyncio
    async def test_attach_file(self, project, tmp_path, python_registry):
        extra = write_files(tmp_path / "extra", {"tool.py": "def tool():\n    pass\n"})
        indexer = _indexer(project, python_registry)
        await indexer.build()

        entry = await indexer.attach_file(extra / "tool.py")

        assert entry.symbols[0].name == "tool"
        assert (extra / "tool.py").resolve() in indexer.attached_files

        # attached files survive a rebuild
        await indexer.build()
        assert indexer.find_symbols_by_name("tool")

    @pytest.mark.asyncio
    async def test_attach_folder(self, project, tmp_path, python_registry):
        lib = write_files(
            tmp_path / "lib",
            {"a.py": "def a():\n    pass\n", "build/gen.py": "def gen():\n    pass\n"},
        )
        indexer = _indexer(project, python_registry)
        await indexer.build()

        entries = await indexer.attach_folder(lib)

        assert [e.symbols[0].name for e in entries] == ["a"]
        assert lib.resolve() in indexer.attached_folders
        assert indexer.relative_path(str(lib.resolve() / "a.py")) == "lib/a.py"

    @pytest.mark.asyncio
    async def test_attach_missing_file_raises(self, project, python_registry):
        indexer = _indexer(project, python_registry)

        with pytest.raises(FileNotFoundError):
            await indexer.attach_file(project / "nope.py")


class TestQueries:
    """Position and name lookups through the indexer."""

    @pytest.mark.asyncio
    async def test_find_symbol_at(self, tmp_path, python_registry):
        write_files(
            tmp_path,
            {"shapes.py": "class Shape:\n    def area(self):\n        return 0\n"},
        )
        indexer = _indexer(tmp_path, python_registry)
        await indexer.build()

        inner = indexer.find_symbol_at(tmp_path / "shapes.py", Position(line=2, character=8))
        outer = indexer.find_symbol_at(tmp_path / "shapes.py", Position(line=0, character=2))

        assert inner.name == "area"
        assert outer.name == "Shape"

    @pytest.mark.asyncio
    async def test_find_definition_follows_a_reference(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        helper = indexer.find_symbols_by_name("helper")[0]
        reference = indexer.find_references(helper)[0]

        assert indexer.find_definition(reference).key == helper.key

    @pytest.mark.asyncio
    async def test_find_definition_rejects_older_generations(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        helper = indexer.find_symbols_by_name("helper")[0]
        reference = indexer.find_references(helper)[0]

        await indexer.build()

        with pytest.raises(StaleGenerationError):
            indexer.find_definition(reference)

    @pytest.mark.asyncio
    async def test_find_definition_after_target_was_replaced(self, project, python_registry):
        indexer = _indexer(project, python_registry)
        await indexer.build()
        helper = indexer.find_symbols_by_name("helper")[0]
        reference = indexer.find_references(helper)[0]

        (project / "pkg/util.py").write_text("def other():\n    pass\n")
        await indexer.update_file(project / "pkg/util.py")

        assert indexer.find_definition(reference) is None

    @pytest.mark.asyncio
    async def test_stats_and_lifecycle(self, project, python_registry):
        model = KeywordEmbeddingModel()
        async with _indexer(
            project, python_registry, embedding_manager=EmbeddingManager(model)
        ) as indexer:
            await indexer.build()
            stats = indexer.stats()

        assert stats["total_files"] == 4
        assert stats["parse_errors"] == 1
        assert stats["state"] == "idle"
        assert model.closed
