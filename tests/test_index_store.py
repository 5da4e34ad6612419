# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for the in-memory index store."""

import pytest

from codebase_rag.codebase.index_store import IndexStore
from codebase_rag.codebase.models import (
    FileIndexEntry,
    Position,
    SourceRange,
    Symbol,
    SymbolHandle,
    SymbolKind,
)
from codebase_rag.errors import StaleGenerationError


def _symbol(name, kind, path, coords, slot, container=None):
    return Symbol(
        name=name,
        kind=kind,
        file_path=path,
        range=SourceRange.from_coords(*coords),
        slot=slot,
        container=container,
    )


def _entry(path="/p/shapes.py"):
    return FileIndexEntry(
        path=path,
        language="python",
        symbols=[
            _symbol("Shape", SymbolKind.CLASS, path, (0, 0, 10, 0), 0),
            _symbol("area", SymbolKind.METHOD, path, (2, 4, 4, 0), 1, container="Shape"),
            _symbol("perimeter", SymbolKind.METHOD, path, (6, 4, 8, 0), 2, container="Shape"),
        ],
    )


class TestFindSymbolAt:
    """Innermost-symbol lookup."""

    def test_innermost_symbol_wins(self):
        store = IndexStore()
        store.put(_entry())

        assert store.find_symbol_at("/p/shapes.py", Position(line=3, character=0)).name == "area"
        assert store.find_symbol_at("/p/shapes.py", Position(line=5, character=0)).name == "Shape"

    def test_range_ends_are_inclusive(self):
        store = IndexStore()
        store.put(_entry())

        assert store.find_symbol_at("/p/shapes.py", Position(line=4, character=0)).name == "area"

    def test_no_match(self):
        store = IndexStore()
        store.put(_entry())

        assert store.find_symbol_at("/p/shapes.py", Position(line=42, character=0)) is None
        assert store.find_symbol_at("/p/other.py", Position(line=0, character=0)) is None


class TestMutation:
    """put/remove/install/clear semantics."""

    def test_put_replaces_wholesale(self):
        store = IndexStore()
        store.put(_entry())
        store.put(FileIndexEntry(path="/p/shapes.py", language="python"))

        assert store.get("/p/shapes.py").symbols == []
        assert store.find_symbols_by_name("Shape") == []

    def test_remove(self):
        store = IndexStore()
        store.put(_entry())

        assert store.remove("/p/shapes.py") is True
        assert store.remove("/p/shapes.py") is False
        assert "/p/shapes.py" not in store
        assert store.find_symbols_by_name("area") == []

    def test_install_swaps_generation(self):
        store = IndexStore()
        store.put(_entry("/p/old.py"))
        generation = store.next_generation()

        store.install({"/p/new.py": _entry("/p/new.py")}, generation)

        assert store.generation == generation
        assert store.paths() == ["/p/new.py"]
        assert store.get("/p/new.py").generation == generation

    def test_clear_empties_and_advances_generation(self):
        store = IndexStore()
        store.put(_entry())
        before = store.generation

        store.clear()

        assert len(store) == 0
        assert store.generation == before + 1

    def test_snapshot_is_a_deep_copy(self):
        store = IndexStore()
        store.put(_entry())
        snapshot = store.snapshot()

        store.get("/p/shapes.py").symbols.clear()

        assert len(snapshot["/p/shapes.py"].symbols) == 3


class TestHandles:
    """Arena handles and generations."""

    def test_resolve_handle(self):
        store = IndexStore()
        store.put(_entry())

        symbol = store.resolve_handle(SymbolHandle(file_path="/p/shapes.py", slot=1))

        assert symbol.name == "area"

    def test_stale_generation_is_rejected(self):
        store = IndexStore()
        store.install({"/p/shapes.py": _entry()}, 3)

        with pytest.raises(StaleGenerationError):
            store.resolve_handle(SymbolHandle(file_path="/p/shapes.py", slot=0), generation=2)

    def test_missing_slot(self):
        store = IndexStore()
        store.put(_entry())

        with pytest.raises(KeyError):
            store.resolve_handle(SymbolHandle(file_path="/p/shapes.py", slot=9))

    def test_symbol_at_start(self):
        store = IndexStore()
        store.put(_entry())

        handle = store.symbol_at_start("/p/shapes.py", Position(line=6, character=4))

        assert handle == SymbolHandle(file_path="/p/shapes.py", slot=2)

    def test_stats(self):
        store = IndexStore()
        store.put(_entry())
        store.put(FileIndexEntry(path="/p/bad.py", language="python", parse_error="boom"))

        stats = store.stats()

        assert stats["total_files"] == 2
        assert stats["total_symbols"] == 3
        assert stats["parse_errors"] == 1
